"""Repository layer responsible for all reference-data access."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from deskmatch.domain.models import (
    Desk,
    EmployeePreferences,
    MetricsRecord,
    OccupancyRecord,
    Policy,
    ReferenceSnapshot,
    SensorRecord,
    Zone,
)
from deskmatch.utils.config import Settings, get_settings
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)

# collection name -> (file name, top-level JSON key)
REFERENCE_FILES: dict[str, tuple[str, str]] = {
    "desks": ("desks.json", "desks"),
    "spaces": ("spaces.json", "spaces"),
    "employee_preferences": ("employee_preferences.json", "employee_preferences"),
    "policies": ("policies.json", "policies"),
    "occupancy": ("occupancy.json", "occupancy_data"),
    "metrics": ("metrics.json", "metrics"),
    "sensors": ("sensors.json", "sensors"),
}

ReferencePayload = dict[str, list[dict[str, Any]]]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _resolve_relative_times(
    collection: str,
    record: dict[str, Any],
    now: datetime,
) -> dict[str, Any]:
    """Turn snapshot offsets such as `last_used_hours_ago` into timestamps."""
    resolved = dict(record)
    if collection == "desks" and "last_used_hours_ago" in resolved:
        hours = float(resolved.pop("last_used_hours_ago"))
        resolved["last_used"] = (now - timedelta(hours=hours)).isoformat()
    elif collection == "sensors" and "last_reading_minutes_ago" in resolved:
        minutes = float(resolved.pop("last_reading_minutes_ago"))
        resolved["last_reading"] = (now - timedelta(minutes=minutes)).isoformat()
    elif collection == "metrics" and "days_ago" in resolved:
        days = int(resolved.pop("days_ago"))
        resolved["date"] = (now - timedelta(days=days)).date().isoformat()
    return resolved


def _string_tuple(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    values = json.loads(raw)
    return tuple(str(value) for value in values)


class DataRepository:
    """Encapsulates SQLite access so matching logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create reference tables before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Desks (
                        id TEXT PRIMARY KEY,
                        desk_type TEXT NOT NULL,
                        area_id TEXT NOT NULL,
                        zone TEXT NOT NULL,
                        floor INTEGER,
                        location_description TEXT NOT NULL DEFAULT '',
                        features TEXT NOT NULL DEFAULT '[]',
                        status TEXT NOT NULL,
                        last_used TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Spaces (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        parent_id TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS EmployeePreferences (
                        employee_id TEXT PRIMARY KEY,
                        desk_preferences TEXT NOT NULL DEFAULT '[]',
                        equipment_needs TEXT NOT NULL DEFAULT '[]',
                        adjacency_preferences TEXT NOT NULL DEFAULT '[]',
                        preferred_location TEXT NOT NULL DEFAULT '',
                        accessibility_needs TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Policies (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL DEFAULT '',
                        parameters TEXT NOT NULL DEFAULT '{}'
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Occupancy (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        area_id TEXT NOT NULL,
                        occupancy_percentage REAL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Metrics (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        area_id TEXT NOT NULL,
                        date TEXT,
                        utilization_rate REAL,
                        peak_occupancy REAL,
                        average_occupancy REAL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Sensors (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        sensor_id TEXT NOT NULL,
                        area_id TEXT NOT NULL,
                        status TEXT NOT NULL,
                        last_reading TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_desks_status
                    ON Desks(status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def load_reference_payload(
        self,
        directory: Optional[Path] = None,
        now: Optional[datetime] = None,
    ) -> ReferencePayload:
        """Read the JSON snapshot files, resolving relative time offsets."""
        source_dir = Path(directory or self._settings.reference_data_dir)
        reference_time = now or datetime.now(timezone.utc)
        payload: ReferencePayload = {}
        for collection, (file_name, key) in REFERENCE_FILES.items():
            path = source_dir / file_name
            try:
                document = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise RuntimeError(f"Reference file {path} could not be read: {exc}") from exc
            records = document.get(key, []) if isinstance(document, dict) else []
            payload[collection] = [
                _resolve_relative_times(collection, record, reference_time)
                for record in records
                if isinstance(record, dict)
            ]
        return payload

    def replace_reference_data(self, payload: ReferencePayload) -> None:
        """Swap every reference table inside one write transaction."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                for table in (
                    "Desks",
                    "Spaces",
                    "EmployeePreferences",
                    "Policies",
                    "Occupancy",
                    "Metrics",
                    "Sensors",
                ):
                    cursor.execute(f"DELETE FROM {table};")

                cursor.executemany(
                    """
                    INSERT INTO Desks (
                        id, desk_type, area_id, zone, floor,
                        location_description, features, status, last_used
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            str(desk["id"]),
                            str(desk.get("type", "")),
                            str(desk.get("area_id", "")),
                            str(desk.get("zone", "")),
                            desk.get("floor"),
                            str(desk.get("location_description") or ""),
                            json.dumps(list(desk.get("features") or [])),
                            str(desk.get("status", "")),
                            desk.get("last_used"),
                        )
                        for desk in payload.get("desks", [])
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Spaces (id, name, parent_id) VALUES (?, ?, ?);",
                    [
                        (str(space["id"]), str(space.get("name", "")), space.get("parent_id"))
                        for space in payload.get("spaces", [])
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO EmployeePreferences (
                        employee_id, desk_preferences, equipment_needs,
                        adjacency_preferences, preferred_location, accessibility_needs
                    )
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            str(prefs["employee_id"]),
                            json.dumps(list(prefs.get("desk_preferences") or [])),
                            json.dumps(list(prefs.get("equipment_needs") or [])),
                            json.dumps(list(prefs.get("adjacency_preferences") or [])),
                            str(prefs.get("preferred_location") or ""),
                            prefs.get("accessibility_needs"),
                        )
                        for prefs in payload.get("employee_preferences", [])
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Policies (id, name, parameters) VALUES (?, ?, ?);",
                    [
                        (
                            str(policy["id"]),
                            str(policy.get("name", "")),
                            json.dumps(policy.get("parameters") or {}),
                        )
                        for policy in payload.get("policies", [])
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Occupancy (area_id, occupancy_percentage) VALUES (?, ?);",
                    [
                        (str(row["area_id"]), row.get("occupancy_percentage"))
                        for row in payload.get("occupancy", [])
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO Metrics (
                        area_id, date, utilization_rate, peak_occupancy, average_occupancy
                    )
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            str(row["area_id"]),
                            row.get("date"),
                            row.get("utilization_rate"),
                            row.get("peak_occupancy"),
                            row.get("average_occupancy"),
                        )
                        for row in payload.get("metrics", [])
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO Sensors (sensor_id, area_id, status, last_reading)
                    VALUES (?, ?, ?, ?);
                    """,
                    [
                        (
                            str(row.get("sensor_id") or row.get("id") or ""),
                            str(row["area_id"]),
                            str(row.get("status", "")),
                            row.get("last_reading"),
                        )
                        for row in payload.get("sensors", [])
                    ],
                )
                conn.commit()
        except (sqlite3.Error, KeyError) as exc:
            raise RuntimeError(f"Reference data replacement failed: {exc}") from exc
        logger.info(
            "Reference data replaced | desks=%s | spaces=%s | policies=%s | sensors=%s",
            len(payload.get("desks", [])),
            len(payload.get("spaces", [])),
            len(payload.get("policies", [])),
            len(payload.get("sensors", [])),
        )

    def refresh_reference_data(self, directory: Optional[Path] = None) -> None:
        """Reload every table from the reference snapshot directory."""
        self.replace_reference_data(self.load_reference_payload(directory))

    def load_snapshot(self) -> ReferenceSnapshot:
        """Read all reference tables inside a single read transaction."""
        try:
            with self._connect() as conn:
                conn.execute("BEGIN;")
                cursor = conn.cursor()

                cursor.execute(
                    """
                    SELECT id, desk_type, area_id, zone, floor,
                           location_description, features, status, last_used
                    FROM Desks
                    ORDER BY rowid ASC;
                    """
                )
                desks = tuple(
                    Desk(
                        desk_id=str(row["id"]),
                        desk_type=str(row["desk_type"]),
                        area_id=str(row["area_id"]),
                        zone=str(row["zone"]),
                        floor=int(row["floor"]) if row["floor"] is not None else None,
                        location_description=str(row["location_description"] or ""),
                        features=_string_tuple(row["features"]),
                        status=str(row["status"]),
                        last_used=parse_timestamp(row["last_used"]),
                    )
                    for row in cursor.fetchall()
                )

                cursor.execute("SELECT id, name, parent_id FROM Spaces ORDER BY rowid ASC;")
                zones = tuple(
                    Zone(
                        zone_id=str(row["id"]),
                        name=str(row["name"]),
                        parent_id=str(row["parent_id"]) if row["parent_id"] is not None else None,
                    )
                    for row in cursor.fetchall()
                )

                cursor.execute(
                    """
                    SELECT employee_id, desk_preferences, equipment_needs,
                           adjacency_preferences, preferred_location, accessibility_needs
                    FROM EmployeePreferences;
                    """
                )
                employee_preferences = {
                    str(row["employee_id"]): EmployeePreferences(
                        employee_id=str(row["employee_id"]),
                        desk_preferences=_string_tuple(row["desk_preferences"]),
                        equipment_needs=_string_tuple(row["equipment_needs"]),
                        adjacency_preferences=_string_tuple(row["adjacency_preferences"]),
                        preferred_location=str(row["preferred_location"] or ""),
                        accessibility_needs=row["accessibility_needs"],
                    )
                    for row in cursor.fetchall()
                }

                cursor.execute("SELECT id, name, parameters FROM Policies ORDER BY rowid ASC;")
                policies = tuple(
                    Policy(
                        policy_id=str(row["id"]),
                        name=str(row["name"]),
                        parameters=MappingProxyType(json.loads(row["parameters"] or "{}")),
                    )
                    for row in cursor.fetchall()
                )

                cursor.execute(
                    "SELECT area_id, occupancy_percentage FROM Occupancy ORDER BY id ASC;"
                )
                occupancy = tuple(
                    OccupancyRecord(
                        area_id=str(row["area_id"]),
                        occupancy_percentage=row["occupancy_percentage"],
                    )
                    for row in cursor.fetchall()
                )

                cursor.execute(
                    """
                    SELECT area_id, date, utilization_rate, peak_occupancy, average_occupancy
                    FROM Metrics
                    ORDER BY id ASC;
                    """
                )
                metrics = tuple(
                    MetricsRecord(
                        area_id=str(row["area_id"]),
                        date=row["date"],
                        utilization_rate=row["utilization_rate"],
                        peak_occupancy=row["peak_occupancy"],
                        average_occupancy=row["average_occupancy"],
                    )
                    for row in cursor.fetchall()
                )

                cursor.execute(
                    "SELECT sensor_id, area_id, status, last_reading FROM Sensors ORDER BY id ASC;"
                )
                sensors = tuple(
                    SensorRecord(
                        sensor_id=str(row["sensor_id"]),
                        area_id=str(row["area_id"]),
                        status=str(row["status"]),
                        last_reading=row["last_reading"],
                    )
                    for row in cursor.fetchall()
                )
                conn.commit()
        except (sqlite3.Error, ValueError) as exc:
            raise RuntimeError(f"Reference snapshot load failed: {exc}") from exc

        return ReferenceSnapshot(
            desks=desks,
            zones=zones,
            employee_preferences=MappingProxyType(employee_preferences),
            policies=policies,
            occupancy=occupancy,
            metrics=metrics,
            sensors=sensors,
        )

    def count_desks(self) -> int:
        """Return persisted desk count for diagnostics and tests."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Desks;")
            return int(cursor.fetchone()["count"])
