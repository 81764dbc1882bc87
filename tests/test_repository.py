from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from deskmatch.repository.data_repository import DataRepository, parse_timestamp
from deskmatch.utils.config import get_settings


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _repository(tmp_path) -> DataRepository:
    settings = replace(get_settings(), database_path=tmp_path / "reference.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository


def test_refresh_loads_bundled_reference_data(tmp_path):
    repository = _repository(tmp_path)

    repository.refresh_reference_data()
    snapshot = repository.load_snapshot()

    assert repository.count_desks() == 10
    assert [desk.desk_id for desk in snapshot.desks][:3] == ["D-101", "D-102", "D-103"]
    assert set(snapshot.employee_preferences) == {"E-001", "E-002", "E-003"}
    assert snapshot.active_policy_ids == frozenset({"POL-002", "POL-003", "POL-005"})
    assert len(snapshot.zones) == 9


def test_snapshot_parses_typed_fields(tmp_path):
    repository = _repository(tmp_path)
    payload = repository.load_reference_payload(now=NOW)
    repository.replace_reference_data(payload)

    snapshot = repository.load_snapshot()
    desk = next(desk for desk in snapshot.desks if desk.desk_id == "D-304")

    assert desk.desk_type == "standing"
    assert desk.floor == 3
    assert desk.features == ("dual-monitors", "sit-stand", "near-window")
    assert desk.last_used == NOW - timedelta(hours=20)

    prefs = snapshot.employee_preferences["E-003"]
    assert prefs.desk_preferences == ()
    assert prefs.accessibility_needs == "wheelchair"

    capacity = next(policy for policy in snapshot.policies if policy.policy_id == "POL-005")
    assert capacity.parameters["max_occupancy_percentage"] == 80

    marketing = next(zone for zone in snapshot.zones if zone.zone_id == "Z-301")
    assert marketing.parent_id == "FL-3"


def test_relative_offsets_resolve_against_reference_time(tmp_path):
    repository = _repository(tmp_path)

    payload = repository.load_reference_payload(now=NOW)

    desk = next(row for row in payload["desks"] if row["id"] == "D-103")
    assert "last_used_hours_ago" not in desk
    assert parse_timestamp(desk["last_used"]) == NOW - timedelta(minutes=30)

    sensor = next(row for row in payload["sensors"] if row["sensor_id"] == "S-202")
    assert parse_timestamp(sensor["last_reading"]) == NOW - timedelta(minutes=240)

    dates = [row["date"] for row in payload["metrics"] if row["area_id"] == "A-101"]
    assert dates == ["2026-02-28", "2026-03-01"]


def test_replace_overwrites_previous_reference_data(tmp_path):
    repository = _repository(tmp_path)
    repository.refresh_reference_data()

    repository.replace_reference_data(
        {
            "desks": [
                {
                    "id": "D-900",
                    "type": "regular",
                    "area_id": "A-900",
                    "zone": "Annex",
                    "floor": 9,
                    "features": [],
                    "status": "available",
                    "last_used": None,
                }
            ],
        }
    )
    snapshot = repository.load_snapshot()

    assert repository.count_desks() == 1
    assert snapshot.desks[0].last_used is None
    assert snapshot.policies == ()
    assert dict(snapshot.employee_preferences) == {}


def test_failed_replace_keeps_previous_reference_data(tmp_path):
    repository = _repository(tmp_path)
    repository.refresh_reference_data()

    with pytest.raises(RuntimeError, match="Reference data replacement failed"):
        repository.replace_reference_data(
            {"desks": [{"type": "regular", "area_id": "A-1", "zone": "Z", "status": "available"}]}
        )

    assert repository.count_desks() == 10


def test_unreadable_reference_file_raises_runtime_error(tmp_path):
    repository = _repository(tmp_path)
    reference_dir = tmp_path / "reference"
    reference_dir.mkdir()
    (reference_dir / "desks.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(RuntimeError, match="could not be read"):
        repository.load_reference_payload(reference_dir)


def test_corrupt_stored_row_fails_snapshot_load(tmp_path):
    repository = _repository(tmp_path)
    repository.refresh_reference_data()
    with sqlite3.connect(repository.database_path) as conn:
        conn.execute("UPDATE Desks SET last_used = 'not-a-timestamp' WHERE id = 'D-101';")

    with pytest.raises(RuntimeError, match="Reference snapshot load failed"):
        repository.load_snapshot()


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("2026-03-02T12:00:00") == NOW
    assert parse_timestamp("2026-03-02T13:00:00+01:00") == NOW
    assert parse_timestamp("2026-03-02T12:00:00Z") == NOW
