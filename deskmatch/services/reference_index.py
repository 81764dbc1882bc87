"""Per-request lookup structures over reference snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd

from deskmatch.domain.models import MetricsRecord, OccupancyRecord, SensorRecord, Zone


@dataclass(frozen=True)
class SensorHealth:
    status: str
    last_reading: Optional[datetime]


@dataclass(frozen=True)
class ReferenceIndex:
    """Area-keyed views of occupancy, latest metrics and sensor health."""

    occupancy_by_area: Mapping[str, float]
    metrics_by_area: Mapping[str, MetricsRecord]
    sensors_by_area: Mapping[str, SensorHealth]

    def occupancy_for(self, area_id: str) -> Optional[float]:
        return self.occupancy_by_area.get(area_id)

    def sensor_for(self, area_id: str) -> Optional[SensorHealth]:
        return self.sensors_by_area.get(area_id)


def _valid_area_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _parse_timestamps(values: pd.Series) -> pd.Series:
    return pd.to_datetime(values, errors="coerce", utc=True, format="ISO8601")


def _index_occupancy(records: Sequence[OccupancyRecord]) -> dict[str, float]:
    if not records:
        return {}
    frame = pd.DataFrame(
        {
            "area_id": [getattr(record, "area_id", None) for record in records],
            "occupancy_percentage": pd.to_numeric(
                pd.Series(
                    [getattr(record, "occupancy_percentage", None) for record in records],
                    dtype="object",
                ),
                errors="coerce",
            ),
        }
    )
    frame = frame[frame["area_id"].map(_valid_area_id)].dropna(subset=["occupancy_percentage"])
    latest = frame.drop_duplicates(subset="area_id", keep="last")
    return {
        str(area_id): float(percentage)
        for area_id, percentage in zip(latest["area_id"], latest["occupancy_percentage"])
    }


def _index_metrics(records: Sequence[MetricsRecord]) -> dict[str, MetricsRecord]:
    if not records:
        return {}
    frame = pd.DataFrame(
        {
            "position": range(len(records)),
            "area_id": [getattr(record, "area_id", None) for record in records],
            "date": _parse_timestamps(
                pd.Series([getattr(record, "date", None) for record in records], dtype="object")
            ),
            "utilization_rate": pd.to_numeric(
                pd.Series(
                    [getattr(record, "utilization_rate", None) for record in records],
                    dtype="object",
                ),
                errors="coerce",
            ),
        }
    )
    frame = frame[frame["area_id"].map(_valid_area_id)].dropna(subset=["date", "utilization_rate"])
    # Stable sort keeps arrival order among equal dates, so keep="last" is last-seen-wins.
    latest = frame.sort_values("date", kind="mergesort").drop_duplicates(
        subset="area_id",
        keep="last",
    )
    return {
        str(area_id): records[int(position)]
        for area_id, position in zip(latest["area_id"], latest["position"])
    }


def _index_sensors(records: Sequence[SensorRecord]) -> dict[str, SensorHealth]:
    if not records:
        return {}
    frame = pd.DataFrame(
        {
            "area_id": [getattr(record, "area_id", None) for record in records],
            "status": [getattr(record, "status", None) for record in records],
            "last_reading": _parse_timestamps(
                pd.Series(
                    [getattr(record, "last_reading", None) for record in records],
                    dtype="object",
                )
            ),
        }
    )
    # An unreadable timestamp still leaves the reported status authoritative.
    frame = frame[frame["area_id"].map(_valid_area_id)]
    latest = frame.drop_duplicates(subset="area_id", keep="last")
    return {
        str(row.area_id): SensorHealth(
            status=str(row.status) if row.status is not None else "",
            last_reading=None if pd.isna(row.last_reading) else row.last_reading.to_pydatetime(),
        )
        for row in latest.itertuples(index=False)
    }


def build_reference_index(
    *,
    occupancy: Sequence[OccupancyRecord],
    metrics: Sequence[MetricsRecord],
    sensors: Sequence[SensorRecord],
) -> ReferenceIndex:
    """Build area-keyed lookups once per request.

    Rows with a missing area id or an unparseable value are skipped, which
    downstream code treats the same as an area with no record at all. Sensor
    rows are the exception: a bad reading time is kept as an unknown reading.
    """
    return ReferenceIndex(
        occupancy_by_area=MappingProxyType(_index_occupancy(occupancy)),
        metrics_by_area=MappingProxyType(_index_metrics(metrics)),
        sensors_by_area=MappingProxyType(_index_sensors(sensors)),
    )


class ZoneHierarchy:
    """Name and id lookups over zones forming a zone -> floor hierarchy.

    Only a single parent level is resolved. A zone's parent is treated as its
    floor; grandparents are never consulted.
    """

    def __init__(self, zones: Iterable[Zone]) -> None:
        by_name: dict[str, Zone] = {}
        by_id: dict[str, Zone] = {}
        for zone in zones:
            by_name.setdefault(zone.name, zone)
            by_id.setdefault(zone.zone_id, zone)
        self._by_name = MappingProxyType(by_name)
        self._by_id = MappingProxyType(by_id)

    def find(self, name: str) -> Optional[Zone]:
        return self._by_name.get(name)

    def parent_of(self, zone_name: str) -> Optional[Zone]:
        zone = self.find(zone_name)
        if zone is None or zone.parent_id is None:
            return None
        return self._by_id.get(zone.parent_id)

    def matches_location(self, zone_name: str, location: str) -> bool:
        """True when the zone itself or its floor is named `location`."""
        if zone_name == location:
            return True
        parent = self.parent_of(zone_name)
        return parent is not None and parent.name == location
