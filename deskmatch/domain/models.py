"""Domain models for desk matching."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional


DESK_TYPE_STANDING = "standing"
DESK_TYPE_REGULAR = "regular"
DESK_STATUS_AVAILABLE = "available"
SENSOR_STATUS_ACTIVE = "active"


@dataclass(frozen=True)
class Desk:
    desk_id: str
    desk_type: str
    area_id: str
    zone: str
    floor: Optional[int]
    location_description: str
    features: tuple[str, ...]
    status: str
    last_used: Optional[datetime]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.desk_id,
            "type": self.desk_type,
            "area_id": self.area_id,
            "zone": self.zone,
            "floor": self.floor,
            "location_description": self.location_description,
            "features": list(self.features),
            "status": self.status,
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }


@dataclass(frozen=True)
class Zone:
    zone_id: str
    name: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class EmployeePreferences:
    employee_id: str
    desk_preferences: tuple[str, ...] = ()
    equipment_needs: tuple[str, ...] = ()
    adjacency_preferences: tuple[str, ...] = ()
    preferred_location: str = ""
    accessibility_needs: Optional[str] = None


@dataclass(frozen=True)
class ParsedQueryPreferences:
    """Preferences extracted from free text; every field may be empty."""

    desk_preferences: tuple[str, ...] = ()
    equipment_needs: tuple[str, ...] = ()
    preferred_days: tuple[str, ...] = ()
    preferred_location: str = ""
    accessibility_needs: Optional[str] = None
    adjacency_preferences: tuple[str, ...] = ()
    team: str = ""


@dataclass(frozen=True)
class EffectivePreferences:
    desk_type: Optional[str]
    desk_preferences: tuple[str, ...]
    equipment_needs: tuple[str, ...]
    adjacency_preferences: tuple[str, ...]
    preferred_location: str
    accessibility_need: Optional[str]


@dataclass(frozen=True)
class Policy:
    policy_id: str
    name: str = ""
    parameters: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class OccupancyRecord:
    area_id: str
    occupancy_percentage: float


@dataclass(frozen=True)
class MetricsRecord:
    area_id: str
    date: str
    utilization_rate: float
    peak_occupancy: Optional[float] = None
    average_occupancy: Optional[float] = None


@dataclass(frozen=True)
class SensorRecord:
    sensor_id: str
    area_id: str
    status: str
    last_reading: str


@dataclass(frozen=True)
class ReferenceSnapshot:
    """One consistent read of every reference collection."""

    desks: tuple[Desk, ...]
    zones: tuple[Zone, ...]
    employee_preferences: Mapping[str, EmployeePreferences]
    policies: tuple[Policy, ...]
    occupancy: tuple[OccupancyRecord, ...]
    metrics: tuple[MetricsRecord, ...]
    sensors: tuple[SensorRecord, ...]

    @property
    def active_policy_ids(self) -> frozenset[str]:
        return frozenset(policy.policy_id for policy in self.policies)
