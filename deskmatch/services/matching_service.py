"""Desk eligibility filtering, adjacency partitioning and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Sequence

from deskmatch.domain.constraints import MatchingConfig, validate_matching_config
from deskmatch.domain.models import (
    DESK_STATUS_AVAILABLE,
    DESK_TYPE_STANDING,
    SENSOR_STATUS_ACTIVE,
    Desk,
    EffectivePreferences,
    MetricsRecord,
)
from deskmatch.repository.data_repository import DataRepository
from deskmatch.services.preference_service import PreferenceNormalizer
from deskmatch.services.reference_index import (
    ReferenceIndex,
    ZoneHierarchy,
    build_reference_index,
)
from deskmatch.utils.config import Settings, get_settings
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)

WORST_CASE_UTILIZATION = 1.0
_NEVER_USED = datetime.min.replace(tzinfo=timezone.utc)
_SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class MatchContext:
    """Everything a predicate may consult; built once per request."""

    preferences: EffectivePreferences
    index: ReferenceIndex
    hierarchy: ZoneHierarchy
    active_policies: frozenset[str]
    config: MatchingConfig
    now: datetime


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hours_between(later: datetime, earlier: datetime) -> float:
    return (_as_utc(later) - _as_utc(earlier)).total_seconds() / _SECONDS_PER_HOUR


def is_available(desk: Desk, context: MatchContext) -> bool:
    return desk.status == DESK_STATUS_AVAILABLE


def matches_desk_type(desk: Desk, context: MatchContext) -> bool:
    desk_type = context.preferences.desk_type
    return desk_type is None or desk.desk_type == desk_type


def allows_standing_desk(desk: Desk, context: MatchContext) -> bool:
    if desk.desk_type != DESK_TYPE_STANDING:
        return True
    return DESK_TYPE_STANDING in context.preferences.desk_preferences


def has_required_equipment(desk: Desk, context: MatchContext) -> bool:
    features = set(desk.features)
    return all(need in features for need in context.preferences.equipment_needs)


def matches_location(desk: Desk, context: MatchContext) -> bool:
    location = context.preferences.preferred_location
    if not location:
        return True
    return context.hierarchy.matches_location(desk.zone, location)


def within_capacity(desk: Desk, context: MatchContext) -> bool:
    if context.config.capacity_policy_id not in context.active_policies:
        return True
    occupancy = context.index.occupancy_for(desk.area_id)
    if occupancy is None:
        return True
    return occupancy < context.config.capacity_threshold_percentage


def past_sanitization_cooldown(desk: Desk, context: MatchContext) -> bool:
    if context.config.sanitization_policy_id not in context.active_policies:
        return True
    if desk.last_used is None:
        return True
    hours_since_use = _hours_between(context.now, desk.last_used)
    return hours_since_use >= context.config.sanitization_cooldown_hours


def meets_accessibility_need(desk: Desk, context: MatchContext) -> bool:
    need = context.preferences.accessibility_need
    if not need:
        return True
    if need in desk.features:
        return True
    return need.lower() in (desk.location_description or "").lower()


def has_healthy_sensor(desk: Desk, context: MatchContext) -> bool:
    sensor = context.index.sensor_for(desk.area_id)
    if sensor is None:
        return True
    if sensor.status != SENSOR_STATUS_ACTIVE:
        return False
    if sensor.last_reading is None:
        return False
    reading_age_hours = _hours_between(context.now, sensor.last_reading)
    return reading_age_hours <= context.config.sensor_recency_hours


DeskPredicate = Callable[[Desk, MatchContext], bool]

ELIGIBILITY_PREDICATES: tuple[tuple[str, DeskPredicate], ...] = (
    ("availability", is_available),
    ("desk_type", matches_desk_type),
    ("standing_policy", allows_standing_desk),
    ("equipment", has_required_equipment),
    ("location", matches_location),
    ("capacity_policy", within_capacity),
    ("sanitization_policy", past_sanitization_cooldown),
    ("accessibility", meets_accessibility_need),
    ("sensor_health", has_healthy_sensor),
)


def rejection_reason(desk: Desk, context: MatchContext) -> Optional[str]:
    """Name of the first failing predicate, or None when the desk is eligible."""
    for name, predicate in ELIGIBILITY_PREDICATES:
        if not predicate(desk, context):
            return name
    return None


def filter_eligible_desks(desks: Sequence[Desk], context: MatchContext) -> list[Desk]:
    eligible: list[Desk] = []
    for desk in desks:
        reason = rejection_reason(desk, context)
        if reason is None:
            eligible.append(desk)
        else:
            logger.debug("Desk rejected | desk_id=%s | filter=%s", desk.desk_id, reason)
    return eligible


def partition_by_adjacency(
    desks: Sequence[Desk],
    adjacency_preferences: Sequence[str],
) -> tuple[list[Desk], list[Desk]]:
    tokens = [token.lower() for token in adjacency_preferences if token]
    adjacent: list[Desk] = []
    other: list[Desk] = []
    for desk in desks:
        zone_name = desk.zone.lower()
        if any(token in zone_name for token in tokens):
            adjacent.append(desk)
        else:
            other.append(desk)
    return adjacent, other


def equipment_match_count(desk: Desk, equipment_needs: Sequence[str]) -> int:
    features = set(desk.features)
    return sum(1 for need in equipment_needs if need in features)


def utilization_for(desk: Desk, metrics_by_area: Mapping[str, MetricsRecord]) -> float:
    metrics = metrics_by_area.get(desk.area_id)
    if metrics is None:
        return WORST_CASE_UTILIZATION
    return float(metrics.utilization_rate)


def rank_desks(
    desks: Sequence[Desk],
    equipment_needs: Sequence[str],
    metrics_by_area: Mapping[str, MetricsRecord],
) -> list[Desk]:
    """Most equipment matches, then least recently used, then lowest utilization.

    sorted() is stable, so full ties keep their incoming order.
    """

    def sort_key(desk: Desk) -> tuple[int, datetime, float]:
        last_used = _as_utc(desk.last_used) if desk.last_used else _NEVER_USED
        return (
            -equipment_match_count(desk, equipment_needs),
            last_used,
            utilization_for(desk, metrics_by_area),
        )

    return sorted(desks, key=sort_key)


def assemble_results(adjacent_ranked: Sequence[Desk], other_ranked: Sequence[Desk]) -> list[Desk]:
    return [*adjacent_ranked, *other_ranked]


def recommend_desks(desks: Sequence[Desk], context: MatchContext) -> list[Desk]:
    """Filter, partition, rank and assemble; pure over the given snapshot."""
    eligible = filter_eligible_desks(desks, context)
    adjacent, other = partition_by_adjacency(
        eligible,
        context.preferences.adjacency_preferences,
    )
    metrics_by_area = context.index.metrics_by_area
    equipment_needs = context.preferences.equipment_needs
    return assemble_results(
        rank_desks(adjacent, equipment_needs, metrics_by_area),
        rank_desks(other, equipment_needs, metrics_by_area),
    )


def build_matching_config(settings: Settings) -> MatchingConfig:
    config = MatchingConfig(
        capacity_policy_id=settings.capacity_policy_id,
        sanitization_policy_id=settings.sanitization_policy_id,
        capacity_threshold_percentage=settings.capacity_threshold_percentage,
        sanitization_cooldown_hours=settings.sanitization_cooldown_hours,
        sensor_recency_hours=settings.sensor_recency_hours,
    )
    validate_matching_config(config)
    return config


class DeskMatchingService:
    """Orchestrates one desk-matching request over a fresh reference snapshot."""

    def __init__(
        self,
        repository: DataRepository,
        normalizer: PreferenceNormalizer,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._normalizer = normalizer
        self._config = build_matching_config(self._settings)

    @property
    def config(self) -> MatchingConfig:
        return self._config

    async def match_desks(
        self,
        *,
        employee_id: Optional[str],
        query: str,
        now: Optional[datetime] = None,
    ) -> list[Desk]:
        snapshot = self._repository.load_snapshot()
        preferences = await self._normalizer.normalize(
            employee_id=employee_id,
            query=query,
            stored_preferences=snapshot.employee_preferences,
        )
        context = MatchContext(
            preferences=preferences,
            index=build_reference_index(
                occupancy=snapshot.occupancy,
                metrics=snapshot.metrics,
                sensors=snapshot.sensors,
            ),
            hierarchy=ZoneHierarchy(snapshot.zones),
            active_policies=snapshot.active_policy_ids,
            config=self._config,
            now=_as_utc(now or datetime.now(timezone.utc)),
        )
        results = recommend_desks(snapshot.desks, context)
        logger.info(
            "Desk match completed | employee_id=%s | candidates=%s | returned=%s",
            employee_id,
            len(snapshot.desks),
            len(results),
        )
        return results
