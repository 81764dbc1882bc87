"""Merge stored employee preferences with preferences parsed from a query."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence, TypeVar

from deskmatch.domain.models import (
    DESK_TYPE_REGULAR,
    DESK_TYPE_STANDING,
    EffectivePreferences,
    EmployeePreferences,
    ParsedQueryPreferences,
)
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)

# Earlier entries win when a request mentions several desk types.
DESK_TYPE_PRIORITY = (DESK_TYPE_STANDING, DESK_TYPE_REGULAR)

T = TypeVar("T")


class PreferenceParser(Protocol):
    async def parse(self, query: str) -> ParsedQueryPreferences: ...


def resolve_desk_type(desk_preferences: Sequence[str]) -> Optional[str]:
    for desk_type in DESK_TYPE_PRIORITY:
        if desk_type in desk_preferences:
            return desk_type
    return None


def _prefer(parsed: T, stored: T) -> T:
    return parsed if parsed else stored


def merge_preferences(
    stored: EmployeePreferences,
    parsed: ParsedQueryPreferences,
) -> EffectivePreferences:
    """Field by field, a non-empty parsed value overrides the stored default."""
    desk_preferences = tuple(_prefer(parsed.desk_preferences, stored.desk_preferences))
    accessibility = (
        parsed.accessibility_needs
        if parsed.accessibility_needs is not None
        else stored.accessibility_needs
    )
    return EffectivePreferences(
        desk_type=resolve_desk_type(desk_preferences),
        desk_preferences=desk_preferences,
        equipment_needs=tuple(_prefer(parsed.equipment_needs, stored.equipment_needs)),
        adjacency_preferences=tuple(
            _prefer(parsed.adjacency_preferences, stored.adjacency_preferences)
        ),
        preferred_location=_prefer(parsed.preferred_location, stored.preferred_location) or "",
        accessibility_need=accessibility or None,
    )


class PreferenceNormalizer:
    """Produces the EffectivePreferences that drive filtering and ranking."""

    def __init__(self, parser: PreferenceParser) -> None:
        self._parser = parser

    async def normalize(
        self,
        *,
        employee_id: Optional[str],
        query: str,
        stored_preferences: Mapping[str, EmployeePreferences],
    ) -> EffectivePreferences:
        stored = None
        if employee_id is not None:
            stored = stored_preferences.get(employee_id)
        if stored is None:
            logger.debug("No stored preferences | employee_id=%s", employee_id)
            stored = EmployeePreferences(employee_id=employee_id or "")

        try:
            parsed = await self._parser.parse(query)
        except Exception:
            logger.warning("Preference parser raised; using stored preferences only", exc_info=True)
            parsed = ParsedQueryPreferences()

        effective = merge_preferences(stored, parsed)
        logger.info(
            (
                "Preferences normalized | employee_id=%s | desk_type=%s | equipment=%s | "
                "adjacency=%s | location=%r | accessibility=%r"
            ),
            employee_id,
            effective.desk_type,
            list(effective.equipment_needs),
            list(effective.adjacency_preferences),
            effective.preferred_location,
            effective.accessibility_need,
        )
        return effective
