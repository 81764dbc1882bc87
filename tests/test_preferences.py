from __future__ import annotations

import asyncio

import pytest

from deskmatch.domain.models import EmployeePreferences, ParsedQueryPreferences
from deskmatch.services.preference_service import (
    PreferenceNormalizer,
    merge_preferences,
    resolve_desk_type,
)


STORED = {
    "E-001": EmployeePreferences(
        employee_id="E-001",
        desk_preferences=("regular",),
        equipment_needs=("dual-monitors",),
        adjacency_preferences=("design",),
        preferred_location="2nd Floor",
        accessibility_needs="wheelchair",
    ),
}


class StubParser:
    def __init__(self, result: ParsedQueryPreferences) -> None:
        self.result = result
        self.queries: list[str] = []

    async def parse(self, query: str) -> ParsedQueryPreferences:
        self.queries.append(query)
        return self.result


class ExplodingParser:
    async def parse(self, query: str) -> ParsedQueryPreferences:
        raise ConnectionError("nlp backend unreachable")


def _normalize(parser, employee_id, query="any desk"):
    normalizer = PreferenceNormalizer(parser=parser)
    return asyncio.run(
        normalizer.normalize(
            employee_id=employee_id,
            query=query,
            stored_preferences=STORED,
        )
    )


@pytest.mark.parametrize(
    ("desk_preferences", "expected"),
    [
        (("standing",), "standing"),
        (("regular",), "regular"),
        (("regular", "standing"), "standing"),
        (("near-window", "quiet"), None),
        ((), None),
        (("Standing",), None),
    ],
)
def test_resolve_desk_type_priority(desk_preferences, expected):
    assert resolve_desk_type(desk_preferences) == expected


def test_parsed_values_override_stored_values_field_by_field():
    parsed = ParsedQueryPreferences(
        desk_preferences=("standing",),
        equipment_needs=(),
        preferred_location="3rd Floor",
        adjacency_preferences=("marketing",),
        accessibility_needs=None,
    )

    effective = merge_preferences(STORED["E-001"], parsed)

    assert effective.desk_type == "standing"
    assert effective.desk_preferences == ("standing",)
    assert effective.equipment_needs == ("dual-monitors",)
    assert effective.adjacency_preferences == ("marketing",)
    assert effective.preferred_location == "3rd Floor"
    assert effective.accessibility_need == "wheelchair"


def test_non_null_parsed_accessibility_wins_even_when_empty():
    parsed = ParsedQueryPreferences(accessibility_needs="")

    effective = merge_preferences(STORED["E-001"], parsed)

    assert effective.accessibility_need is None


def test_unknown_employee_gets_empty_defaults():
    parser = StubParser(ParsedQueryPreferences())

    effective = _normalize(parser, "E-404")

    assert effective.desk_type is None
    assert effective.desk_preferences == ()
    assert effective.equipment_needs == ()
    assert effective.adjacency_preferences == ()
    assert effective.preferred_location == ""
    assert effective.accessibility_need is None


def test_absent_employee_id_uses_parsed_values_only():
    parser = StubParser(ParsedQueryPreferences(equipment_needs=("headset",)))

    effective = _normalize(parser, None, query="desk with a headset")

    assert parser.queries == ["desk with a headset"]
    assert effective.equipment_needs == ("headset",)


def test_parser_failure_falls_back_to_stored_preferences():
    effective = _normalize(ExplodingParser(), "E-001")

    assert effective.desk_type == "regular"
    assert effective.equipment_needs == ("dual-monitors",)
    assert effective.adjacency_preferences == ("design",)
    assert effective.preferred_location == "2nd Floor"
    assert effective.accessibility_need == "wheelchair"


def test_parser_failure_without_employee_is_fully_empty():
    effective = _normalize(ExplodingParser(), None)

    assert effective.desk_type is None
    assert effective.equipment_needs == ()
    assert effective.preferred_location == ""
