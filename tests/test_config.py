from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import pytest

from deskmatch.utils.config import Settings, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_environment_overrides_are_applied(monkeypatch, fresh_settings, tmp_path):
    monkeypatch.setenv("DESKMATCH_DATABASE_PATH", str(tmp_path / "override.db"))
    monkeypatch.setenv("DESKMATCH_QUERY_MAX_LENGTH", "50")
    monkeypatch.setenv("DESKMATCH_SENSOR_RECENCY_HOURS", "2.5")
    monkeypatch.setenv("DESKMATCH_CAPACITY_POLICY_ID", "POL-900")

    settings = fresh_settings()

    assert settings.database_path == Path(tmp_path / "override.db")
    assert settings.query_max_length == 50
    assert settings.sensor_recency_hours == 2.5
    assert settings.capacity_policy_id == "POL-900"


def test_blank_numeric_override_falls_back_to_default(monkeypatch, fresh_settings):
    monkeypatch.setenv("DESKMATCH_SANITIZATION_COOLDOWN_HOURS", "  ")

    assert fresh_settings().sanitization_cooldown_hours == 4.0


def test_malformed_numeric_override_raises(monkeypatch, fresh_settings):
    monkeypatch.setenv("DESKMATCH_QUERY_MAX_LENGTH", "lots")

    with pytest.raises(ValueError, match="DESKMATCH_QUERY_MAX_LENGTH must be an integer"):
        fresh_settings()


def test_settings_only_carry_server_side_values():
    names = {field.name for field in fields(Settings)}

    assert "api_base_url" not in names
    assert {"database_path", "openai_api_key", "query_max_length"} <= names
