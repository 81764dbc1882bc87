"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    reference_data_dir: Path
    openai_api_key: str
    openai_model: str
    nlp_timeout_seconds: float
    query_max_length: int
    capacity_policy_id: str
    sanitization_policy_id: str
    capacity_threshold_percentage: float
    sanitization_cooldown_hours: float
    sensor_recency_hours: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; use dataclasses.replace for variants."""
    return Settings(
        app_name=os.getenv("DESKMATCH_APP_NAME", "Workspace Desk Matcher"),
        app_version=os.getenv("DESKMATCH_APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("DESKMATCH_DATABASE_PATH", str(PROJECT_ROOT / "data" / "deskmatch.db"))
        ),
        reference_data_dir=Path(
            os.getenv("DESKMATCH_REFERENCE_DATA_DIR", str(PROJECT_ROOT / "data" / "reference"))
        ),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        nlp_timeout_seconds=_env_float("DESKMATCH_NLP_TIMEOUT_SECONDS", 30.0),
        query_max_length=_env_int("DESKMATCH_QUERY_MAX_LENGTH", 200),
        capacity_policy_id=os.getenv("DESKMATCH_CAPACITY_POLICY_ID", "POL-005"),
        sanitization_policy_id=os.getenv("DESKMATCH_SANITIZATION_POLICY_ID", "POL-002"),
        capacity_threshold_percentage=_env_float("DESKMATCH_CAPACITY_THRESHOLD_PERCENTAGE", 80.0),
        sanitization_cooldown_hours=_env_float("DESKMATCH_SANITIZATION_COOLDOWN_HOURS", 4.0),
        sensor_recency_hours=_env_float("DESKMATCH_SENSOR_RECENCY_HOURS", 1.0),
    )
