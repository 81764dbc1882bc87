"""Domain-level validation rules for desk matching."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MatchingConfig:
    capacity_policy_id: str
    sanitization_policy_id: str
    capacity_threshold_percentage: float
    sanitization_cooldown_hours: float
    sensor_recency_hours: float


def validate_matching_config(config: MatchingConfig) -> None:
    if not config.capacity_policy_id.strip():
        raise ValueError("capacity_policy_id must be non-empty")
    if not config.sanitization_policy_id.strip():
        raise ValueError("sanitization_policy_id must be non-empty")
    if not 0.0 < config.capacity_threshold_percentage <= 100.0:
        raise ValueError("capacity_threshold_percentage must be in (0, 100]")
    if config.sanitization_cooldown_hours < 0.0:
        raise ValueError("sanitization_cooldown_hours must be >= 0")
    if config.sensor_recency_hours <= 0.0:
        raise ValueError("sensor_recency_hours must be > 0")
