"""Configuration loading for ride tracking."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")
ANIMATION_DURATION_ENV = "RIDETRACK_ANIMATION_DURATION"


@dataclass(frozen=True)
class TrackingConfig:
    animation_duration_ms: float = 3000.0
    prediction_enabled: bool = True
    prediction_horizon_ms: float = 100.0
    history_size: int = 5


@dataclass(frozen=True)
class SchedulerConfig:
    frame_rate_hz: float = 60.0


@dataclass(frozen=True)
class TelemetryConfig:
    max_samples: int = 600
    slow_frame_ms: float = 16.7


@dataclass(frozen=True)
class RideFeedConfig:
    average_speed_kmh: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    ride_feed: RideFeedConfig = field(default_factory=RideFeedConfig)


def _animation_duration_override() -> Optional[int]:
    raw = os.environ.get(ANIMATION_DURATION_ENV)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {ANIMATION_DURATION_ENV}={raw!r}: not an integer")
        return None
    if value <= 0:
        logger.warning(f"Ignoring {ANIMATION_DURATION_ENV}={raw!r}: must be positive")
        return None
    return value


def build_config(data: Optional[Dict[str, Any]] = None) -> AppConfig:
    """Validate a raw configuration mapping and build an ``AppConfig``.

    Missing sections and keys take their schema defaults. The
    ``RIDETRACK_ANIMATION_DURATION`` environment variable, when it holds a
    positive integer, overrides ``tracking.animation_duration_ms``.

    Raises:
        ConfigError: If the mapping is invalid
    """
    data = dict(data or {})
    validate_config(data)

    override = _animation_duration_override()
    if override is not None:
        data["tracking"] = {**data["tracking"], "animation_duration_ms": override}

    try:
        config = AppConfig(
            tracking=TrackingConfig(**data["tracking"]),
            scheduler=SchedulerConfig(**data["scheduler"]),
            telemetry=TelemetryConfig(**data["telemetry"]),
            ride_feed=RideFeedConfig(**data["ride_feed"]),
        )
    except (KeyError, TypeError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.debug(
        f"Configuration built: animation {config.tracking.animation_duration_ms}ms, "
        f"prediction {'on' if config.tracking.prediction_enabled else 'off'}, "
        f"{config.scheduler.frame_rate_hz}Hz"
    )
    return config


def default_config() -> AppConfig:
    """Defaults without reading any file."""
    return build_config({})


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    path = Path(path)
    logger.info(f"Loading configuration from {path}")
    if not path.exists():
        raise InvalidConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidConfigError(f"Configuration root must be a mapping, got {type(data).__name__}")

    return build_config(data)


__all__ = [
    "AppConfig",
    "ConfigError",
    "RideFeedConfig",
    "SchedulerConfig",
    "TelemetryConfig",
    "TrackingConfig",
    "build_config",
    "default_config",
    "load_config",
]
