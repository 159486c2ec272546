"""Configuration validation using JSON Schema."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import jsonschema
import yaml
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "tracking": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "animation_duration_ms": {"type": "number", "exclusiveMinimum": 0, "maximum": 60000, "default": 3000},
                "prediction_enabled": {"type": "boolean", "default": True},
                "prediction_horizon_ms": {"type": "number", "minimum": 0, "maximum": 10000, "default": 100},
                "history_size": {"type": "integer", "minimum": 2, "maximum": 100, "default": 5},
            },
        },
        "scheduler": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "frame_rate_hz": {"type": "number", "minimum": 1, "maximum": 240, "default": 60},
            },
        },
        "telemetry": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "max_samples": {"type": "integer", "minimum": 1, "maximum": 100000, "default": 600},
                "slow_frame_ms": {"type": "number", "exclusiveMinimum": 0, "default": 16.7},
            },
        },
        "ride_feed": {
            "type": "object",
            "default": {},
            "additionalProperties": False,
            "properties": {
                "average_speed_kmh": {"type": "number", "exclusiveMinimum": 0, "maximum": 200, "default": 30},
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        for prop, subschema in properties.items():
            if "default" in subschema:
                instance.setdefault(prop, copy.deepcopy(subschema["default"]))

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema, filling in defaults in place.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))
    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")

    if errors:
        error_messages = []
        for error in errors:
            path = " -> ".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")

        logger.error(f"Configuration validation failed with {len(errors)} errors")
        for msg in error_messages:
            logger.error(f"  - {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
            validation_errors=error_messages,
        )

    logger.debug("Configuration validation passed")


def validate_config_file(config_path: str) -> None:
    """Validate a YAML configuration file.

    Raises:
        ConfigValidationError: If the file is missing, unparsable or invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigValidationError(f"Configuration file not found: {config_path}")

    try:
        config = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Failed to parse YAML: {e}")

    validate_config(config)
