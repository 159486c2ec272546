"""Custom exception classes for RideTrack."""

from __future__ import annotations

from typing import Any, Optional


class RideTrackError(Exception):
    """Base exception for all RideTrack errors."""

    pass


class TrackingError(RideTrackError):
    """Base exception for tracking-related errors."""

    pass


class InvalidLocationError(TrackingError):
    """Raised (or reported) when a location sample has unusable coordinates."""

    def __init__(self, message: str, location: Optional[Any] = None):
        self.location = location
        super().__init__(message)


class PolylineDecodeError(RideTrackError):
    """Raised when an encoded polyline is truncated or malformed."""

    pass


class ConfigError(RideTrackError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)


__all__ = [
    "RideTrackError",
    "TrackingError",
    "InvalidLocationError",
    "PolylineDecodeError",
    "ConfigError",
    "InvalidConfigError",
    "ConfigValidationError",
]
