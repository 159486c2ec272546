"""Shared data contracts for ride tracking."""

from .types import (
    EtaUpdate,
    LocationUpdate,
    Position,
    PositionUpdate,
    TrackingSnapshot,
    Velocity,
)

__all__ = [
    "EtaUpdate",
    "LocationUpdate",
    "Position",
    "PositionUpdate",
    "TrackingSnapshot",
    "Velocity",
]
