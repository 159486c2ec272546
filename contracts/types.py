"""Core data contracts for location samples, velocity and tracking output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float
    heading: Optional[float] = None
    timestamp: Optional[float] = None  # epoch ms


@dataclass(frozen=True)
class Velocity:
    lat_per_ms: float = 0.0
    lng_per_ms: float = 0.0
    speed_kmh: float = 0.0  # clamped to [0, 200]
    heading: float = 0.0

    @property
    def is_zero(self) -> bool:
        return self.lat_per_ms == 0 and self.lng_per_ms == 0


@dataclass(frozen=True)
class LocationUpdate:
    """Inbound location event as delivered by the messaging channel.

    Fields are left untyped at runtime; the tracking manager validates them.
    """

    lat: Any
    lng: Any
    heading: Any = None
    speed: Any = None
    eta: Any = None
    distance: Any = None
    timestamp: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LocationUpdate":
        return cls(
            lat=data.get("lat"),
            lng=data.get("lng"),
            heading=data.get("heading"),
            speed=data.get("speed"),
            eta=data.get("eta"),
            distance=data.get("distance"),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class PositionUpdate:
    lat: float
    lng: float
    heading: float
    is_initial: bool = False
    is_animating: bool = False
    is_predicted: bool = False


@dataclass(frozen=True)
class EtaUpdate:
    eta: Any
    distance: Any
    speed: float


@dataclass(frozen=True)
class TrackingSnapshot:
    position: Optional[Position]
    target_position: Optional[Position]
    heading: float
    speed: float
    eta: Any
    distance: Any
    is_animating: bool
    last_update_time: float
    state: str
    phase: str
    is_destroyed: bool = False
