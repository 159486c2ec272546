"""Real-time tracking coordinator package."""

from track.manager import (
    DEFAULT_ANIMATION_DURATION_MS,
    MotionPhase,
    TrackerState,
    TrackingManager,
    create_tracking_manager,
)
from track.ride_feed import RideLocationFeed

__all__ = [
    "DEFAULT_ANIMATION_DURATION_MS",
    "MotionPhase",
    "RideLocationFeed",
    "TrackerState",
    "TrackingManager",
    "create_tracking_manager",
]
