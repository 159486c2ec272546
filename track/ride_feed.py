"""Adapter from ride channel events to ``TrackingManager.update_location``.

The realtime channel emits two payload shapes for a driver's position:

- ``driver-location``: flat ``{rideId, lat, lng, heading, speed, eta,
  distance, timestamp, ...}``
- ``driver-location-update``: ``{rideId, location: {ltd|lat, lng}}``

Events for other rides are ignored.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from app.events import ErrorCategory, ErrorSeverity, publish_error
from log_config.logger import get_logger
from track.manager import TrackingManager
from trajectory.geo import DEFAULT_AVERAGE_SPEED_KMH, calculate_distance, calculate_eta, is_finite_number

logger = get_logger(__name__)

LOCATION_EVENT = "driver-location"
LEGACY_LOCATION_EVENT = "driver-location-update"


class RideLocationFeed:
    def __init__(
        self,
        ride_id: str,
        manager: TrackingManager,
        destination: Optional[Sequence[float]] = None,
        average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Bind a feed to one ride.

        Args:
            ride_id: Ride whose events are forwarded
            manager: Tracking manager receiving the updates
            destination: ``[lng, lat]`` used to estimate ETA when events lack one
            average_speed_kmh: Speed assumed for local ETA when the event has none
            clock: Wall-clock milliseconds for events without a timestamp
        """
        self.ride_id = ride_id
        self.manager = manager
        self.destination = list(destination) if destination is not None else None
        self.average_speed_kmh = average_speed_kmh
        self._clock = clock or (lambda: time.time() * 1000.0)
        self._last_update: Optional[datetime] = None
        self._events_handled = 0
        self._closed = False

    @property
    def is_tracking(self) -> bool:
        return not self._closed

    @property
    def last_update(self) -> Optional[datetime]:
        return self._last_update

    @property
    def events_handled(self) -> int:
        return self._events_handled

    def close(self) -> None:
        self._closed = True

    def dispatch(self, event: str, payload: Mapping[str, Any]) -> bool:
        """Route a named channel event; unrelated event names are ignored."""
        if event not in (LOCATION_EVENT, LEGACY_LOCATION_EVENT):
            return False
        return self.handle_event(payload)

    def handle_event(self, payload: Mapping[str, Any]) -> bool:
        """Forward one channel payload. Returns True if it was for this ride."""
        if self._closed:
            return False
        if not isinstance(payload, Mapping):
            publish_error(
                category=ErrorCategory.FEED,
                severity=ErrorSeverity.WARNING,
                message=f"Dropped non-mapping payload of type {type(payload).__name__}",
                source="RideLocationFeed",
                ride_id=self.ride_id,
            )
            return False
        if str(payload.get("rideId")) != str(self.ride_id):
            return False

        update = self._to_update(payload)
        self.manager.update_location(update)
        self._events_handled += 1
        self._last_update = datetime.now()
        return True

    def _to_update(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        location = payload.get("location")
        if isinstance(location, Mapping):
            lat = location.get("ltd", location.get("lat"))
            lng = location.get("lng")
        else:
            lat = payload.get("lat")
            lng = payload.get("lng")

        update: Dict[str, Any] = {
            "lat": lat,
            "lng": lng,
            "heading": payload.get("heading"),
            "speed": payload.get("speed"),
            "eta": payload.get("eta"),
            "distance": payload.get("distance"),
            "timestamp": payload.get("timestamp", self._clock()),
        }

        if update["eta"] is None and self.destination is not None and is_finite_number(lat) and is_finite_number(lng):
            distance_m = calculate_distance([lng, lat], self.destination)
            speed = payload.get("speed")
            if not is_finite_number(speed) or speed <= 0:
                speed = self.average_speed_kmh
            update["distance"] = distance_m
            update["eta"] = calculate_eta(distance_m, speed)
            logger.debug(f"Ride {self.ride_id}: local ETA {update['eta']} min over {distance_m:.0f} m")

        return update


__all__ = ["LEGACY_LOCATION_EVENT", "LOCATION_EVENT", "RideLocationFeed"]
