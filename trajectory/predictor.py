"""Predict the next position from recent position history.

Velocity comes from the two most recent samples; ``weighted_prediction``
averages every segment of the window with linearly increasing weights so the
newest segment counts most. Degenerate input (too few samples, zero or
negative time deltas) resolves to zero velocity or the last known position
instead of raising.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Deque, List, Optional, Sequence

from contracts import Position, Velocity
from trajectory.geo import calculate_bearing, haversine_km

MAX_SPEED_KMH = 200.0
DEFAULT_HISTORY_SIZE = 5
DEFAULT_PREDICT_MS = 1000.0

_MS_PER_HOUR = 1000.0 * 60 * 60


def _time_diff(prev: Position, curr: Position) -> float:
    if prev.timestamp is None or curr.timestamp is None:
        return 0.0
    return curr.timestamp - prev.timestamp


def calculate_velocity(positions: Optional[Sequence[Position]]) -> Velocity:
    """Velocity from the last two samples of ``positions``."""
    if not positions or len(positions) < 2:
        return Velocity()

    prev, curr = positions[-2], positions[-1]
    time_diff = _time_diff(prev, curr)
    if time_diff <= 0:
        return Velocity(heading=curr.heading or 0.0)

    distance_km = haversine_km(prev.lat, prev.lng, curr.lat, curr.lng)
    speed_kmh = distance_km / (time_diff / _MS_PER_HOUR)

    return Velocity(
        lat_per_ms=(curr.lat - prev.lat) / time_diff,
        lng_per_ms=(curr.lng - prev.lng) / time_diff,
        speed_kmh=max(0.0, min(speed_kmh, MAX_SPEED_KMH)),
        heading=calculate_bearing(prev.lat, prev.lng, curr.lat, curr.lng),
    )


def predict_position(
    current: Position, velocity: Optional[Velocity], predict_ms: float = DEFAULT_PREDICT_MS
) -> Position:
    """Linear extrapolation ``current + velocity * predict_ms``."""
    if velocity is None or velocity.is_zero:
        heading = current.heading
        if not heading:
            heading = velocity.heading if velocity is not None else 0.0
        return Position(lat=current.lat, lng=current.lng, heading=heading or 0.0)

    return Position(
        lat=current.lat + velocity.lat_per_ms * predict_ms,
        lng=current.lng + velocity.lng_per_ms * predict_ms,
        heading=velocity.heading,
    )


def weighted_prediction(
    positions: Optional[Sequence[Position]], predict_ms: float = DEFAULT_PREDICT_MS
) -> Position:
    """Extrapolate from the last sample with a recency-weighted mean velocity."""
    if not positions:
        return Position(lat=0.0, lng=0.0, heading=0.0)
    if len(positions) < 2:
        return positions[0]

    weighted_lat = 0.0
    weighted_lng = 0.0
    total_weight = 0
    for i in range(1, len(positions)):
        prev, curr = positions[i - 1], positions[i]
        time_diff = _time_diff(prev, curr)
        if time_diff > 0:
            weighted_lat += (curr.lat - prev.lat) / time_diff * i
            weighted_lng += (curr.lng - prev.lng) / time_diff * i
            total_weight += i

    last = positions[-1]
    if total_weight == 0:
        return last

    before_last = positions[-2]
    return Position(
        lat=last.lat + weighted_lat / total_weight * predict_ms,
        lng=last.lng + weighted_lng / total_weight * predict_ms,
        heading=calculate_bearing(before_last.lat, before_last.lng, last.lat, last.lng),
    )


class PositionPredictor:
    """Bounded FIFO position history with velocity and prediction queries."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 1:
            raise ValueError(f"history_size must be at least 1, got {history_size}")
        self.history_size = history_size
        self._history: Deque[Position] = deque(maxlen=history_size)

    def add_position(self, position: Position) -> None:
        timestamp = position.timestamp
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        self._history.append(
            Position(lat=position.lat, lng=position.lng, heading=position.heading, timestamp=timestamp)
        )

    def predict(self, predict_ms: float = DEFAULT_PREDICT_MS) -> Position:
        return weighted_prediction(list(self._history), predict_ms)

    def get_velocity(self) -> Velocity:
        return calculate_velocity(list(self._history))

    def get_history(self) -> List[Position]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)


def create_predictor(history_size: int = DEFAULT_HISTORY_SIZE) -> PositionPredictor:
    return PositionPredictor(history_size)


__all__ = [
    "DEFAULT_HISTORY_SIZE",
    "MAX_SPEED_KMH",
    "PositionPredictor",
    "calculate_velocity",
    "create_predictor",
    "predict_position",
    "weighted_prediction",
]
