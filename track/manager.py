"""TrackingManager: turns sparse location reports into per-frame motion.

Each real update is recorded into a ``PositionPredictor`` and animated from
the displayed position to the new target. While the manager is running, a
prediction loop nudges the displayed position along the estimated velocity
whenever updates lag, so the marker never visibly stalls between reports.

All state is owned by the manager and mutated only under the frame
scheduler's lock: from ``update_location``, from an animation frame, or from a
prediction frame. Those never overlap, and a newer update always cancels the
animation in flight.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from app.events import ErrorCategory, ErrorSeverity, publish_error
from configs.settings import TrackingConfig
from contracts import EtaUpdate, LocationUpdate, Position, PositionUpdate, TrackingSnapshot
from exceptions import InvalidLocationError
from log_config.logger import get_logger
from scheduling import FrameHandle, FrameScheduler, ThreadedFrameScheduler
from trajectory.geo import is_finite_number
from trajectory.interpolator import (
    EASE_OUT,
    AnimationHandle,
    animate_position,
    interpolate_heading,
    interpolate_position,
    normalize_heading,
)
from trajectory.predictor import DEFAULT_HISTORY_SIZE, PositionPredictor

logger = get_logger(__name__)

DEFAULT_ANIMATION_DURATION_MS = 3000.0
DEFAULT_PREDICTION_HORIZON_MS = 100.0

# Prediction starts once this fraction of the animation duration has passed
# without a real update.
PREDICTION_DELAY_RATIO = 0.8
# Blend toward the predicted point: min(elapsed / (2 * duration), 0.3)
PREDICTION_BLEND_SPAN_RATIO = 2.0
PREDICTION_MAX_BLEND = 0.3

PositionCallback = Callable[[PositionUpdate], None]
EtaCallback = Callable[[EtaUpdate], None]
ErrorCallback = Callable[[InvalidLocationError], None]


class TrackerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class MotionPhase(str, Enum):
    AWAITING_TARGET = "awaiting_target"
    ANIMATING = "animating"
    SETTLED = "settled"
    PREDICTING = "predicting"


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


def _publish_tracking_error(error: InvalidLocationError) -> None:
    publish_error(
        category=ErrorCategory.TRACKING,
        severity=ErrorSeverity.WARNING,
        message=str(error),
        source="TrackingManager",
        exception=error,
    )


class TrackingManager:
    """Coordinates interpolation and prediction for one tracked vehicle."""

    def __init__(
        self,
        animation_duration_ms: Optional[float] = None,
        prediction_enabled: bool = True,
        on_position_update: Optional[PositionCallback] = None,
        on_eta_update: Optional[EtaCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        scheduler: Optional[FrameScheduler] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        prediction_horizon_ms: float = DEFAULT_PREDICTION_HORIZON_MS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            animation_duration_ms: Time to glide between two real updates
            prediction_enabled: Run the prediction loop while started
            on_position_update: Called with a ``PositionUpdate`` per frame
            on_eta_update: Called with an ``EtaUpdate`` when ETA data arrives
            on_error: Called with an ``InvalidLocationError`` for bad input;
                defaults to publishing on the error bus
            scheduler: Frame scheduler; a private threaded one when None
            history_size: Samples kept for velocity estimation
            prediction_horizon_ms: How far ahead the prediction loop looks
            clock: Wall-clock milliseconds, used for missing timestamps and
                to measure time since the last update
        """
        self.animation_duration_ms = float(animation_duration_ms or DEFAULT_ANIMATION_DURATION_MS)
        self.prediction_enabled = prediction_enabled
        self.prediction_horizon_ms = prediction_horizon_ms
        self.on_position_update: PositionCallback = on_position_update or (lambda update: None)
        self.on_eta_update: EtaCallback = on_eta_update or (lambda update: None)
        self.on_error: ErrorCallback = on_error or _publish_tracking_error

        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or ThreadedFrameScheduler(name="TrackingManagerFrames")
        self._clock = clock or _wall_clock_ms
        self._lock = self._scheduler.lock

        self.predictor = PositionPredictor(history_size)
        self._state = TrackerState.IDLE
        self._phase = MotionPhase.AWAITING_TARGET
        self._destroyed = False
        self._animation: Optional[AnimationHandle] = None
        self._prediction_frame: Optional[FrameHandle] = None

        self.current_position: Optional[Position] = None
        self.target_position: Optional[Position] = None
        self.current_heading = 0.0
        self.is_animating = False
        self.last_update_time = 0.0
        self.eta: Any = None
        self.distance: Any = None
        self.speed = 0.0

    @classmethod
    def from_config(cls, config: TrackingConfig, **kwargs: Any) -> "TrackingManager":
        return cls(
            animation_duration_ms=config.animation_duration_ms,
            prediction_enabled=config.prediction_enabled,
            history_size=config.history_size,
            prediction_horizon_ms=config.prediction_horizon_ms,
            **kwargs,
        )

    @property
    def scheduler(self) -> FrameScheduler:
        return self._scheduler

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def phase(self) -> MotionPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._state is TrackerState.RUNNING

    # Lifecycle

    def start(self) -> None:
        with self._lock:
            if self._destroyed or self._state is TrackerState.RUNNING:
                return
            self._state = TrackerState.RUNNING
            if self.prediction_enabled:
                self._prediction_frame = self._scheduler.request_frame(self._prediction_tick)
        logger.info(f"Tracking started (animation {self.animation_duration_ms:.0f}ms, prediction {'on' if self.prediction_enabled else 'off'})")

    def stop(self) -> None:
        with self._lock:
            was_running = self._state is TrackerState.RUNNING
            if was_running:
                self._state = TrackerState.STOPPED
            self._cancel_animation()
            self._scheduler.cancel_frame(self._prediction_frame)
            self._prediction_frame = None
        if was_running:
            logger.info("Tracking stopped")

    def reset(self) -> None:
        """Forget all position state and history; the running state is kept."""
        with self._lock:
            self._cancel_animation()
            self.current_position = None
            self.target_position = None
            self.current_heading = 0.0
            self.eta = None
            self.distance = None
            self.speed = 0.0
            self.last_update_time = 0.0
            self.predictor.clear()
            self._phase = MotionPhase.AWAITING_TARGET

    def destroy(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self.stop()
            self.reset()
            self._destroyed = True
        if self._owns_scheduler:
            self._scheduler.close()
        logger.info("Tracking manager destroyed")

    # Updates

    def update_location(self, location: Union[LocationUpdate, Mapping[str, Any]]) -> None:
        """Feed one location report.

        Invalid coordinates are passed to ``on_error`` and change nothing.
        The first valid report is shown immediately; later ones are animated
        to, cancelling any animation still in flight.
        """
        if self._destroyed:
            return
        if not isinstance(location, LocationUpdate):
            if not isinstance(location, Mapping):
                self._report_invalid("Invalid location data received: expected a mapping", location)
                return
            location = LocationUpdate.from_mapping(location)

        with self._lock:
            if self._destroyed:
                return
            if not (is_finite_number(location.lat) and is_finite_number(location.lng)):
                self._report_invalid(
                    f"Invalid location data received: lat={location.lat!r}, lng={location.lng!r}", location
                )
                return

            heading = normalize_heading(location.heading) if is_finite_number(location.heading) else None
            timestamp = location.timestamp if is_finite_number(location.timestamp) else self._clock()

            self.predictor.add_position(
                Position(lat=location.lat, lng=location.lng, heading=heading, timestamp=timestamp)
            )

            self.speed = location.speed if is_finite_number(location.speed) else 0.0
            self.eta = location.eta
            self.distance = location.distance
            self.last_update_time = timestamp

            if location.eta is not None:
                self.on_eta_update(EtaUpdate(eta=location.eta, distance=location.distance, speed=self.speed))

            new_position = Position(
                lat=location.lat,
                lng=location.lng,
                heading=heading if heading is not None else self.current_heading,
                timestamp=timestamp,
            )

            if self.current_position is None:
                self.current_position = new_position
                self.current_heading = heading if heading is not None else 0.0
                self._phase = MotionPhase.SETTLED
                logger.info(f"Initial fix at {location.lat:.6f},{location.lng:.6f}")
                self.on_position_update(
                    PositionUpdate(
                        lat=new_position.lat,
                        lng=new_position.lng,
                        heading=self.current_heading,
                        is_initial=True,
                    )
                )
                return

            self.target_position = new_position
            self._animate_to_target()

    def _report_invalid(self, message: str, location: Any) -> None:
        logger.warning(message)
        self.on_error(InvalidLocationError(message, location=location))

    # Animation

    def _animate_to_target(self) -> None:
        if self.target_position is None or self.current_position is None:
            return

        self._cancel_animation()

        start = Position(
            lat=self.current_position.lat,
            lng=self.current_position.lng,
            heading=self.current_heading,
        )
        target = self.target_position

        self.is_animating = True
        self._phase = MotionPhase.ANIMATING
        self._animation = animate_position(
            start,
            target,
            self.animation_duration_ms,
            self._on_animation_frame,
            lambda: self._on_animation_complete(target),
            scheduler=self._scheduler,
        )

    def _on_animation_frame(self, frame: Position) -> None:
        if frame.heading is not None:
            self.current_heading = frame.heading
        self.current_position = Position(lat=frame.lat, lng=frame.lng, heading=self.current_heading)
        self.on_position_update(
            PositionUpdate(
                lat=frame.lat,
                lng=frame.lng,
                heading=self.current_heading,
                is_animating=True,
            )
        )

    def _on_animation_complete(self, target: Position) -> None:
        self.is_animating = False
        self._animation = None
        self.current_position = target
        if target.heading is not None:
            self.current_heading = target.heading
        self._phase = MotionPhase.SETTLED

    def _cancel_animation(self) -> None:
        if self._animation is not None:
            self._animation.cancel()
            self._animation = None
        self.is_animating = False

    # Prediction

    def _prediction_tick(self, frame_time_ms: float) -> None:
        if self._state is not TrackerState.RUNNING:
            return

        if not self.is_animating and self.current_position is not None and len(self.predictor) >= 2:
            elapsed = self._clock() - self.last_update_time
            if elapsed > self.animation_duration_ms * PREDICTION_DELAY_RATIO:
                self._blend_toward_prediction(elapsed)

        # The position callback may have stopped or destroyed us
        if self._state is TrackerState.RUNNING:
            self._prediction_frame = self._scheduler.request_frame(self._prediction_tick)

    def _blend_toward_prediction(self, elapsed_ms: float) -> None:
        predicted = self.predictor.predict(self.prediction_horizon_ms)
        t = min(elapsed_ms / (self.animation_duration_ms * PREDICTION_BLEND_SPAN_RATIO), PREDICTION_MAX_BLEND)

        smoothed = interpolate_position(self.current_position, predicted, t, EASE_OUT)
        target_heading = predicted.heading if predicted.heading else self.current_heading
        self.current_heading = interpolate_heading(self.current_heading, target_heading, t)
        self.current_position = Position(lat=smoothed.lat, lng=smoothed.lng, heading=self.current_heading)
        self._phase = MotionPhase.PREDICTING

        self.on_position_update(
            PositionUpdate(
                lat=smoothed.lat,
                lng=smoothed.lng,
                heading=self.current_heading,
                is_predicted=True,
            )
        )

    # Queries

    def get_state(self) -> TrackingSnapshot:
        with self._lock:
            return TrackingSnapshot(
                position=self.current_position,
                target_position=self.target_position,
                heading=self.current_heading,
                speed=self.speed,
                eta=self.eta,
                distance=self.distance,
                is_animating=self.is_animating,
                last_update_time=self.last_update_time,
                state=self._state.value,
                phase=self._phase.value,
                is_destroyed=self._destroyed,
            )


def create_tracking_manager(**options: Any) -> TrackingManager:
    return TrackingManager(**options)


__all__ = [
    "DEFAULT_ANIMATION_DURATION_MS",
    "MotionPhase",
    "TrackerState",
    "TrackingManager",
    "create_tracking_manager",
]
