"""Smooth movement between two known positions.

Latitude and longitude are interpolated independently in degrees with no
reprojection. Headings are interpolated modulo 360 along the shorter arc.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from contracts import Position
from log_config.logger import get_logger
from scheduling import FrameHandle, FrameScheduler, get_frame_scheduler

logger = get_logger(__name__)

EASE_LINEAR = "linear"
EASE_OUT = "easeOut"
EASE_IN_OUT = "easeInOut"


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def ease_out_cubic(t: float) -> float:
    return 1 - (1 - t) ** 3


def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


EASING_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    EASE_LINEAR: lambda t: t,
    EASE_OUT: ease_out_cubic,
    EASE_IN_OUT: ease_in_out_cubic,
}


def normalize_heading(heading: float) -> float:
    result = heading % 360.0
    # Tiny negative inputs round up to exactly 360.0
    return 0.0 if result >= 360.0 else result


def interpolate_position(from_pos: Any, to_pos: Any, t: float, easing: str = EASE_OUT) -> Position:
    """Interpolate lat/lng between two positions after applying ``easing`` to ``t``.

    Args:
        from_pos: Start, any object with ``lat`` and ``lng``
        to_pos: End, any object with ``lat`` and ``lng``
        t: Progress, expected in [0, 1]
        easing: ``"linear"``, ``"easeOut"`` or ``"easeInOut"``

    Returns:
        Interpolated position without heading
    """
    ease = EASING_FUNCTIONS.get(easing)
    if ease is None:
        logger.warning(f"Unknown easing '{easing}', treated as linear")
        ease = EASING_FUNCTIONS[EASE_LINEAR]
    eased_t = ease(t)
    return Position(
        lat=lerp(from_pos.lat, to_pos.lat, eased_t),
        lng=lerp(from_pos.lng, to_pos.lng, eased_t),
    )


def interpolate_heading(from_heading: float, to_heading: float, t: float) -> float:
    """Rotate from one heading toward another along the shorter arc."""
    from_heading = normalize_heading(from_heading)
    to_heading = normalize_heading(to_heading)

    diff = to_heading - from_heading
    if diff > 180:
        diff -= 360
    if diff < -180:
        diff += 360

    return normalize_heading(from_heading + diff * ease_out_cubic(t))


def cubic_bezier(p0: Any, p1: Any, p2: Any, p3: Any, t: float) -> Position:
    """Point on the cubic Bezier curve through control points p0..p3."""
    t2 = t * t
    t3 = t2 * t
    mt = 1 - t
    mt2 = mt * mt
    mt3 = mt2 * mt
    return Position(
        lat=mt3 * p0.lat + 3 * mt2 * t * p1.lat + 3 * mt * t2 * p2.lat + t3 * p3.lat,
        lng=mt3 * p0.lng + 3 * mt2 * t * p1.lng + 3 * mt * t2 * p2.lng + t3 * p3.lng,
    )


class AnimationHandle:
    """Cancellation handle returned by ``animate_position``."""

    def __init__(self, scheduler: FrameScheduler) -> None:
        self._scheduler = scheduler
        self._frame: Optional[FrameHandle] = None
        self.cancelled = False
        self.completed = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.completed)

    def cancel(self) -> None:
        with self._scheduler.lock:
            self.cancelled = True
            self._scheduler.cancel_frame(self._frame)
            self._frame = None


def animate_position(
    from_pos: Any,
    to_pos: Any,
    duration_ms: float,
    on_update: Callable[[Position], None],
    on_complete: Optional[Callable[[], None]] = None,
    scheduler: Optional[FrameScheduler] = None,
) -> AnimationHandle:
    """Animate from one position to another, one ``on_update`` per frame.

    Progress is measured on the scheduler's monotonic clock and eased with
    ``ease_out_cubic``. ``on_complete`` fires once, after the frame where
    progress reaches 1. Nothing fires after the returned handle is cancelled.
    """
    scheduler = scheduler or get_frame_scheduler()
    handle = AnimationHandle(scheduler)
    start_time = scheduler.now_ms()

    from_heading = getattr(from_pos, "heading", None)
    to_heading = getattr(to_pos, "heading", None)

    def animate(frame_time_ms: float) -> None:
        if handle.cancelled:
            return

        elapsed = frame_time_ms - start_time
        progress = min(elapsed / duration_ms, 1.0) if duration_ms > 0 else 1.0
        eased = ease_out_cubic(progress)

        if from_heading is not None and to_heading is not None:
            heading = interpolate_heading(from_heading, to_heading, progress)
        else:
            heading = to_heading

        on_update(
            Position(
                lat=lerp(from_pos.lat, to_pos.lat, eased),
                lng=lerp(from_pos.lng, to_pos.lng, eased),
                heading=heading,
            )
        )

        # on_update may have cancelled us
        if handle.cancelled:
            return
        if progress < 1:
            handle._frame = scheduler.request_frame(animate)
        else:
            handle.completed = True
            handle._frame = None
            if on_complete is not None:
                on_complete()

    with scheduler.lock:
        handle._frame = scheduler.request_frame(animate)
    return handle


__all__ = [
    "EASE_IN_OUT",
    "EASE_LINEAR",
    "EASE_OUT",
    "EASING_FUNCTIONS",
    "AnimationHandle",
    "animate_position",
    "cubic_bezier",
    "ease_in_out_cubic",
    "ease_out_cubic",
    "interpolate_heading",
    "interpolate_position",
    "lerp",
    "normalize_heading",
]
