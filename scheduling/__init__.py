"""Frame scheduling package."""

from scheduling.frame_scheduler import (
    DEFAULT_FRAME_RATE_HZ,
    FrameCallback,
    FrameHandle,
    FrameScheduler,
    ManualFrameScheduler,
    ThreadedFrameScheduler,
    get_frame_scheduler,
)

__all__ = [
    "DEFAULT_FRAME_RATE_HZ",
    "FrameCallback",
    "FrameHandle",
    "FrameScheduler",
    "ManualFrameScheduler",
    "ThreadedFrameScheduler",
    "get_frame_scheduler",
]
