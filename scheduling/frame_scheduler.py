"""Frame scheduling: a cancellable per-frame callback primitive.

A ``FrameScheduler`` plays the role of a display-refresh callback. Callers
request a single callback on the next frame and get back a ``FrameHandle``
that can cancel it. Frames requested while a frame is running are delivered
on the following frame, so a callback that re-requests itself forms a loop.

Every scheduler owns one re-entrant ``lock``. It is held while a frame
callback runs, and the cancelled flag of a handle is checked under it right
before the callback is invoked. Code that mutates state shared with frame
callbacks takes the same lock, which serializes it against frames and makes
"no callback after cancel" hold even when cancel comes from another thread.
"""

from __future__ import annotations

import itertools
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from app.events import ErrorCategory, ErrorSeverity, publish_error
from log_config.logger import get_logger, log_performance
from telemetry import TelemetryMonitor

logger = get_logger(__name__)

FrameCallback = Callable[[float], None]

DEFAULT_FRAME_RATE_HZ = 60.0

_handle_ids = itertools.count(1)


class FrameHandle:
    """Handle for one requested frame callback."""

    __slots__ = ("id", "callback", "cancelled")

    def __init__(self, callback: FrameCallback) -> None:
        self.id = next(_handle_ids)
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        return f"FrameHandle(id={self.id}, cancelled={self.cancelled})"


class FrameScheduler(ABC):
    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._pending: List[FrameHandle] = []
        self._closed = False

    @abstractmethod
    def now_ms(self) -> float:
        """Monotonic time in milliseconds."""

    def request_frame(self, callback: FrameCallback) -> FrameHandle:
        handle = FrameHandle(callback)
        with self.lock:
            if self._closed:
                logger.debug("Frame requested on closed scheduler; ignoring")
                handle.cancelled = True
                return handle
            self._pending.append(handle)
            self._on_frame_requested()
        return handle

    def cancel_frame(self, handle: Optional[FrameHandle]) -> None:
        if handle is None:
            return
        with self.lock:
            handle.cancel()

    @property
    def pending_count(self) -> int:
        with self.lock:
            return sum(1 for handle in self._pending if not handle.cancelled)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self.lock:
            self._closed = True
            for handle in self._pending:
                handle.cancel()
            self._pending = []

    def _on_frame_requested(self) -> None:
        pass

    def _take_batch(self) -> List[FrameHandle]:
        with self.lock:
            batch = self._pending
            self._pending = []
        return batch

    def _run_handle(self, handle: FrameHandle, frame_time_ms: float) -> bool:
        with self.lock:
            if handle.cancelled:
                return False
            # A handle fires at most once.
            handle.cancelled = True
            handle.callback(frame_time_ms)
        return True


class ManualFrameScheduler(FrameScheduler):
    """Scheduler driven by the host: frames run only on ``tick``.

    Used to integrate with an external render loop and for deterministic
    tests where the clock is advanced by hand.
    """

    def __init__(self, start_ms: float = 0.0, frame_interval_ms: float = 1000.0 / DEFAULT_FRAME_RATE_HZ) -> None:
        super().__init__()
        self._now_ms = float(start_ms)
        self.frame_interval_ms = frame_interval_ms
        self.frames_run = 0

    def now_ms(self) -> float:
        return self._now_ms

    def tick(self, now_ms: Optional[float] = None) -> int:
        """Advance the clock one frame and run the callbacks due on it.

        Returns:
            Number of callbacks invoked.
        """
        with self.lock:
            if now_ms is None:
                now_ms = self._now_ms + self.frame_interval_ms
            self._now_ms = max(self._now_ms, float(now_ms))
            batch = self._take_batch()
            self.frames_run += 1
            invoked = 0
            for handle in batch:
                if self._run_handle(handle, self._now_ms):
                    invoked += 1
            return invoked

    def advance(self, duration_ms: float) -> int:
        """Run frames at the configured interval until ``duration_ms`` elapses."""
        target = self._now_ms + duration_ms
        invoked = 0
        while self._now_ms + self.frame_interval_ms <= target + 1e-9:
            invoked += self.tick()
        if self._now_ms < target:
            invoked += self.tick(target)
        return invoked


class ThreadedFrameScheduler(FrameScheduler):
    """Scheduler backed by one worker thread paced at ``frame_rate_hz``.

    The thread starts on the first request and sleeps while nothing is
    pending. Exceptions raised by callbacks are logged and the loop carries on.
    """

    def __init__(
        self,
        frame_rate_hz: float = DEFAULT_FRAME_RATE_HZ,
        telemetry: Optional[TelemetryMonitor] = None,
        name: str = "FrameScheduler",
    ) -> None:
        super().__init__()
        if frame_rate_hz <= 0:
            raise ValueError(f"frame_rate_hz must be positive, got {frame_rate_hz}")
        self.frame_interval_s = 1.0 / frame_rate_hz
        self.telemetry = telemetry or TelemetryMonitor(slow_frame_ms=self.frame_interval_s * 1000.0)
        self._name = name
        self._thread: Optional[threading.Thread] = None
        self._wake = threading.Event()
        self._stop = threading.Event()

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def _on_frame_requested(self) -> None:
        # Called with the lock held.
        if self._thread is None:
            self._thread = threading.Thread(target=self._frame_loop, name=self._name, daemon=True)
            self._thread.start()
            logger.debug(f"{self._name} thread started at {1.0 / self.frame_interval_s:.0f} Hz")
        self._wake.set()

    def _frame_loop(self) -> None:
        next_frame = time.monotonic()
        while not self._stop.is_set():
            with self.lock:
                idle = not self._pending
                if idle:
                    self._wake.clear()
            if idle:
                self._wake.wait()
                next_frame = time.monotonic() + self.frame_interval_s
                continue

            delay = next_frame - time.monotonic()
            if delay > 0 and self._stop.wait(delay):
                break
            next_frame = max(next_frame + self.frame_interval_s, time.monotonic())
            self._run_frame()

    def _run_frame(self) -> None:
        frame_start = time.monotonic()
        frame_time_ms = frame_start * 1000.0
        for handle in self._take_batch():
            try:
                self._run_handle(handle, frame_time_ms)
            except Exception as e:
                logger.opt(exception=e).error(f"Error in frame callback: {e}")
                publish_error(
                    category=ErrorCategory.SCHEDULER,
                    severity=ErrorSeverity.ERROR,
                    message=f"Frame callback failed: {e}",
                    source=self._name,
                    exception=e,
                )
        duration_ms = (time.monotonic() - frame_start) * 1000.0
        if self.telemetry.record_frame(frame_time_ms, duration_ms):
            log_performance(f"{self._name} frame", duration_ms, self.telemetry.slow_frame_ms)

    def close(self) -> None:
        """Stop the frame thread. Safe to call more than once."""
        super().close()
        self._stop.set()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            logger.debug(f"{self._name} thread stopped")


_default_scheduler: Optional[ThreadedFrameScheduler] = None
_default_lock = threading.Lock()


def get_frame_scheduler() -> ThreadedFrameScheduler:
    """Get the process-wide threaded frame scheduler."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None or _default_scheduler.closed:
            _default_scheduler = ThreadedFrameScheduler(name="SharedFrameScheduler")
        return _default_scheduler


__all__ = [
    "DEFAULT_FRAME_RATE_HZ",
    "FrameCallback",
    "FrameHandle",
    "FrameScheduler",
    "ManualFrameScheduler",
    "ThreadedFrameScheduler",
    "get_frame_scheduler",
]
