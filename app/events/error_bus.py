"""Process-wide error event bus.

Tracking components report recoverable problems here (bad location samples,
failing frame callbacks, unreadable feed payloads) instead of raising, and
anything interested (a UI banner, a metrics sink, a test) subscribes.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"  # input dropped, tracking continues
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    TRACKING = "tracking"
    FEED = "feed"
    SCHEDULER = "scheduler"
    CONFIG = "config"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

ErrorSubscriber = Callable[["ErrorEvent"], None]


@dataclass
class ErrorEvent:
    """One reported problem and its context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[Exception] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: {self.message}{exc_info}"


class ErrorEventBus:
    """Publish-subscribe hub for ``ErrorEvent``s with a bounded history."""

    def __init__(self, max_history: int = 100):
        self._subscribers: Dict[ErrorCategory, List[ErrorSubscriber]] = {}
        self._all_subscribers: List[ErrorSubscriber] = []
        self._lock = threading.Lock()
        self._history: Deque[ErrorEvent] = deque(maxlen=max_history)
        self._counts: Dict[ErrorCategory, int] = {}

    def subscribe(self, callback: ErrorSubscriber, category: Optional[ErrorCategory] = None) -> None:
        """Subscribe to one category, or to every event when ``category`` is None."""
        with self._lock:
            if category is None:
                self._all_subscribers.append(callback)
            else:
                self._subscribers.setdefault(category, []).append(callback)
        target = category.value if category else "all"
        logger.debug(f"Subscribed to {target} errors: {getattr(callback, '__name__', repr(callback))}")

    def unsubscribe(self, callback: ErrorSubscriber, category: Optional[ErrorCategory] = None) -> bool:
        """Remove a subscription. Returns True if it existed."""
        with self._lock:
            pool = self._all_subscribers if category is None else self._subscribers.get(category, [])
            if callback not in pool:
                return False
            pool.remove(callback)
        return True

    def publish(self, event: ErrorEvent) -> None:
        with self._lock:
            self._history.append(event)
            self._counts[event.category] = self._counts.get(event.category, 0) + 1
            subscribers = self._subscribers.get(event.category, []) + self._all_subscribers

        logger.log(_LOG_LEVELS[event.severity], str(event), exc_info=event.exception)

        # Called outside the lock so subscribers may publish in turn
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event subscriber {getattr(callback, '__name__', callback)}: {e}", exc_info=True)

    def get_history(self, category: Optional[ErrorCategory] = None, limit: int = 100) -> List[ErrorEvent]:
        with self._lock:
            history = list(self._history)
        if category is not None:
            history = [e for e in history if e.category == category]
        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        with self._lock:
            return dict(self._counts)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            self._counts.clear()


_error_bus: Optional[ErrorEventBus] = None
_bus_lock = threading.Lock()


def get_error_bus() -> ErrorEventBus:
    """Get the global error event bus, creating it on first use."""
    global _error_bus
    if _error_bus is None:
        with _bus_lock:
            if _error_bus is None:
                _error_bus = ErrorEventBus()
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[Exception] = None,
    **metadata: Any,
) -> ErrorEvent:
    """Build an ``ErrorEvent`` and publish it on the global bus."""
    event = ErrorEvent(
        category=category,
        severity=severity,
        message=message,
        source=source,
        exception=exception,
        metadata=metadata,
    )
    get_error_bus().publish(event)
    return event


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "get_error_bus",
    "publish_error",
]
