"""Telemetry tracking for frame cadence and callback latency."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


@dataclass
class LatencyStats:
    p50_ms: float
    p95_ms: float
    max_ms: float


@dataclass
class TelemetrySnapshot:
    frames: int
    slow_frames: int
    fps: float
    latency: LatencyStats


@dataclass
class TelemetryMonitor:
    max_samples: int = 600
    slow_frame_ms: float = 16.7
    frame_count: int = 0
    slow_frame_count: int = 0
    latency_samples_ms: Deque[float] = field(default_factory=deque)
    _first_frame_ms: Optional[float] = None
    _last_frame_ms: Optional[float] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_latency_ms(self, value: float) -> None:
        with self._lock:
            self.latency_samples_ms.append(value)
            while len(self.latency_samples_ms) > self.max_samples:
                self.latency_samples_ms.popleft()

    def record_frame(self, frame_time_ms: float, duration_ms: float) -> bool:
        """Record one delivered frame. Returns True when it overran its budget."""
        self.record_latency_ms(duration_ms)
        with self._lock:
            self.frame_count += 1
            if self._first_frame_ms is None:
                self._first_frame_ms = frame_time_ms
            self._last_frame_ms = frame_time_ms
            slow = duration_ms > self.slow_frame_ms
            if slow:
                self.slow_frame_count += 1
        return slow

    def summarize(self) -> LatencyStats:
        with self._lock:
            values = sorted(self.latency_samples_ms)
        if not values:
            return LatencyStats(p50_ms=0.0, p95_ms=0.0, max_ms=0.0)
        max_ms = values[-1]
        p50_ms = values[int(0.5 * (len(values) - 1))]
        p95_ms = values[int(0.95 * (len(values) - 1))]
        return LatencyStats(p50_ms=p50_ms, p95_ms=p95_ms, max_ms=max_ms)

    def snapshot(self) -> TelemetrySnapshot:
        with self._lock:
            frames = self.frame_count
            slow = self.slow_frame_count
            first = self._first_frame_ms
            last = self._last_frame_ms
        fps = 0.0
        if frames > 1 and first is not None and last is not None and last > first:
            fps = (frames - 1) * 1000.0 / (last - first)
        return TelemetrySnapshot(frames=frames, slow_frames=slow, fps=fps, latency=self.summarize())

    def reset(self) -> None:
        with self._lock:
            self.latency_samples_ms.clear()
            self.frame_count = 0
            self.slow_frame_count = 0
            self._first_frame_ms = None
            self._last_frame_ms = None
