"""Synthetic ride simulator for tests and the demo."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from trajectory.geo import EARTH_RADIUS_KM


@dataclass(frozen=True)
class SimConfig:
    start_lat: float = 7.8146
    start_lng: float = -72.4430
    speed_kmh: float = 36.0
    heading_deg: float = 45.0
    turn_rate_deg_s: float = 0.0
    interval_ms: int = 3000
    updates: int = 10
    jitter_m: float = 3.0
    interval_jitter_ms: int = 0
    start_timestamp_ms: int = 0
    seed: int = 7


def simulate_ride(config: SimConfig) -> List[Dict[str, float]]:
    """Generate sparse, jittery location reports for a moving vehicle.

    Returns:
        Payloads shaped like channel events: lat, lng, heading, speed, timestamp
    """
    rng = np.random.default_rng(config.seed)
    lat, lng = config.start_lat, config.start_lng
    heading = config.heading_deg
    timestamp = config.start_timestamp_ms
    metres_per_ms = config.speed_kmh / 3600.0
    m_per_deg_lat = math.radians(1.0) * EARTH_RADIUS_KM * 1000.0

    reports: List[Dict[str, float]] = []
    for i in range(config.updates):
        if i > 0:
            dt_ms = config.interval_ms
            if config.interval_jitter_ms:
                dt_ms += int(rng.integers(-config.interval_jitter_ms, config.interval_jitter_ms + 1))
            dt_ms = max(dt_ms, 1)
            heading = (heading + config.turn_rate_deg_s * dt_ms / 1000.0) % 360.0
            step_m = metres_per_ms * dt_ms
            lat += step_m * math.cos(math.radians(heading)) / m_per_deg_lat
            lng += step_m * math.sin(math.radians(heading)) / (m_per_deg_lat * math.cos(math.radians(lat)))
            timestamp += dt_ms

        noise_lat, noise_lng = rng.normal(0.0, config.jitter_m, size=2) / m_per_deg_lat
        reports.append(
            {
                "lat": float(lat + noise_lat),
                "lng": float(lng + noise_lng),
                "heading": float(heading),
                "speed": float(config.speed_kmh),
                "timestamp": int(timestamp),
            }
        )
    return reports
