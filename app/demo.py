"""Replay a simulated ride through a live TrackingManager."""

from __future__ import annotations

import argparse
import time
from collections import Counter
from pathlib import Path

from configs.settings import DEFAULT_CONFIG_PATH, load_config
from contracts import EtaUpdate, PositionUpdate
from scheduling import ThreadedFrameScheduler
from telemetry import TelemetryMonitor
from track import RideLocationFeed, TrackingManager
from trajectory.geo import format_distance
from trajectory.sim import SimConfig, simulate_ride


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a simulated ride tracking demo.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--updates", type=int, default=5)
    parser.add_argument("--interval-ms", type=int, default=1000)
    parser.add_argument("--turn-rate", type=float, default=0.0, help="Heading change in degrees per second")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = load_config(args.config)

    counts: Counter = Counter()

    def on_position(update: PositionUpdate) -> None:
        if update.is_initial:
            counts["initial"] += 1
        elif update.is_predicted:
            counts["predicted"] += 1
        else:
            counts["animated"] += 1

    def on_eta(update: EtaUpdate) -> None:
        distance = format_distance(update.distance) if update.distance is not None else "?"
        print(f"eta={update.eta} min distance={distance} speed={update.speed:.0f} km/h")

    telemetry = TelemetryMonitor(
        max_samples=config.telemetry.max_samples,
        slow_frame_ms=config.telemetry.slow_frame_ms,
    )
    scheduler = ThreadedFrameScheduler(frame_rate_hz=config.scheduler.frame_rate_hz, telemetry=telemetry)
    manager = TrackingManager.from_config(
        config.tracking,
        on_position_update=on_position,
        on_eta_update=on_eta,
        scheduler=scheduler,
    )

    reports = simulate_ride(
        SimConfig(
            updates=args.updates,
            interval_ms=args.interval_ms,
            turn_rate_deg_s=args.turn_rate,
            start_timestamp_ms=int(time.time() * 1000),
        )
    )
    last = reports[-1]
    feed = RideLocationFeed(
        "demo-ride",
        manager,
        destination=[last["lng"], last["lat"]],
        average_speed_kmh=config.ride_feed.average_speed_kmh,
    )

    manager.start()
    try:
        for report in reports:
            feed.handle_event({"rideId": "demo-ride", **report, "timestamp": int(time.time() * 1000)})
            time.sleep(args.interval_ms / 1000.0)
            print(f"frames so far: {dict(counts)}")
    finally:
        manager.destroy()
        scheduler.close()

    snapshot = telemetry.snapshot()
    print(
        f"frames={snapshot.frames} fps={snapshot.fps:.1f} slow={snapshot.slow_frames} "
        f"p95={snapshot.latency.p95_ms:.2f}ms"
    )


if __name__ == "__main__":
    main()
