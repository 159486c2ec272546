"""Unit tests for TrackingManager."""

import threading
import time
import unittest
from unittest.mock import Mock

import pytest

from app.events import ErrorCategory, ErrorSeverity, get_error_bus
from configs.settings import TrackingConfig
from contracts import EtaUpdate, LocationUpdate, PositionUpdate
from exceptions import InvalidLocationError
from scheduling import ManualFrameScheduler, ThreadedFrameScheduler
from track import MotionPhase, TrackerState, TrackingManager, create_tracking_manager


def _updates(mock):
    return [c.args[0] for c in mock.call_args_list]


class ManagerTestCase(unittest.TestCase):
    """Manager on a hand-driven scheduler whose clock doubles as wall clock."""

    prediction_enabled = False

    def setUp(self):
        self.scheduler = ManualFrameScheduler(frame_interval_ms=100.0)
        self.on_position = Mock()
        self.on_eta = Mock()
        self.on_error = Mock()
        self.manager = TrackingManager(
            animation_duration_ms=1000,
            prediction_enabled=self.prediction_enabled,
            on_position_update=self.on_position,
            on_eta_update=self.on_eta,
            on_error=self.on_error,
            scheduler=self.scheduler,
            clock=self.scheduler.now_ms,
        )

    def tearDown(self):
        self.manager.destroy()


class TestInitialFix(ManagerTestCase):
    def test_first_update_is_emitted_immediately(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "timestamp": 0})

        self.on_position.assert_called_once_with(
            PositionUpdate(lat=7.0, lng=-72.0, heading=0.0, is_initial=True)
        )
        state = self.manager.get_state()
        self.assertEqual((state.position.lat, state.position.lng), (7.0, -72.0))
        self.assertFalse(state.is_animating)
        self.assertEqual(state.phase, MotionPhase.SETTLED.value)
        self.assertEqual(self.scheduler.pending_count, 0)

    def test_initial_heading_is_normalized(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "heading": -90})
        self.assertEqual(self.on_position.call_args.args[0].heading, 270.0)

    def test_zero_heading_and_timestamp_are_kept(self):
        self.scheduler.tick(5000.0)
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "heading": 0, "timestamp": 0})
        state = self.manager.get_state()
        self.assertEqual(state.heading, 0.0)
        self.assertEqual(state.last_update_time, 0)

    def test_missing_timestamp_uses_clock(self):
        self.scheduler.tick(2500.5)
        self.manager.update_location({"lat": 7.0, "lng": -72.0})
        self.assertEqual(self.manager.get_state().last_update_time, 2500.5)
        # Clock readings are kept at full precision in history
        self.assertEqual(self.manager.predictor.get_history()[0].timestamp, 2500.5)

    def test_accepts_location_update_objects(self):
        self.manager.update_location(LocationUpdate(lat=7.0, lng=-72.0, heading=45.0))
        self.assertEqual(self.on_position.call_args.args[0].heading, 45.0)


class TestAnimation(ManagerTestCase):
    def setUp(self):
        super().setUp()
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "timestamp": 0})
        self.on_position.reset_mock()

    def test_second_update_animates_to_target(self):
        self.manager.update_location({"lat": 7.001, "lng": -72.001, "heading": 45, "timestamp": 500})
        self.assertTrue(self.manager.get_state().is_animating)
        self.assertEqual(self.manager.phase, MotionPhase.ANIMATING)

        self.scheduler.advance(1000.0)

        frames = _updates(self.on_position)
        self.assertEqual(len(frames), 10)
        self.assertTrue(all(f.is_animating and not f.is_initial for f in frames))
        lats = [f.lat for f in frames]
        self.assertEqual(lats, sorted(lats))
        self.assertAlmostEqual(frames[-1].lat, 7.001)
        self.assertAlmostEqual(frames[-1].lng, -72.001)
        self.assertAlmostEqual(frames[-1].heading, 45.0)

        state = self.manager.get_state()
        self.assertFalse(state.is_animating)
        self.assertEqual(state.phase, MotionPhase.SETTLED.value)
        self.assertEqual((state.position.lat, state.position.lng), (7.001, -72.001))
        self.assertEqual(state.heading, 45.0)

        self.scheduler.advance(1000.0)
        self.assertEqual(self.on_position.call_count, 10)

    def test_heading_turns_through_north(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "heading": 350})
        self.scheduler.advance(1000.0)
        self.manager.update_location({"lat": 7.001, "lng": -72.0, "heading": 10})
        self.on_position.reset_mock()
        self.scheduler.advance(1000.0)

        for frame in _updates(self.on_position):
            self.assertTrue(frame.heading >= 350.0 or frame.heading <= 10.0, frame.heading)

    def test_last_update_wins(self):
        self.manager.update_location({"lat": 7.001, "lng": -72.0})
        self.scheduler.advance(300.0)
        self.manager.update_location({"lat": 7.0, "lng": -72.002})
        self.scheduler.advance(1500.0)

        state = self.manager.get_state()
        self.assertEqual((state.position.lat, state.position.lng), (7.0, -72.002))
        self.assertEqual(state.target_position.lng, -72.002)
        # Ten frames of the superseded animation were not all delivered
        self.assertEqual(self.on_position.call_count, 3 + 10)

    def test_destroy_mid_animation_stops_callbacks(self):
        self.manager.update_location({"lat": 7.001, "lng": -72.001, "heading": 45, "timestamp": 500})
        self.scheduler.advance(300.0)
        delivered = self.on_position.call_count

        self.manager.destroy()
        self.scheduler.advance(2000.0)

        self.assertEqual(delivered, 3)
        self.assertEqual(self.on_position.call_count, delivered)
        self.assertEqual(self.scheduler.pending_count, 0)
        self.assertFalse(self.scheduler.closed)

    def test_stop_cancels_animation(self):
        self.manager.update_location({"lat": 7.001, "lng": -72.001})
        self.scheduler.advance(200.0)
        self.manager.stop()
        self.scheduler.advance(2000.0)
        self.assertEqual(self.on_position.call_count, 2)
        self.assertFalse(self.manager.get_state().is_animating)

    def test_updates_animate_without_start(self):
        self.assertEqual(self.manager.state, TrackerState.IDLE)
        self.manager.update_location({"lat": 7.001, "lng": -72.001})
        self.scheduler.advance(1000.0)
        self.assertEqual(self.on_position.call_count, 10)


class TestValidation(ManagerTestCase):
    def test_invalid_locations_are_reported_without_mutation(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "eta": 5})
        before = self.manager.get_state()
        self.on_position.reset_mock()
        self.on_eta.reset_mock()

        bad_inputs = [
            {"lat": None, "lng": -72.0},
            {"lng": -72.0},
            {"lat": "7.0", "lng": -72.0},
            {"lat": float("nan"), "lng": -72.0},
            {"lat": 7.0, "lng": float("inf")},
            {"lat": True, "lng": -72.0, "eta": 3},
            "not a location",
            None,
        ]
        for bad in bad_inputs:
            self.manager.update_location(bad)

        self.assertEqual(self.on_error.call_count, len(bad_inputs))
        for call in self.on_error.call_args_list:
            self.assertIsInstance(call.args[0], InvalidLocationError)
        self.on_position.assert_not_called()
        self.on_eta.assert_not_called()
        self.assertEqual(self.manager.get_state(), before)
        self.assertEqual(len(self.manager.predictor), 1)

    def test_error_carries_offending_input(self):
        self.manager.update_location({"lat": None, "lng": 1.0})
        error = self.on_error.call_args.args[0]
        self.assertIsNone(error.location.lat)
        self.assertIn("lat=None", str(error))

    def test_default_error_handler_publishes_to_error_bus(self):
        bus = get_error_bus()
        received = Mock()
        bus.subscribe(received, ErrorCategory.TRACKING)
        manager = TrackingManager(scheduler=self.scheduler)
        try:
            manager.update_location({"lat": "x", "lng": 0})
        finally:
            bus.unsubscribe(received, ErrorCategory.TRACKING)
            manager.destroy()

        received.assert_called_once()
        event = received.call_args.args[0]
        self.assertEqual(event.severity, ErrorSeverity.WARNING)
        self.assertEqual(event.source, "TrackingManager")
        self.assertIsInstance(event.exception, InvalidLocationError)


class TestEta(ManagerTestCase):
    def test_eta_callback_fires_when_eta_present(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "eta": 5, "distance": 1200, "speed": 30})
        self.on_eta.assert_called_once_with(EtaUpdate(eta=5, distance=1200, speed=30))

        state = self.manager.get_state()
        self.assertEqual((state.eta, state.distance, state.speed), (5, 1200, 30))

    def test_eta_zero_is_reported(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "eta": 0})
        self.on_eta.assert_called_once_with(EtaUpdate(eta=0, distance=None, speed=0.0))

    def test_no_eta_no_callback(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "speed": 20})
        self.on_eta.assert_not_called()
        self.assertEqual(self.manager.get_state().speed, 20)


class TestPrediction(ManagerTestCase):
    prediction_enabled = True

    def setUp(self):
        super().setUp()
        self.manager.start()
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "timestamp": 0})
        self.scheduler.advance(500.0)
        self.manager.update_location({"lat": 7.001, "lng": -72.001, "heading": 45, "timestamp": 500})
        self.on_position.reset_mock()

    def test_prediction_waits_for_animation_and_delay(self):
        # Animation runs 500..1500; prediction may start 800ms after the update
        self.scheduler.advance(1000.0)
        frames = _updates(self.on_position)
        self.assertEqual(len(frames), 10)
        self.assertFalse(any(f.is_predicted for f in frames))

        self.scheduler.advance(100.0)
        predicted = _updates(self.on_position)[-1]
        self.assertTrue(predicted.is_predicted)
        self.assertEqual(self.manager.phase, MotionPhase.PREDICTING)

    def test_prediction_continues_along_track(self):
        self.scheduler.advance(1500.0)
        predicted = [f for f in _updates(self.on_position) if f.is_predicted]
        self.assertGreater(len(predicted), 0)

        # Velocity is 0.001 deg per 500ms; 100ms ahead is 0.0002 deg
        first = predicted[0]
        self.assertGreater(first.lat, 7.001)
        self.assertLess(first.lat, 7.0012 + 1e-9)
        self.assertLess(first.lng, -72.001)

        lats = [f.lat for f in predicted]
        self.assertEqual(lats, sorted(lats))

    def test_blend_factor_is_capped(self):
        self.scheduler.advance(1100.0)
        first = [f for f in _updates(self.on_position) if f.is_predicted][0]
        # t = min(1100 / 2000, 0.3) = 0.3, eased 1 - 0.7^3
        expected = 7.001 + 0.0002 * (1.0 - 0.7 ** 3)
        self.assertAlmostEqual(first.lat, expected, places=9)

    def test_new_update_interrupts_prediction(self):
        self.scheduler.advance(1500.0)
        self.manager.update_location({"lat": 7.002, "lng": -72.002, "timestamp": 2000})
        self.on_position.reset_mock()
        self.scheduler.advance(700.0)
        frames = _updates(self.on_position)
        self.assertTrue(all(f.is_animating for f in frames))

    def test_stop_ends_prediction_loop(self):
        self.scheduler.advance(1000.0)
        self.manager.stop()
        self.manager.stop()
        self.on_position.reset_mock()
        self.scheduler.advance(2000.0)
        self.on_position.assert_not_called()
        self.assertEqual(self.scheduler.pending_count, 0)
        self.assertEqual(self.manager.state, TrackerState.STOPPED)

    def test_prediction_disabled_emits_nothing_after_animation(self):
        scheduler = ManualFrameScheduler(frame_interval_ms=100.0)
        on_position = Mock()
        manager = TrackingManager(
            animation_duration_ms=1000,
            prediction_enabled=False,
            on_position_update=on_position,
            scheduler=scheduler,
            clock=scheduler.now_ms,
        )
        manager.start()
        manager.update_location({"lat": 7.0, "lng": -72.0, "timestamp": 0})
        scheduler.advance(500.0)
        manager.update_location({"lat": 7.001, "lng": -72.001, "timestamp": 500})
        scheduler.advance(5000.0)
        self.assertFalse(any(u.is_predicted for u in _updates(on_position)))
        manager.destroy()


class TestLifecycle(ManagerTestCase):
    def test_start_is_idempotent(self):
        self.manager.start()
        self.manager.start()
        self.assertTrue(self.manager.is_running)

    def test_destroy_never_started_manager(self):
        self.manager.destroy()
        self.manager.destroy()
        self.assertTrue(self.manager.get_state().is_destroyed)

    def test_operations_after_destroy_are_noops(self):
        self.manager.destroy()
        self.manager.start()
        self.manager.update_location({"lat": 7.0, "lng": -72.0})
        self.manager.update_location("garbage")

        self.assertFalse(self.manager.is_running)
        self.on_position.assert_not_called()
        self.on_error.assert_not_called()
        self.assertIsNone(self.manager.get_state().position)

    def test_reset_keeps_running_state(self):
        self.manager.start()
        self.manager.update_location({"lat": 7.0, "lng": -72.0, "eta": 4})
        self.manager.update_location({"lat": 7.001, "lng": -72.0})
        self.manager.reset()

        state = self.manager.get_state()
        self.assertEqual(state.state, TrackerState.RUNNING.value)
        self.assertEqual(state.phase, MotionPhase.AWAITING_TARGET.value)
        self.assertIsNone(state.position)
        self.assertIsNone(state.eta)
        self.assertFalse(state.is_animating)
        self.assertEqual(len(self.manager.predictor), 0)

        self.on_position.reset_mock()
        self.manager.update_location({"lat": 8.0, "lng": -73.0})
        self.assertTrue(self.on_position.call_args.args[0].is_initial)

    def test_get_state_is_a_snapshot(self):
        self.manager.update_location({"lat": 7.0, "lng": -72.0})
        snapshot = self.manager.get_state()
        self.manager.update_location({"lat": 7.001, "lng": -72.0})
        self.scheduler.advance(1000.0)
        self.assertEqual(snapshot.position.lat, 7.0)
        self.assertEqual(self.manager.get_state().position.lat, 7.001)

    def test_from_config(self):
        config = TrackingConfig(
            animation_duration_ms=1500, prediction_enabled=False, prediction_horizon_ms=250, history_size=8
        )
        manager = TrackingManager.from_config(config, scheduler=self.scheduler)
        self.assertEqual(manager.animation_duration_ms, 1500.0)
        self.assertFalse(manager.prediction_enabled)
        self.assertEqual(manager.prediction_horizon_ms, 250)
        self.assertEqual(manager.predictor.history_size, 8)
        manager.destroy()

    def test_factory_defaults(self):
        manager = create_tracking_manager(scheduler=self.scheduler)
        self.assertEqual(manager.animation_duration_ms, 3000.0)
        self.assertTrue(manager.prediction_enabled)
        self.assertEqual(manager.state, TrackerState.IDLE)
        manager.destroy()


def test_owned_scheduler_is_closed_on_destroy() -> None:
    manager = TrackingManager()
    assert isinstance(manager.scheduler, ThreadedFrameScheduler)
    manager.destroy()
    assert manager.scheduler.closed


def test_end_to_end_on_frame_thread() -> None:
    positions = []
    lock = threading.Lock()

    def on_position(update: PositionUpdate) -> None:
        with lock:
            positions.append(update)

    scheduler = ThreadedFrameScheduler(frame_rate_hz=200.0)
    manager = TrackingManager(
        animation_duration_ms=100,
        prediction_enabled=False,
        on_position_update=on_position,
        scheduler=scheduler,
    )
    try:
        manager.start()
        manager.update_location({"lat": 7.0, "lng": -72.0})
        manager.update_location({"lat": 7.001, "lng": -72.001, "heading": 45})

        deadline = time.monotonic() + 2.0
        while manager.get_state().is_animating and time.monotonic() < deadline:
            time.sleep(0.01)

        state = manager.get_state()
        assert not state.is_animating
        assert state.position.lat == pytest.approx(7.001)

        manager.destroy()
        with lock:
            seen = len(positions)
        time.sleep(0.05)
        with lock:
            assert len(positions) == seen
    finally:
        scheduler.close()


def test_concurrent_updates_leave_consistent_state() -> None:
    scheduler = ThreadedFrameScheduler(frame_rate_hz=200.0)
    manager = TrackingManager(animation_duration_ms=50, scheduler=scheduler, on_error=Mock())

    def feed(offset: float) -> None:
        for i in range(20):
            manager.update_location({"lat": 7.0 + offset + i * 1e-5, "lng": -72.0})

    threads = [threading.Thread(target=feed, args=(k * 0.01,)) for k in range(4)]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        deadline = time.monotonic() + 2.0
        while manager.get_state().is_animating and time.monotonic() < deadline:
            time.sleep(0.01)

        state = manager.get_state()
        assert state.position == state.target_position
        assert len(manager.predictor) == 5
    finally:
        manager.destroy()
        scheduler.close()


if __name__ == "__main__":
    unittest.main()
