"""Unit tests for the execution monitor"""

import threading

import pytest
import numpy as np
from unittest.mock import MagicMock

from corridor_planner.planning.corridor.polytope import box_polytope
from corridor_planner.planning.integration.planner_manager import PlannerManager, WaypointRequest
from corridor_planner.planning.integration.execution_monitor import ExecutionMonitor, TelemetrySample
from corridor_planner.planning.trajectory.trajectory import Trajectory


def cruise_trajectory(speed=1.0, duration=5.0):
    """p(t) = (2 + speed * t, 2, 1)"""
    coeffs = np.zeros((6, 3))
    coeffs[0] = [2.0, 2.0, 1.0]
    coeffs[1, 0] = speed
    return Trajectory([duration], [coeffs])


class FakeClock:

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def make_manager(trajectory, clock, config=None):
    config = config or {'map_bound': [0.0, 10.0, 0.0, 10.0, 0.0, 5.0], 'voxel_width': 0.5}
    box = box_polytope(np.zeros(3), np.array([10.0, 10.0, 5.0]))

    route_search = MagicMock()
    route_search.plan_path.side_effect = lambda start, goal, *args: [start, goal]
    corridor_builder = MagicMock()
    corridor_builder.convex_cover.return_value = [box]
    corridor_builder.short_cut.return_value = [box, box]
    synthesizer = MagicMock()
    synthesizer.setup.return_value = True
    synthesizer.optimize.return_value = (1.0, trajectory)

    return PlannerManager(config, route_search=route_search, corridor_builder=corridor_builder,
                          synthesizer_factory=lambda: synthesizer, clock=clock)


def install(manager):
    manager.on_point_cloud(np.zeros((0, 3)))
    manager.on_waypoint(WaypointRequest((2.0, 2.0, 0.0), 0.1))
    manager.on_waypoint(WaypointRequest((7.0, 2.0, 0.0), 0.1))


@pytest.fixture
def clock():
    return FakeClock()


class TestExecutionMonitor:
    """Tests for ExecutionMonitor"""

    def test_inactive_without_trajectory(self, clock):
        """Test ticks do nothing before a plan is installed"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)

        assert monitor.tick() is None
        assert monitor.get_statistics()['ticks']['active_ticks'] == 0

    def test_inactive_outside_time_span(self, clock):
        """Test ticks before the stamp or after the end are ignored"""
        manager = make_manager(cruise_trajectory(duration=5.0), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        assert monitor.tick(99.0) is None
        assert monitor.tick(105.5) is None
        assert monitor.tick(106.0) is None

        completed = [e for e in monitor.get_recent_events() if e.event_type == "TRAJECTORY_COMPLETED"]
        assert len(completed) == 1

    def test_time_span_is_inclusive(self, clock):
        """Test both ends of the trajectory are supervised"""
        manager = make_manager(cruise_trajectory(duration=5.0), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        assert monitor.tick(100.0) is not None
        assert monitor.tick(105.0) is not None

    def test_sample_contents(self, clock):
        """Test telemetry follows the trajectory and the flatness model"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        sample = monitor.tick(101.0)

        assert isinstance(sample, TelemetrySample)
        assert sample.elapsed == pytest.approx(1.0)
        assert sample.plan_id == 1
        np.testing.assert_allclose(sample.position, [3.0, 2.0, 1.0])
        assert sample.speed == pytest.approx(1.0)

        drag = 0.70 + 0.01 * np.sqrt(1.0 + 1.0e-4)
        assert sample.thrust == pytest.approx(np.hypot(drag, 0.61 * 9.8))
        assert sample.tilt_deg == pytest.approx(np.degrees(np.arctan2(drag, 0.61 * 9.8)))
        assert sample.pitch_deg == pytest.approx(sample.tilt_deg)
        assert sample.roll_deg == pytest.approx(0.0, abs=1e-9)
        assert sample.yaw_deg == pytest.approx(0.0, abs=1e-9)
        assert sample.body_rate_mag == pytest.approx(0.0, abs=1e-9)

    def test_yaw_follows_velocity(self, clock):
        """Test the heading reference is the direction of travel"""
        coeffs = np.zeros((6, 3))
        coeffs[0] = [2.0, 2.0, 1.0]
        coeffs[1] = [0.0, 1.0, 0.0]
        manager = make_manager(Trajectory([5.0], [coeffs]), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        sample = monitor.tick(101.0)

        assert sample.yaw_deg == pytest.approx(90.0)

    def test_safe_at_cruise(self, clock):
        """Test a slow cruise with clear look-ahead is safe"""
        manager = make_manager(cruise_trajectory(speed=1.0), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        sample = monitor.tick(100.0)

        assert sample.safe
        assert sample.safety_recomputed
        assert sample.progress > 0.0

    def test_unsafe_event(self, clock):
        """Test an unsafe verdict raises a warning event"""
        manager = make_manager(cruise_trajectory(speed=10.0, duration=1.0), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        sample = monitor.tick(100.2)

        assert not sample.safe
        events = [e for e in monitor.get_recent_events() if e.event_type == "STOPPING_DISTANCE_VIOLATED"]
        assert len(events) == 1
        assert events[0].severity == "WARNING"
        assert monitor.get_statistics()['ticks']['unsafe_ticks'] == 1

    def test_started_event_per_plan(self, clock):
        """Test a start event is logged once per installed plan"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        monitor.tick(100.5)
        monitor.tick(101.0)

        started = [e for e in monitor.get_recent_events() if e.event_type == "TRAJECTORY_STARTED"]
        assert len(started) == 1

    def test_sinks_receive_samples(self, clock):
        """Test sinks get every sample and failing sinks are contained"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        received = []
        monitor.add_telemetry_sink(MagicMock(side_effect=RuntimeError("sink failed")))
        monitor.add_telemetry_sink(received.append)
        install(manager)

        monitor.tick(100.5)
        monitor.tick(101.0)

        assert len(received) == 2
        assert received[1].elapsed == pytest.approx(1.0)

    def test_history_bounded(self, clock):
        """Test the telemetry history keeps the latest samples only"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({'telemetry_history': 3}, manager, clock=clock)
        install(manager)

        for k in range(5):
            monitor.tick(100.0 + 0.5 * k)

        history = monitor.get_recent_telemetry(10)
        assert len(history) == 3
        assert history[-1].elapsed == pytest.approx(2.0)

    def test_default_clock_used(self, clock):
        """Test ticks without an explicit time read the clock"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        clock.now = 102.0
        sample = monitor.tick()

        assert sample.elapsed == pytest.approx(2.0)

    def test_new_plan_resets_progress(self, clock):
        """Test installing a new plan restarts the look-ahead progress"""
        manager = make_manager(cruise_trajectory(), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)
        first = monitor.tick(101.0)

        clock.now = 110.0
        manager.on_waypoint(WaypointRequest((2.0, 2.0, 0.0), 0.1))
        manager.on_waypoint(WaypointRequest((7.0, 2.0, 0.0), 0.1))
        second = monitor.tick(110.0)

        assert second.plan_id == 2
        assert second.elapsed == 0.0
        assert second.progress < first.progress

    def test_event_callback_can_query_planner(self, clock):
        """Test event callbacks run outside the planning lock"""
        manager = make_manager(cruise_trajectory(duration=5.0), clock)
        monitor = ExecutionMonitor({}, manager, clock=clock)
        install(manager)

        seen = []
        monitor.add_event_callback(lambda event: seen.append(
            (event.event_type, manager.get_planning_statistics()['plan_id'])))

        results = []
        worker = threading.Thread(target=lambda: results.extend([monitor.tick(100.5), monitor.tick(106.0)]),
                                  daemon=True)
        worker.start()
        worker.join(5.0)

        assert not worker.is_alive(), "tick blocked inside an event callback"
        assert results[0] is not None
        assert results[1] is None
        assert ("TRAJECTORY_STARTED", 1) in seen
        assert ("TRAJECTORY_COMPLETED", 1) in seen
