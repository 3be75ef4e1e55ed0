"""Unit tests for the look-ahead safety checker"""

import pytest
import numpy as np

from corridor_planner.planning.local_planner.safety_checker import LookAheadSafetyChecker
from corridor_planner.planning.trajectory.trajectory import Trajectory

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0])
FACING_BACK = np.array([0.0, 0.0, 0.0, 1.0])


def straight_line(duration, speed=1.0):
    """p(t) = (speed * t, 0, 0)"""
    coeffs = np.zeros((6, 3))
    coeffs[1, 0] = speed
    return Trajectory([duration], [coeffs])


def stationary(duration):
    coeffs = np.zeros((6, 3))
    coeffs[0] = [1.0, 2.0, 3.0]
    return Trajectory([duration], [coeffs])


@pytest.fixture
def checker():
    return LookAheadSafetyChecker({})


class TestLookAheadSafetyChecker:
    """Tests for LookAheadSafetyChecker"""

    def test_defaults(self, checker):
        """Test default margins and initial state"""
        margins = checker.get_safety_margins()

        assert margins['fov_angle_deg'] == pytest.approx(40.0)
        assert margins['max_deceleration'] == 4.0
        assert margins['max_lookahead_distance'] == 4.0
        assert checker.get_progress() == 0.0
        assert checker.get_safe_flag() is False

    def test_invalid_margins_rejected(self):
        """Test non-positive deceleration or range raise"""
        with pytest.raises(ValueError):
            LookAheadSafetyChecker({'max_deceleration': 0.0})
        with pytest.raises(ValueError):
            LookAheadSafetyChecker({'max_lookahead_distance': -1.0})

    def test_stopping_condition(self):
        """Test the braking inequality"""
        assert not LookAheadSafetyChecker({'max_deceleration': 1.0}).is_stoppable(2.0, 1.0)
        assert LookAheadSafetyChecker({'max_deceleration': 4.0}).is_stoppable(1.0, 10.0)
        assert LookAheadSafetyChecker({'max_deceleration': 2.0}).is_stoppable(2.0, 1.0)

    def test_progress_advances_to_lookahead_range(self, checker):
        """Test the confirmed progress stops at the look-ahead distance"""
        traj = straight_line(10.0)

        result = checker.check(traj, IDENTITY, np.zeros(3), 1.0, 0.0)

        assert result.recomputed
        assert result.progress == pytest.approx(3.96, abs=1e-9)
        assert result.free_distance == pytest.approx(3.96, abs=1e-9)
        assert result.safe

    def test_too_fast_is_unsafe(self, checker):
        """Test speeds beyond the braking capacity are flagged"""
        result = checker.check(straight_line(10.0), IDENTITY, np.zeros(3), 10.0, 0.0)

        assert result.recomputed
        assert not result.safe
        assert not checker.get_safe_flag()

    def test_heading_away_gives_zero_free_distance(self, checker):
        """Test a trajectory behind the vehicle confirms no free distance"""
        result = checker.check(straight_line(10.0), FACING_BACK, np.zeros(3), 1.0, 0.0)

        assert result.recomputed
        assert result.progress == 0.0
        assert result.free_distance == 0.0
        assert not result.safe

    def test_heading_away_at_rest_is_safe(self, checker):
        """Test zero speed is always stoppable"""
        result = checker.check(straight_line(10.0), FACING_BACK, np.zeros(3), 0.0, 0.0)

        assert result.safe

    def test_coincident_samples_fail_cone_test(self, checker):
        """Test samples at the current position are never inside the cone"""
        traj = stationary(5.0)

        result = checker.check(traj, IDENTITY, traj.get_pos(0.0), 0.0, 1.0)

        assert result.recomputed
        assert result.progress == 1.0
        assert result.free_distance == 0.0
        assert result.safe

    def test_exhausted_scan_keeps_previous_verdict(self, checker):
        """Test reaching the trajectory end leaves the safe flag untouched"""
        traj = straight_line(5.0)

        first = checker.check(traj, IDENTITY, np.zeros(3), 1.0, 0.0)
        assert first.safe

        second = checker.check(traj, IDENTITY, np.array([4.5, 0.0, 0.0]), 100.0, 4.5)

        assert not second.recomputed
        assert second.safe
        assert second.progress == pytest.approx(4.96, abs=1e-9)

    def test_exhausted_scan_on_fresh_checker_stays_unsafe(self, checker):
        """Test a short trajectory inside the range never sets the flag"""
        result = checker.check(straight_line(1.0), IDENTITY, np.zeros(3), 0.0, 0.0)

        assert not result.recomputed
        assert not result.safe
        assert result.free_distance is None
        assert result.progress == pytest.approx(0.96, abs=1e-9)

    def test_progress_is_monotonic(self, checker):
        """Test the confirmed progress never moves backwards"""
        traj = straight_line(10.0)

        first = checker.check(traj, IDENTITY, np.zeros(3), 1.0, 0.0)
        second = checker.check(traj, IDENTITY, np.array([0.5, 0.0, 0.0]), 1.0, 0.5)

        assert second.progress >= first.progress

    def test_progress_follows_elapsed_time(self, checker):
        """Test the progress jumps to the elapsed time when behind"""
        result = checker.check(straight_line(10.0), FACING_BACK, np.array([2.0, 0.0, 0.0]), 0.0, 2.0)

        assert result.progress == 2.0

    def test_clear(self, checker):
        """Test clearing resets progress and verdict"""
        checker.check(straight_line(10.0), IDENTITY, np.zeros(3), 1.0, 0.0)

        checker.clear()

        assert checker.get_progress() == 0.0
        assert checker.get_safe_flag() is False
        assert checker.free_distance is None

    def test_narrow_field_of_view(self):
        """Test samples off the heading axis stop the scan"""
        checker = LookAheadSafetyChecker({'fov_angle_deg': 10.0})
        # heading 30 degrees off the trajectory direction
        angle = np.radians(30.0)
        quat = np.array([np.cos(angle / 2.0), 0.0, 0.0, np.sin(angle / 2.0)])

        result = checker.check(straight_line(10.0), quat, np.zeros(3), 1.0, 0.0)

        assert result.progress == 0.0
        assert result.free_distance == 0.0

    def test_field_of_view_is_in_degrees(self, checker):
        """Test the default 40 degree cone admits 15 degrees off axis but not 30"""
        assert checker._cos_half_fov == pytest.approx(np.cos(np.radians(20.0)))

        # along the 15 degree heading the 4m range ends just past 4.11s
        for off_axis, expected_progress in ((15.0, 4.11), (30.0, 0.0)):
            checker.clear()
            angle = np.radians(off_axis)
            quat = np.array([np.cos(angle / 2.0), 0.0, 0.0, np.sin(angle / 2.0)])

            result = checker.check(straight_line(10.0), quat, np.zeros(3), 1.0, 0.0)

            assert result.progress == pytest.approx(expected_progress)
