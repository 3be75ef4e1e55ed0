"""Unit tests for the differential-flatness map"""

import pytest
import numpy as np

from corridor_planner.planning.trajectory.flatness import (
    FlatnessMap, body_x_axis, quaternion_to_euler_deg
)


@pytest.fixture
def flatness():
    fm = FlatnessMap()
    fm.reset(0.61, 9.8, 0.70, 0.80, 0.01, 1.0e-4)
    return fm


class TestFlatnessMap:
    """Tests for FlatnessMap"""

    def test_hover(self, flatness):
        """Test hovering gives identity attitude, weight thrust and zero body rate"""
        zero = np.zeros(3)

        thrust, quat, omg = flatness.forward(zero, zero, zero, 0.0, 0.0)

        assert thrust == pytest.approx(0.61 * 9.8)
        np.testing.assert_allclose(quat, [1.0, 0.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(omg, [0.0, 0.0, 0.0], atol=1e-12)

    def test_heading_sets_yaw(self, flatness):
        """Test the heading reference rotates the body x-axis"""
        zero = np.zeros(3)

        _, quat, _ = flatness.forward(zero, zero, zero, np.pi / 2.0, 0.0)

        np.testing.assert_allclose(body_x_axis(quat), [0.0, 1.0, 0.0], atol=1e-12)
        assert quaternion_to_euler_deg(quat)[3] == pytest.approx(90.0)

    def test_heading_rate_passes_to_yaw_rate(self, flatness):
        """Test the heading rate appears in the body z rate while hovering"""
        zero = np.zeros(3)

        _, _, omg = flatness.forward(zero, zero, zero, 0.0, 0.3)

        assert omg[2] == pytest.approx(0.3)

    def test_drag_thrust(self, flatness):
        """Test cruise thrust balances weight and drag"""
        vel = np.array([1.0, 0.0, 0.0])
        zero = np.zeros(3)

        thrust, quat, _ = flatness.forward(vel, zero, zero, 0.0, 0.0)

        drag = 0.70 + 0.01 * np.sqrt(1.0 + 1.0e-4)
        assert thrust == pytest.approx(np.hypot(drag, 0.61 * 9.8))
        assert np.linalg.norm(quat) == pytest.approx(1.0)

    def test_forward_acceleration_pitches_forward(self, flatness):
        """Test forward acceleration tilts the vehicle about its y-axis"""
        flatness.reset(1.0, 9.8, 0.0, 0.0, 0.0, 1.0e-4)
        acc = np.array([1.0, 0.0, 0.0])
        zero = np.zeros(3)

        _, quat, _ = flatness.forward(zero, acc, zero, 0.0, 0.0)
        tilt, pitch, roll, yaw = quaternion_to_euler_deg(quat)

        expected = np.degrees(np.arctan2(1.0, 9.8))
        assert tilt == pytest.approx(expected)
        assert pitch == pytest.approx(expected)
        assert roll == pytest.approx(0.0, abs=1e-9)
        assert yaw == pytest.approx(0.0, abs=1e-9)

    def test_force_rate_matches_finite_difference(self, flatness):
        """Test the analytic force derivative"""
        vel = np.array([1.0, -0.5, 0.3])
        acc = np.array([0.2, 0.4, -0.1])
        jer = np.array([0.5, 0.1, 0.3])
        dt = 1e-6

        numeric = (flatness.force(vel + acc * dt, acc + jer * dt) - flatness.force(vel, acc)) / dt

        np.testing.assert_allclose(flatness.force_rate(vel, acc, jer), numeric, rtol=1e-4, atol=1e-6)


class TestQuaternionHelpers:
    """Tests for attitude helpers"""

    def test_identity(self):
        """Test the identity quaternion"""
        quat = np.array([1.0, 0.0, 0.0, 0.0])

        np.testing.assert_allclose(body_x_axis(quat), [1.0, 0.0, 0.0])
        assert quaternion_to_euler_deg(quat) == (0.0, 0.0, 0.0, 0.0)

    def test_roll(self):
        """Test a pure roll about x"""
        angle = np.radians(30.0)
        quat = np.array([np.cos(angle / 2.0), np.sin(angle / 2.0), 0.0, 0.0])

        tilt, pitch, roll, yaw = quaternion_to_euler_deg(quat)

        assert tilt == pytest.approx(30.0)
        assert roll == pytest.approx(30.0)
        assert pitch == pytest.approx(0.0, abs=1e-9)
