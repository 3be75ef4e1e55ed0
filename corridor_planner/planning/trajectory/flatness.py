import numpy as np
from typing import Tuple


class FlatnessMap:
    """
    Differential-flatness map for a quadrotor with linear and parasitic drag.

    The required force is f = m (a + g e3) + D v + cp |v|_eps v with
    D = diag(dh, dh, dv) and |v|_eps = sqrt(|v|^2 + eps). The body z-axis is
    f / |f|, attitude follows the Hopf fibration with heading psi, and the body
    rate comes from the time derivative of the body z-axis.
    """

    def __init__(self):
        self.reset(1.0, 9.81, 0.0, 0.0, 0.0, 1.0e-4)

    def reset(self, vehicle_mass: float, gravitational_accel: float,
              horizontal_drag_coeff: float, vertical_drag_coeff: float,
              parasitic_drag_coeff: float, speed_smooth_factor: float):
        self.mass = vehicle_mass
        self.grav = gravitational_accel
        self.dh = horizontal_drag_coeff
        self.dv = vertical_drag_coeff
        self.cp = parasitic_drag_coeff
        self.veps = speed_smooth_factor

    def force(self, vel: np.ndarray, acc: np.ndarray) -> np.ndarray:
        speed = np.sqrt(vel @ vel + self.veps)
        drag = np.array([self.dh * vel[0], self.dh * vel[1], self.dv * vel[2]]) + self.cp * speed * vel
        return self.mass * (acc + np.array([0.0, 0.0, self.grav])) + drag

    def force_rate(self, vel: np.ndarray, acc: np.ndarray, jer: np.ndarray) -> np.ndarray:
        speed = np.sqrt(vel @ vel + self.veps)
        d_drag = (np.array([self.dh * acc[0], self.dh * acc[1], self.dv * acc[2]]) +
                  self.cp * (speed * acc + (vel @ acc) / speed * vel))
        return self.mass * jer + d_drag

    def forward(self, vel: np.ndarray, acc: np.ndarray, jer: np.ndarray,
                psi: float, dpsi: float) -> Tuple[float, np.ndarray, np.ndarray]:
        """
        Map flat outputs to thrust, attitude and body rate.

        Args:
            vel, acc, jer: Trajectory derivatives in world frame
            psi: Heading reference (rad)
            dpsi: Heading rate reference (rad/s)

        Returns:
            (thrust, quaternion [w, x, y, z], body rate [wx, wy, wz])
        """
        vel = np.asarray(vel, dtype=float)
        acc = np.asarray(acc, dtype=float)
        jer = np.asarray(jer, dtype=float)

        f = self.force(vel, acc)
        thrust = float(np.linalg.norm(f))
        z = f / thrust

        df = self.force_rate(vel, acc, jer)
        dz = (df - z * (z @ df)) / thrust

        tilt_den = np.sqrt(2.0 * (1.0 + z[2]))
        tilt0 = 0.5 * tilt_den
        tilt1 = -z[1] / tilt_den
        tilt2 = z[0] / tilt_den

        c_half_psi = np.cos(0.5 * psi)
        s_half_psi = np.sin(0.5 * psi)

        quat = np.array([
            tilt0 * c_half_psi,
            tilt1 * c_half_psi + tilt2 * s_half_psi,
            tilt2 * c_half_psi - tilt1 * s_half_psi,
            tilt0 * s_half_psi
        ])

        c_psi = np.cos(psi)
        s_psi = np.sin(psi)
        omg_den = z[2] + 1.0
        omg_term = dz[2] / omg_den

        omg = np.array([
            dz[0] * s_psi - dz[1] * c_psi - (z[0] * s_psi - z[1] * c_psi) * omg_term,
            dz[0] * c_psi + dz[1] * s_psi - (z[0] * c_psi + z[1] * s_psi) * omg_term,
            (z[1] * dz[0] - z[0] * dz[1]) / omg_den + dpsi
        ])

        return thrust, quat, omg


def body_x_axis(quat: np.ndarray) -> np.ndarray:
    """World-frame body x-axis of a unit quaternion [w, x, y, z]."""
    w, x, y, z = quat
    return np.array([
        1.0 - 2.0 * (y * y + z * z),
        2.0 * (x * y + w * z),
        2.0 * (x * z - w * y)
    ])


def quaternion_to_euler_deg(quat: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Attitude angles of a quaternion [w, x, y, z].

    Returns:
        (tilt, pitch, roll, yaw) in degrees; tilt is the angle between world z and body z
    """
    w, x, y, z = quat
    tilt = np.arccos(np.clip(1.0 - 2.0 * (x * x + y * y), -1.0, 1.0))
    pitch = np.arcsin(np.clip(2.0 * (w * y - z * x), -1.0, 1.0))
    roll = np.arctan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
    yaw = np.arctan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
    return (float(np.degrees(tilt)), float(np.degrees(pitch)),
            float(np.degrees(roll)), float(np.degrees(yaw)))
