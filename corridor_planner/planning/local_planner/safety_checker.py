import numpy as np
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass

from corridor_planner.planning.trajectory.flatness import body_x_axis
from corridor_planner.planning.trajectory.trajectory import Trajectory

SCAN_OFFSET = 0.01   # s, first look-ahead sample after the confirmed progress
SCAN_STEP = 0.05     # s


@dataclass
class SafetyResult:

    safe: bool
    progress: float
    free_distance: Optional[float]
    recomputed: bool


class LookAheadSafetyChecker:
    """
    Stopping-distance check against the trajectory segment already seen.

    The confirmed progress time only moves forward while future trajectory
    samples stay inside the forward visibility cone and range; the vehicle is
    safe when it can brake within the confirmed free distance.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.fov_angle = float(np.radians(config.get('fov_angle_deg', 40.0)))
        self.max_deceleration = float(config.get('max_deceleration', 4.0))
        self.max_lookahead_distance = float(config.get('max_lookahead_distance', 4.0))

        if self.max_deceleration <= 0.0 or self.max_lookahead_distance <= 0.0:
            raise ValueError("max_deceleration and max_lookahead_distance must be positive")

        self._cos_half_fov = float(np.cos(0.5 * self.fov_angle))

        self.progress = 0.0
        self.safe = False
        self.free_distance: Optional[float] = None

        self.logger.info("Look-ahead safety checker initialized")
        self.logger.info(f"FOV: {np.degrees(self.fov_angle):.1f}deg, a_max: {self.max_deceleration}m/s^2, "
                         f"range: {self.max_lookahead_distance}m")

    def check(self, trajectory: Trajectory, quat: np.ndarray, position: np.ndarray,
              speed: float, elapsed: float) -> SafetyResult:
        """
        Advance the confirmed progress and re-evaluate the stopping condition.

        Args:
            trajectory: Active trajectory
            quat: Attitude quaternion [w, x, y, z]
            position: Current position
            speed: Current speed
            elapsed: Time since trajectory start

        Returns:
            SafetyResult; ``recomputed`` is False when the scan reached the end of
            the trajectory and the previous verdict was kept
        """
        if self.progress <= elapsed:
            self.progress = elapsed

        position = np.asarray(position, dtype=float)
        heading = body_x_axis(np.asarray(quat, dtype=float))
        heading = heading / np.linalg.norm(heading)

        total = trajectory.get_total_duration()
        recomputed = False

        t = self.progress + SCAN_OFFSET
        while t <= total:
            offset = trajectory.get_pos(t) - position
            distance = float(np.linalg.norm(offset))
            unit = offset / distance if distance > 0.0 else np.zeros(3)

            if heading @ unit > self._cos_half_fov and heading @ offset <= self.max_lookahead_distance:
                self.progress = t
                t += SCAN_STEP
                continue

            self.free_distance = float(np.linalg.norm(trajectory.get_pos(self.progress) - position))
            self.safe = self.is_stoppable(speed, self.free_distance)
            recomputed = True
            break

        return SafetyResult(
            safe=self.safe,
            progress=self.progress,
            free_distance=self.free_distance,
            recomputed=recomputed
        )

    def is_stoppable(self, speed: float, free_distance: float) -> bool:
        return not (speed * speed - 2.0 * self.max_deceleration * free_distance > 0.0)

    def get_progress(self) -> float:
        return self.progress

    def get_safe_flag(self) -> bool:
        return self.safe

    def clear(self):
        self.progress = 0.0
        self.safe = False
        self.free_distance = None

    def get_safety_margins(self) -> Dict[str, float]:

        return {
            'fov_angle_deg': float(np.degrees(self.fov_angle)),
            'max_deceleration': self.max_deceleration,
            'max_lookahead_distance': self.max_lookahead_distance
        }
