"""
Trajectory Synthesizer
Builds a minimum-jerk piecewise quintic through a polytope corridor and
optimizes the piece durations against time, control effort and smoothed
constraint penalties (corridor, speed, body rate, tilt, thrust, pitch).
"""

import numpy as np
import logging
import time
from typing import Dict, List, Tuple, Optional, Any, Sequence
from scipy.optimize import minimize

from corridor_planner.planning.corridor.polytope import chebyshev_center, contains
from corridor_planner.planning.trajectory.trajectory import Trajectory, basis, basis_matrix

LARGE_COST = 1.0e30


def smoothed_l1(x: np.ndarray, mu: float) -> np.ndarray:
    """C2 ramp: 0 below zero, x - mu/2 above mu, cubic blend in between."""
    x = np.asarray(x, dtype=float)
    xdmu = np.clip(x, 0.0, mu) / mu
    blend = (mu - 0.5 * np.clip(x, 0.0, mu)) * xdmu ** 3
    return np.where(x < 0.0, 0.0, np.where(x > mu, x - 0.5 * mu, blend))


class TrajectorySynthesizer:
    """
    Corridor-constrained trajectory optimizer.

    Usage mirrors a two-step solver: ``setup`` validates the problem and
    prepares the waypoint skeleton, ``optimize`` returns ``(cost, trajectory)``
    with an infinite cost on failure.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.max_iterations = config.get('synthesis_max_iterations', 100)
        self.min_piece_duration = config.get('min_piece_duration', 0.05)
        self.max_piece_duration = config.get('max_piece_duration', 100.0)

        self._ready = False
        self.waypoints: np.ndarray = np.zeros((0, 3))
        self.piece_polytopes: List[int] = []
        self.initial_durations: np.ndarray = np.zeros(0)

    def setup(self, time_weight: float,
              ini_state: np.ndarray, fin_state: np.ndarray,
              corridor: Sequence[np.ndarray],
              length_per_piece: float,
              smoothing_eps: float,
              integral_resolution: int,
              magnitude_bounds: Sequence[float],
              penalty_weights: Sequence[float],
              physical_params: Sequence[float]) -> bool:
        """
        Prepare an optimization problem.

        Args:
            time_weight: Weight of total duration in the cost
            ini_state: (3, 3) rows [position, velocity, acceleration] at start
            fin_state: (3, 3) rows [position, velocity, acceleration] at end
            corridor: Ordered polytopes, consecutive ones overlapping
            length_per_piece: Maximum straight length per piece (inf for one piece per polytope)
            smoothing_eps: Smoothing width of the penalty ramp
            integral_resolution: Quadrature samples per piece
            magnitude_bounds: [v_max, omg_max, theta_max, thrust_min, thrust_max, pitch_max]
            penalty_weights: [pos, vel, omg, theta, thrust, pitch]
            physical_params: [mass, g, horiz_drag, vert_drag, paras_drag, speed_eps]

        Returns:
            True if the problem is well formed
        """
        self._ready = False

        if len(corridor) == 0:
            self.logger.warning("Synthesis setup: empty corridor")
            return False

        if len(magnitude_bounds) < 6 or len(penalty_weights) < 6 or len(physical_params) < 6:
            self.logger.warning("Synthesis setup: bound, weight and physical vectors need 6 entries")
            return False

        if integral_resolution < 1 or smoothing_eps <= 0.0:
            self.logger.warning("Synthesis setup: invalid quadrature resolution or smoothing factor")
            return False

        self.time_weight = float(time_weight)
        self.ini_state = np.array(ini_state, dtype=float).reshape(3, 3)
        self.fin_state = np.array(fin_state, dtype=float).reshape(3, 3)
        self.corridor = [np.asarray(p, dtype=float) for p in corridor]
        self.smoothing_eps = float(smoothing_eps)
        self.integral_resolution = int(integral_resolution)
        self.magnitude_bounds = np.asarray(magnitude_bounds, dtype=float)
        self.penalty_weights = np.asarray(penalty_weights, dtype=float)
        self.physical_params = np.asarray(physical_params, dtype=float)

        if not contains(self.corridor[0], self.ini_state[0], tol=1e-6):
            self.logger.warning("Synthesis setup: start lies outside the first polytope")
        if not contains(self.corridor[-1], self.fin_state[0], tol=1e-6):
            self.logger.warning("Synthesis setup: goal lies outside the last polytope")

        junctions = self._junction_points()
        if junctions is None:
            return False

        anchors = [self.ini_state[0]] + junctions + [self.fin_state[0]]

        waypoints = [anchors[0]]
        piece_polytopes = []
        for poly_idx, (a, b) in enumerate(zip(anchors[:-1], anchors[1:])):
            length = float(np.linalg.norm(b - a))
            splits = 1
            if np.isfinite(length_per_piece) and length_per_piece > 0.0:
                splits = max(1, int(np.ceil(length / length_per_piece)))
            for k in range(1, splits + 1):
                waypoints.append(a + (b - a) * k / splits)
                piece_polytopes.append(poly_idx)

        self.waypoints = np.array(waypoints)
        self.piece_polytopes = piece_polytopes

        v_max = max(self.magnitude_bounds[0], 1e-3)
        lengths = np.linalg.norm(np.diff(self.waypoints, axis=0), axis=1)
        self.initial_durations = np.clip(2.0 * lengths / v_max, 0.3, self.max_piece_duration)

        self._ready = True
        self.logger.debug(f"Synthesis setup: {len(piece_polytopes)} pieces over {len(self.corridor)} polytopes")
        return True

    def _junction_points(self) -> Optional[List[np.ndarray]]:
        """Pick one interior point in each consecutive polytope overlap."""
        count = len(self.corridor)
        start = self.ini_state[0]
        goal = self.fin_state[0]

        junctions = []
        for i in range(count - 1):
            overlap_poly = np.vstack([self.corridor[i], self.corridor[i + 1]])
            found = chebyshev_center(overlap_poly)
            if found is None or found[1] <= 0.0:
                self.logger.warning(f"Synthesis setup: polytopes {i} and {i + 1} do not overlap")
                return None

            center, radius = found
            margin = min(0.5 * radius, 0.25)
            reference = start + (goal - start) * (i + 1) / count
            junctions.append(self._project(overlap_poly, reference, margin, center))

        return junctions

    def _project(self, hpoly: np.ndarray, reference: np.ndarray,
                 margin: float, fallback: np.ndarray) -> np.ndarray:
        normals = hpoly[:, :3]
        offsets = hpoly[:, 3] + margin * np.linalg.norm(normals, axis=1)

        constraint = {
            'type': 'ineq',
            'fun': lambda x: -(normals @ x + offsets),
            'jac': lambda x: -normals
        }
        result = minimize(
            lambda x: float((x - reference) @ (x - reference)),
            fallback,
            jac=lambda x: 2.0 * (x - reference),
            constraints=[constraint],
            method='SLSQP'
        )

        if result.success and np.all(normals @ result.x + offsets <= 1e-6):
            return result.x
        return fallback

    def solve_coefficients(self, durations: np.ndarray) -> np.ndarray:
        """
        Minimum-jerk coefficients for fixed waypoints and durations.

        Returns:
            Array of shape (pieces, 6, 3)
        """
        pieces = len(durations)
        size = 6 * pieces
        a = np.zeros((size, size))
        b = np.zeros((size, 3))

        for k in range(3):
            a[k, 0:6] = basis(0.0, k)
            b[k] = self.ini_state[k]

        for i in range(pieces - 1):
            row = 3 + 6 * i
            t = durations[i]
            left = slice(6 * i, 6 * i + 6)
            right = slice(6 * i + 6, 6 * i + 12)

            a[row, left] = basis(t, 0)
            b[row] = self.waypoints[i + 1]

            for k in range(5):
                a[row + 1 + k, left] = basis(t, k)
                a[row + 1 + k, right] = -basis(0.0, k)

        t_last = durations[-1]
        last = slice(6 * (pieces - 1), 6 * pieces)
        for k in range(3):
            a[size - 3 + k, last] = basis(t_last, k)
            b[size - 3 + k] = self.fin_state[k]

        return np.linalg.solve(a, b).reshape(pieces, 6, 3)

    def _jerk_energy(self, coeffs: np.ndarray, durations: np.ndarray) -> float:
        energy = 0.0
        for c, t in zip(coeffs, durations):
            c3, c4, c5 = c[3], c[4], c[5]
            energy += (36.0 * t * (c3 @ c3) + 144.0 * t ** 2 * (c3 @ c4) +
                       240.0 * t ** 3 * (c3 @ c5) + 192.0 * t ** 3 * (c4 @ c4) +
                       720.0 * t ** 4 * (c4 @ c5) + 720.0 * t ** 5 * (c5 @ c5))
        return float(energy)

    def _penalty(self, coeffs: np.ndarray, durations: np.ndarray) -> float:
        v_max, omg_max, theta_max, thr_min, thr_max, pitch_max = self.magnitude_bounds[:6]
        mass, grav, dh, dv, cp, veps = self.physical_params[:6]
        chi = self.penalty_weights[:6]
        mu = self.smoothing_eps
        resolution = self.integral_resolution

        thr_mean = 0.5 * (thr_max + thr_min)
        thr_radi = 0.5 * abs(thr_max - thr_min)
        drag_diag = np.array([dh, dh, dv])
        gravity = np.array([0.0, 0.0, grav])

        total = 0.0
        for c, t, poly_idx in zip(coeffs, durations, self.piece_polytopes):
            times = (np.arange(resolution) + 0.5) / resolution * t
            step = t / resolution

            pos = basis_matrix(times, 0) @ c
            vel = basis_matrix(times, 1) @ c
            acc = basis_matrix(times, 2) @ c
            jer = basis_matrix(times, 3) @ c

            hpoly = self.corridor[poly_idx]
            pos_violation = pos @ hpoly[:, :3].T + hpoly[:, 3]
            pen = chi[0] * np.sum(smoothed_l1(pos_violation, mu), axis=1)

            speed_sq = np.sum(vel * vel, axis=1)
            pen += chi[1] * smoothed_l1(speed_sq - v_max ** 2, mu)

            speed = np.sqrt(speed_sq + veps)
            force = mass * (acc + gravity) + drag_diag * vel + cp * speed[:, None] * vel
            d_force = (mass * jer + drag_diag * acc +
                       cp * (speed[:, None] * acc + (np.sum(vel * acc, axis=1) / speed)[:, None] * vel))
            thrust = np.linalg.norm(force, axis=1)
            z_body = force / thrust[:, None]
            dz_body = (d_force - z_body * np.sum(z_body * d_force, axis=1)[:, None]) / thrust[:, None]

            pen += chi[2] * smoothed_l1(np.sum(dz_body * dz_body, axis=1) - omg_max ** 2, mu)
            pen += chi[3] * smoothed_l1(np.cos(theta_max) - z_body[:, 2], mu)
            pen += chi[4] * smoothed_l1((thrust - thr_mean) ** 2 - thr_radi ** 2, mu)

            horiz = np.linalg.norm(vel[:, :2], axis=1)
            moving = horiz > 1e-6
            if np.any(moving):
                heading = vel[moving, :2] / horiz[moving, None]
                forward = np.sum(force[moving, :2] * heading, axis=1)
                pitch = np.arctan2(forward, force[moving, 2])
                pitch_pen = np.zeros(resolution)
                pitch_pen[moving] = smoothed_l1(pitch ** 2 - pitch_max ** 2, mu)
                pen += chi[5] * pitch_pen

            total += step * float(np.sum(pen))

        return total

    def _cost(self, log_durations: np.ndarray) -> float:
        durations = np.exp(log_durations)
        try:
            coeffs = self.solve_coefficients(durations)
        except np.linalg.LinAlgError:
            return LARGE_COST

        cost = (self._jerk_energy(coeffs, durations) +
                self.time_weight * float(np.sum(durations)) +
                self._penalty(coeffs, durations))

        return cost if np.isfinite(cost) else LARGE_COST

    def evaluate_cost(self, durations: Sequence[float]) -> float:
        """Cost of the minimum-jerk trajectory for the given piece durations."""
        return self._cost(np.log(np.asarray(durations, dtype=float)))

    def optimize(self, rel_cost_tol: float) -> Tuple[float, Optional[Trajectory]]:
        """
        Optimize piece durations.

        Args:
            rel_cost_tol: Relative cost reduction at which iterations stop

        Returns:
            (cost, trajectory); cost is inf and trajectory None on failure
        """
        if not self._ready:
            self.logger.warning("Synthesizer used before a successful setup")
            return float('inf'), None

        optimization_start = time.time()

        x0 = np.log(self.initial_durations)
        bounds = [(np.log(self.min_piece_duration), np.log(self.max_piece_duration))] * len(x0)

        result = minimize(
            self._cost, x0, method='L-BFGS-B', bounds=bounds,
            options={'maxiter': self.max_iterations, 'ftol': rel_cost_tol}
        )

        cost = float(result.fun)
        if not np.isfinite(cost) or cost >= LARGE_COST:
            self.logger.warning("Trajectory optimization produced a non-finite cost")
            return float('inf'), None

        durations = np.exp(result.x)
        try:
            coeffs = self.solve_coefficients(durations)
        except np.linalg.LinAlgError:
            self.logger.warning("Trajectory coefficient system is singular")
            return float('inf'), None

        trajectory = Trajectory(durations, coeffs)

        self.logger.info(f"Trajectory optimized in {time.time() - optimization_start:.3f}s: "
                         f"{trajectory.get_piece_num()} pieces, {trajectory.get_total_duration():.2f}s, "
                         f"cost {cost:.3f} ({result.nit} iterations)")
        return cost, trajectory
