import numpy as np
from typing import List, Tuple, Sequence
from dataclasses import dataclass

DEGREE = 5

# Derivative multipliers: row k holds d^k/dt^k factors for t^0..t^5
_DERIVATIVE_FACTORS = np.array([
    [1.0, 1.0, 1.0, 1.0, 1.0, 1.0],
    [0.0, 1.0, 2.0, 3.0, 4.0, 5.0],
    [0.0, 0.0, 2.0, 6.0, 12.0, 20.0],
    [0.0, 0.0, 0.0, 6.0, 24.0, 60.0],
    [0.0, 0.0, 0.0, 0.0, 24.0, 120.0],
])


def basis(t: float, order: int = 0) -> np.ndarray:
    """Row vector b with p^(order)(t) = b @ coeffs for a degree-5 polynomial."""
    powers = np.zeros(DEGREE + 1)
    for k in range(order, DEGREE + 1):
        powers[k] = t ** (k - order)
    return _DERIVATIVE_FACTORS[order] * powers


def basis_matrix(times: np.ndarray, order: int = 0) -> np.ndarray:
    """Stacked basis rows for an array of times, shape (len(times), 6)."""
    times = np.asarray(times, dtype=float)
    exponents = np.clip(np.arange(DEGREE + 1) - order, 0, None)
    powers = times[:, None] ** exponents[None, :]
    powers[:, :order] = 0.0
    return powers * _DERIVATIVE_FACTORS[order][None, :]


@dataclass(frozen=True)
class Piece:
    """One quintic segment: p(t) = sum_k coeffs[k] * t^k for t in [0, duration]."""
    duration: float
    coeffs: np.ndarray   # shape (6, 3), lowest order first

    def evaluate(self, t: float, order: int = 0) -> np.ndarray:
        return basis(t, order) @ self.coeffs

    def evaluate_many(self, times: np.ndarray, order: int = 0) -> np.ndarray:
        return basis_matrix(times, order) @ self.coeffs


class Trajectory:
    """
    Piecewise degree-5 polynomial trajectory.

    Instances are never modified after construction; a new plan produces a new
    trajectory.
    """

    def __init__(self, durations: Sequence[float], coefficients: Sequence[np.ndarray]):
        if len(durations) != len(coefficients):
            raise ValueError("durations and coefficients must have the same length")

        pieces = []
        for duration, coeffs in zip(durations, coefficients):
            coeffs = np.array(coeffs, dtype=float).reshape(DEGREE + 1, 3)
            coeffs.setflags(write=False)
            if duration <= 0.0:
                raise ValueError(f"Piece duration must be positive, got {duration}")
            pieces.append(Piece(float(duration), coeffs))

        self._pieces: Tuple[Piece, ...] = tuple(pieces)
        self._durations = np.array([p.duration for p in pieces])
        self._starts = np.concatenate(([0.0], np.cumsum(self._durations)))

    @property
    def pieces(self) -> Tuple[Piece, ...]:
        return self._pieces

    def get_piece_num(self) -> int:
        return len(self._pieces)

    def get_durations(self) -> np.ndarray:
        return self._durations.copy()

    def get_total_duration(self) -> float:
        return float(self._starts[-1])

    def locate(self, t: float) -> Tuple[int, float]:
        """Piece index and local time for a global time, clamped to the trajectory."""
        if not self._pieces:
            raise ValueError("Empty trajectory")

        t = min(max(float(t), 0.0), self.get_total_duration())
        idx = int(np.searchsorted(self._starts, t, side='right')) - 1
        idx = min(max(idx, 0), len(self._pieces) - 1)
        return idx, t - self._starts[idx]

    def _evaluate(self, t: float, order: int) -> np.ndarray:
        idx, local_t = self.locate(t)
        return self._pieces[idx].evaluate(local_t, order)

    def get_pos(self, t: float) -> np.ndarray:
        return self._evaluate(t, 0)

    def get_vel(self, t: float) -> np.ndarray:
        return self._evaluate(t, 1)

    def get_acc(self, t: float) -> np.ndarray:
        return self._evaluate(t, 2)

    def get_jer(self, t: float) -> np.ndarray:
        return self._evaluate(t, 3)

    def get_positions(self) -> np.ndarray:
        """Junction points including both endpoints, shape (piece_num + 1, 3)."""
        points = [p.evaluate(0.0) for p in self._pieces]
        if self._pieces:
            points.append(self._pieces[-1].evaluate(self._pieces[-1].duration))
        return np.array(points)

    def sample(self, dt: float, order: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        """Evaluate on a uniform time grid; returns (times, values)."""
        times = np.arange(0.0, self.get_total_duration() + 0.5 * dt, dt)
        values = np.array([self._evaluate(t, order) for t in times])
        return times, values

    def get_max_vel_rate(self) -> float:
        _, vel = self.sample(0.01, order=1)
        return float(np.max(np.linalg.norm(vel, axis=1))) if len(vel) else 0.0

    def __len__(self) -> int:
        return len(self._pieces)

    def __repr__(self) -> str:
        return f"Trajectory(pieces={len(self._pieces)}, duration={self.get_total_duration():.3f}s)"
