"""
H-polytope helpers.

A polytope is an (K, 4) array whose rows [nx, ny, nz, d] encode nx*x + ny*y + nz*z + d <= 0.
"""

import numpy as np
from typing import Optional, Tuple
from scipy.optimize import linprog


def box_polytope(lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """Axis-aligned box [lower, upper] as six half-spaces."""
    rows = []
    for axis in range(3):
        normal = np.zeros(3)
        normal[axis] = 1.0
        rows.append(np.append(normal, -upper[axis]))
        rows.append(np.append(-normal, lower[axis]))
    return np.array(rows)


def contains(hpoly: np.ndarray, point: np.ndarray, tol: float = 1e-9) -> bool:
    return bool(np.all(hpoly[:, :3] @ np.asarray(point, dtype=float) + hpoly[:, 3] <= tol))


def violation(hpoly: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Largest constraint value per point (positive means outside)."""
    pts = np.atleast_2d(points)
    values = pts @ hpoly[:, :3].T + hpoly[:, 3]
    return np.max(values, axis=1)


def chebyshev_center(hpoly: np.ndarray) -> Optional[Tuple[np.ndarray, float]]:
    """
    Centre and radius of the largest ball inside the polytope.

    Returns:
        (center, radius) or None if the polytope is empty or unbounded
    """
    normals = hpoly[:, :3]
    norms = np.linalg.norm(normals, axis=1)

    a_ub = np.hstack([normals, norms[:, None]])
    b_ub = -hpoly[:, 3]
    cost = np.array([0.0, 0.0, 0.0, -1.0])
    bounds = [(None, None)] * 3 + [(0.0, None)]

    result = linprog(cost, A_ub=a_ub, b_ub=b_ub, bounds=bounds, method='highs')
    if result.status != 0:
        return None

    return result.x[:3], float(result.x[3])


def overlap(hpoly_a: np.ndarray, hpoly_b: np.ndarray, eps: float = 1e-6) -> bool:
    """True if the intersection holds a ball of radius greater than eps."""
    found = chebyshev_center(np.vstack([hpoly_a, hpoly_b]))
    return found is not None and found[1] > eps
