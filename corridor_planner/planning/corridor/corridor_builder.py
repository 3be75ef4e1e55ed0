"""
Corridor Builder
Converts a route polyline into an ordered sequence of overlapping convex
polytopes and compresses redundant ones.
"""

import numpy as np
import logging
import time
from typing import Dict, List, Any

from corridor_planner.planning.corridor.polytope import box_polytope, overlap

PLANE_TOLERANCE = 1e-12


class CorridorBuilder:
    """
    Segment-seeded convex cover.

    Each seed segment of the route gets a box inflated by the generation range
    and clipped to the map bound; surface points inside the box are then
    excluded one at a time, nearest first, by a half-space tangent to the
    point and normal to its offset from the segment. Every polytope therefore
    contains its whole seed segment.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.progress = config.get('corridor_progress', 7.0)     # max seed length, meters
        self.range = config.get('corridor_range', 3.0)           # box inflation, meters
        self.overlap_eps = config.get('corridor_overlap_eps', 0.01)

        self.logger.info(f"Corridor builder initialized: progress {self.progress}m, range {self.range}m")

    def convex_cover(self, route: List[Any], surface: np.ndarray,
                     origin: Any, corner: Any,
                     progress: float = None, range_: float = None) -> List[np.ndarray]:
        """
        Build one polytope per seed segment along the route.

        Args:
            route: Route points in world coordinates
            surface: (M, 3) obstacle surface points
            origin: Lower corner of the map bound
            corner: Upper corner of the map bound
            progress: Maximum seed segment length (defaults to configuration)
            range_: Box inflation around each seed (defaults to configuration)

        Returns:
            Ordered list of (K, 4) half-space arrays
        """
        progress = self.progress if progress is None else progress
        range_ = self.range if range_ is None else range_

        build_start = time.time()
        origin = np.asarray(origin, dtype=float)
        corner = np.asarray(corner, dtype=float)
        surface = np.asarray(surface, dtype=float).reshape(-1, 3)

        polytopes = []
        for seed_start, seed_end in self._seed_segments(route, progress):
            lower = np.maximum(np.minimum(seed_start, seed_end) - range_, origin)
            upper = np.minimum(np.maximum(seed_start, seed_end) + range_, corner)

            hpoly = box_polytope(lower, upper)

            inside = np.all((surface >= lower) & (surface <= upper), axis=1)
            planes = self._separating_planes(seed_start, seed_end, surface[inside])
            if planes:
                hpoly = np.vstack([hpoly, np.array(planes)])

            polytopes.append(hpoly)

        self.logger.info(f"Convex cover: {len(polytopes)} polytopes in {time.time() - build_start:.3f}s")
        return polytopes

    def _seed_segments(self, route: List[Any], progress: float):
        points = [np.asarray(p, dtype=float) for p in route]

        for a, b in zip(points[:-1], points[1:]):
            length = float(np.linalg.norm(b - a))
            if length < 1e-9:
                continue

            pieces = max(1, int(np.ceil(length / progress)))
            knots = [a + (b - a) * k / pieces for k in range(pieces + 1)]
            for k in range(pieces):
                yield knots[k], knots[k + 1]

    def _separating_planes(self, a: np.ndarray, b: np.ndarray,
                           points: np.ndarray) -> List[np.ndarray]:
        if len(points) == 0:
            return []

        direction = b - a
        t = np.clip((points - a) @ direction / float(direction @ direction), 0.0, 1.0)
        closest = a + t[:, None] * direction
        offsets = points - closest
        distances = np.linalg.norm(offsets, axis=1)

        alive = distances > 1e-9
        touching = int(np.count_nonzero(~alive))
        if touching:
            self.logger.debug(f"{touching} surface points lie on the seed segment and were skipped")

        planes = []
        while np.any(alive):
            candidates = np.flatnonzero(alive)
            k = candidates[np.argmin(distances[candidates])]

            normal = offsets[k] / distances[k]
            offset = -float(normal @ points[k])
            planes.append(np.append(normal, offset))

            alive[k] = False
            alive &= (points @ normal + offset) < -PLANE_TOLERANCE

        return planes

    def short_cut(self, polytopes: List[np.ndarray]) -> List[np.ndarray]:
        """
        Drop polytopes whose neighbours already overlap.

        Walking back from the last polytope, the earliest polytope that
        overlaps the current one is kept and the ones in between are skipped.
        A single polytope is duplicated so the result always has at least two.
        """
        if not polytopes:
            return []

        working = list(polytopes)
        if len(working) == 1:
            working.insert(0, working[0].copy())

        kept = [len(working) - 1]
        i = len(working) - 1
        while i > 0:
            for j in range(i):
                if j < i - 1:
                    linked = overlap(working[i], working[j], self.overlap_eps)
                else:
                    linked = True

                if linked:
                    kept.insert(0, j)
                    i = j
                    break

        compressed = [working[idx] for idx in kept]
        self.logger.info(f"Corridor compressed: {len(polytopes)} -> {len(compressed)} polytopes")
        return compressed
