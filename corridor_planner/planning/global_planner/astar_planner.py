"""
A* Route Search
Finds a coarse collision-free polyline between two free points of an
occupancy volume, using a 26-neighbourhood over the dilated voxel grid
followed by a line-of-sight shortcut pass.
"""

import numpy as np
import heapq
import itertools
import logging
import time
from typing import Dict, List, Tuple, Optional, Any
from dataclasses import dataclass, field

from corridor_planner.planning.global_planner.occupancy_grid import OccupancyVolume


@dataclass
class RouteResult:
    """Result of a route search."""
    path: List[np.ndarray] = field(default_factory=list)   # World coordinates
    grid_path: List[Tuple[int, int, int]] = field(default_factory=list)
    total_cost: float = float('inf')
    planning_time: float = 0.0
    nodes_expanded: int = 0
    success: bool = False


class AStarPlanner:
    """
    A* route search on the dilated occupancy volume.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.allow_diagonal = config.get('allow_diagonal', True)
        self.heuristic_weight = config.get('heuristic_weight', 1.0)

        self.max_iterations = config.get('max_iterations', 200000)
        self.max_planning_time = config.get('route_timeout', 1.0)   # seconds

        self.neighborhood = self._create_neighborhood()

        self.planning_statistics = {
            'total_plans': 0,
            'successful_plans': 0,
            'average_planning_time': 0.0,
            'average_nodes_expanded': 0.0
        }

        self.logger.info("A* route search initialized")
        self.logger.info(f"{len(self.neighborhood)}-neighborhood, timeout {self.max_planning_time}s")

    def _create_neighborhood(self) -> List[Tuple[int, int, int]]:
        neighborhood = []

        for dx in [-1, 0, 1]:
            for dy in [-1, 0, 1]:
                for dz in [-1, 0, 1]:
                    if dx == 0 and dy == 0 and dz == 0:
                        continue

                    if not self.allow_diagonal and (abs(dx) + abs(dy) + abs(dz) > 1):
                        continue

                    neighborhood.append((dx, dy, dz))

        return neighborhood

    def plan_path(self, start: Any, goal: Any,
                  origin: Any, corner: Any,
                  volume: OccupancyVolume,
                  step: float) -> List[np.ndarray]:
        """
        Plan a polyline from start to goal.

        Args:
            start: Start point in world coordinates
            goal: Goal point in world coordinates
            origin: Lower corner of the search box
            corner: Upper corner of the search box
            volume: Occupancy volume used for validity checks
            step: Sampling step for line-of-sight checks

        Returns:
            Route points from start to goal; empty or a single point if no route exists
        """
        result = self.search(start, goal, origin, corner, volume, step)
        return result.path

    def search(self, start: Any, goal: Any,
               origin: Any, corner: Any,
               volume: OccupancyVolume,
               step: float) -> RouteResult:
        planning_start = time.time()

        start = np.asarray(start, dtype=float)
        goal = np.asarray(goal, dtype=float)

        lower = np.maximum(np.asarray(origin, dtype=float), volume.origin)
        upper = np.minimum(np.asarray(corner, dtype=float), volume.corner)
        low_idx = np.array(volume.world_to_grid(lower))
        high_idx = np.array(volume.world_to_grid(upper - 1e-9))

        start_grid = volume.world_to_grid(start)
        goal_grid = volume.world_to_grid(goal)

        self.logger.debug(f"Route search: {start} -> {goal} (grid {start_grid} -> {goal_grid})")

        if not (volume.is_free(start) and volume.is_free(goal)):
            self.logger.warning("Route search: start or goal is not free")
            result = RouteResult(planning_time=time.time() - planning_start)
            self._update_statistics(result)
            return result

        result = self._astar_search(start_grid, goal_grid, volume, low_idx, high_idx)

        if result.success:
            # Exact endpoints replace the voxel centres they fall into
            interior = [volume.grid_to_world(g) for g in result.grid_path[1:-1]]
            raw = [start.copy()] + interior + [goal.copy()]
            result.path = self._shortcut(raw, volume, step)

        result.planning_time = time.time() - planning_start
        self._update_statistics(result)

        self.logger.info(f"Route search completed in {result.planning_time:.3f}s: "
                         f"{len(result.path)} points, {result.nodes_expanded} nodes expanded, "
                         f"success={result.success}")
        return result

    def _astar_search(self, start: Tuple[int, int, int], goal: Tuple[int, int, int],
                      volume: OccupancyVolume,
                      low_idx: np.ndarray, high_idx: np.ndarray) -> RouteResult:
        counter = itertools.count()
        open_heap: List[Tuple[float, int, Tuple[int, int, int]]] = []
        g_cost: Dict[Tuple[int, int, int], float] = {start: 0.0}
        parent: Dict[Tuple[int, int, int], Tuple[int, int, int]] = {}
        closed = set()

        heapq.heappush(open_heap, (self._heuristic(start, goal, volume), next(counter), start))

        nodes_expanded = 0
        search_start = time.time()

        while open_heap:
            if time.time() - search_start > self.max_planning_time:
                self.logger.warning("A* route search timed out")
                break

            if nodes_expanded >= self.max_iterations:
                self.logger.warning("A* route search hit iteration limit")
                break

            _, _, current = heapq.heappop(open_heap)
            if current in closed:
                continue

            if current == goal:
                return RouteResult(
                    grid_path=self._reconstruct_path(parent, current),
                    total_cost=g_cost[current],
                    nodes_expanded=nodes_expanded,
                    success=True
                )

            closed.add(current)
            nodes_expanded += 1

            for dx, dy, dz in self.neighborhood:
                neighbor = (current[0] + dx, current[1] + dy, current[2] + dz)

                if neighbor in closed:
                    continue

                if not (low_idx[0] <= neighbor[0] <= high_idx[0] and
                        low_idx[1] <= neighbor[1] <= high_idx[1] and
                        low_idx[2] <= neighbor[2] <= high_idx[2]):
                    continue

                if not volume.is_free_index(neighbor):
                    continue

                tentative = g_cost[current] + np.sqrt(dx * dx + dy * dy + dz * dz) * volume.scale

                if tentative < g_cost.get(neighbor, float('inf')):
                    g_cost[neighbor] = tentative
                    parent[neighbor] = current
                    f_cost = tentative + self.heuristic_weight * self._heuristic(neighbor, goal, volume)
                    heapq.heappush(open_heap, (f_cost, next(counter), neighbor))

        return RouteResult(nodes_expanded=nodes_expanded)

    def _heuristic(self, idx: Tuple[int, int, int], goal: Tuple[int, int, int],
                   volume: OccupancyVolume) -> float:
        dx = idx[0] - goal[0]
        dy = idx[1] - goal[1]
        dz = idx[2] - goal[2]
        return float(np.sqrt(dx * dx + dy * dy + dz * dz)) * volume.scale

    def _reconstruct_path(self, parent: Dict[Tuple[int, int, int], Tuple[int, int, int]],
                          goal: Tuple[int, int, int]) -> List[Tuple[int, int, int]]:
        path = [goal]
        current = goal

        while current in parent:
            current = parent[current]
            path.append(current)

        path.reverse()
        return path

    def _line_of_sight(self, a: np.ndarray, b: np.ndarray,
                       volume: OccupancyVolume, step: float) -> bool:
        length = float(np.linalg.norm(b - a))
        num_samples = max(2, int(np.ceil(length / max(step, 1e-3))) + 1)
        samples = a + np.linspace(0.0, 1.0, num_samples)[:, None] * (b - a)
        return bool(np.all(volume.are_free(samples)))

    def _shortcut(self, path: List[np.ndarray], volume: OccupancyVolume,
                  step: float) -> List[np.ndarray]:
        """Greedy line-of-sight simplification keeping the endpoints."""
        if len(path) <= 2:
            return path

        simplified = [path[0]]
        i = 0

        while i < len(path) - 1:
            j = len(path) - 1
            while j > i + 1 and not self._line_of_sight(path[i], path[j], volume, step):
                j -= 1
            simplified.append(path[j])
            i = j

        return simplified

    def _update_statistics(self, result: RouteResult):
        self.planning_statistics['total_plans'] += 1

        if result.success:
            self.planning_statistics['successful_plans'] += 1
            n = self.planning_statistics['successful_plans']

            self.planning_statistics['average_planning_time'] = (
                (n - 1) * self.planning_statistics['average_planning_time'] + result.planning_time
            ) / n

            self.planning_statistics['average_nodes_expanded'] = (
                (n - 1) * self.planning_statistics['average_nodes_expanded'] + result.nodes_expanded
            ) / n

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.planning_statistics.copy()

        if stats['total_plans'] > 0:
            stats['success_rate'] = stats['successful_plans'] / stats['total_plans']
        else:
            stats['success_rate'] = 0.0

        return stats
