"""
Planner Manager
Owns the occupancy volume, waypoint buffer and active trajectory, and drives
map capture -> route search -> corridor build -> trajectory synthesis -> install.
"""

import numpy as np
import logging
import time
import threading
from typing import Dict, List, Tuple, Optional, Any, Callable
from dataclasses import dataclass, field
from enum import Enum

from corridor_planner.planning.global_planner.occupancy_grid import OccupancyVolume
from corridor_planner.planning.global_planner.astar_planner import AStarPlanner
from corridor_planner.planning.corridor.corridor_builder import CorridorBuilder
from corridor_planner.planning.trajectory.synthesizer import TrajectorySynthesizer
from corridor_planner.planning.trajectory.trajectory import Trajectory
from corridor_planner.planning.local_planner.safety_checker import LookAheadSafetyChecker


class PlannerStatus(Enum):
    """Orchestrator states."""
    MAP_PENDING = "map_pending"
    MAP_READY_IDLE = "map_ready_idle"
    WAYPOINTS_PARTIAL = "waypoints_partial"
    PLANNING = "planning"
    EXECUTING = "executing"


class WaypointStatus(Enum):
    ACCEPTED = "accepted"
    REJECTED_OCCUPIED = "rejected_occupied"
    IGNORED_NO_MAP = "ignored_no_map"


class FailureReason(Enum):
    DEGENERATE_ROUTE = "degenerate_route"
    EMPTY_CORRIDOR = "empty_corridor"
    SYNTHESIS_SETUP_FAILED = "synthesis_setup_failed"
    NON_FINITE_COST = "non_finite_cost"
    EMPTY_TRAJECTORY = "empty_trajectory"
    INTERNAL_ERROR = "internal_error"


@dataclass
class WaypointRequest:
    """Goal click: planar position plus a normalized value selecting the height."""
    position: Tuple[float, float, float]
    aux: float = 0.0


@dataclass
class PlanningResult:
    """Outcome of one planning attempt."""
    success: bool
    reason: Optional[FailureReason] = None
    route: List[np.ndarray] = field(default_factory=list)
    corridor: List[np.ndarray] = field(default_factory=list)
    trajectory: Optional[Trajectory] = None
    cost: float = float('inf')
    planning_time: float = 0.0


class WaypointBuffer:
    """Capacity-2 ring: a point added to a full buffer replaces both."""

    capacity = 2

    def __init__(self):
        self._points: List[np.ndarray] = []

    def push(self, point: np.ndarray) -> int:
        if len(self._points) >= self.capacity:
            self._points.clear()
        self._points.append(np.asarray(point, dtype=float))
        return len(self._points)

    def clear(self):
        self._points.clear()

    def is_full(self) -> bool:
        return len(self._points) == self.capacity

    @property
    def points(self) -> List[np.ndarray]:
        return [p.copy() for p in self._points]

    def __len__(self) -> int:
        return len(self._points)


@dataclass
class PlanningState:
    """Everything the orchestrator and the execution monitor share."""
    volume: OccupancyVolume
    safety_checker: LookAheadSafetyChecker
    status: PlannerStatus = PlannerStatus.MAP_PENDING
    waypoints: WaypointBuffer = field(default_factory=WaypointBuffer)
    trajectory: Optional[Trajectory] = None
    trajectory_stamp: float = 0.0
    route: List[np.ndarray] = field(default_factory=list)
    corridor: List[np.ndarray] = field(default_factory=list)
    plan_id: int = 0


@dataclass
class ActiveExecution:
    """Consistent view of the installed trajectory and its safety checker."""
    trajectory: Trajectory
    stamp: float
    safety_checker: LookAheadSafetyChecker
    plan_id: int


class PlannerManager:
    """
    Planning orchestrator.

    Event handlers run to completion; planning executes synchronously inside
    waypoint handling once two waypoints are buffered.
    """

    def __init__(self, config: Dict[str, Any],
                 route_search: Optional[AStarPlanner] = None,
                 corridor_builder: Optional[CorridorBuilder] = None,
                 synthesizer_factory: Optional[Callable[[], TrajectorySynthesizer]] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.clock = clock

        self.route_search = route_search or AStarPlanner(config)
        self.corridor_builder = corridor_builder or CorridorBuilder(config)
        self.synthesizer_factory = synthesizer_factory or (lambda: TrajectorySynthesizer(config))

        self.route_step = config.get('route_step', 0.01)
        self.corridor_progress = config.get('corridor_progress', 7.0)
        self.corridor_range = config.get('corridor_range', 3.0)

        self.weight_t = config.get('weight_t', 20.0)
        self.length_per_piece = config.get('length_per_piece', float('inf'))
        self.smoothing_eps = config.get('smoothing_eps', 1.0e-2)
        self.integral_intervs = config.get('integral_intervs', 16)
        self.rel_cost_tol = config.get('rel_cost_tol', 1.0e-5)

        self.magnitude_bounds = np.array([
            config.get('max_vel_mag', 4.0),
            config.get('max_bdr_mag', 2.1),
            config.get('max_tilt_angle', 1.05),
            config.get('min_thrust', 2.0),
            config.get('max_thrust', 12.0),
            config.get('max_pitch', 0.8)
        ])
        self.penalty_weights = np.array(config.get('chi_vec', [1.0e4, 1.0e4, 1.0e4, 1.0e4, 1.0e5, 1.0e4]), dtype=float)
        self.physical_params = physical_params_from(config)

        self.state = PlanningState(
            volume=OccupancyVolume(config),
            safety_checker=LookAheadSafetyChecker(config)
        )
        self.planning_lock = threading.Lock()

        self.plan_listeners: List[Callable[[PlanningResult], None]] = []

        self.planning_statistics = {
            'planning_attempts': 0,
            'successful_plans': 0,
            'failed_plans': 0,
            'failure_reasons': {},
            'rejected_waypoints': 0,
            'total_planning_time': 0.0,
            'average_planning_time': 0.0
        }

        self.logger.info("Planner Manager initialized")
        self.logger.info(f"Dilation radius: {self.state.volume.dilate_radius}m, "
                         f"corridor progress/range: {self.corridor_progress}/{self.corridor_range}m")

    @property
    def status(self) -> PlannerStatus:
        return self.state.status

    def on_point_cloud(self, points: Any) -> bool:
        """
        Capture the occupancy map. Only the first input is used.

        Returns:
            True if this input initialized the map
        """
        if self.state.status != PlannerStatus.MAP_PENDING:
            self.logger.debug("Map already captured, point cloud ignored")
            return False

        if not self.state.volume.build(points):
            return False

        self.state.status = PlannerStatus.MAP_READY_IDLE
        self.logger.info("Occupancy map captured")
        return True

    def waypoint_height(self, aux: float) -> float:
        """Height selected by the normalized auxiliary value; its sign is ignored."""
        zmin, zmax = self.state.volume.map_bound[4], self.state.volume.map_bound[5]
        margin = self.state.volume.dilate_radius
        ratio = min(abs(float(aux)), 1.0)
        return zmin + margin + ratio * (zmax - zmin - 2.0 * margin)

    def on_waypoint(self, request: WaypointRequest) -> WaypointStatus:
        """
        Buffer a waypoint; plans synchronously when the buffer reaches two points.
        """
        if self.state.status == PlannerStatus.MAP_PENDING:
            self.logger.warning("Waypoint ignored: occupancy map not captured yet")
            return WaypointStatus.IGNORED_NO_MAP

        point = np.array([request.position[0], request.position[1], self.waypoint_height(request.aux)])

        if not self.state.volume.is_free(point):
            self.planning_statistics['rejected_waypoints'] += 1
            self.logger.warning(f"Infeasible waypoint selected: {point.round(3).tolist()}")
            return WaypointStatus.REJECTED_OCCUPIED

        size = self.state.waypoints.push(point)
        self.state.status = PlannerStatus.WAYPOINTS_PARTIAL
        self.logger.info(f"Waypoint {size} accepted: {point.round(3).tolist()}")

        if size == WaypointBuffer.capacity:
            self.plan()

        return WaypointStatus.ACCEPTED

    def plan(self) -> PlanningResult:
        """
        Run route search, corridor generation and synthesis on the buffered pair.
        """
        planning_start = time.time()
        self.planning_statistics['planning_attempts'] += 1
        self.state.status = PlannerStatus.PLANNING

        start, goal = self.state.waypoints.points
        self.logger.info(f"Planning: {start.round(3).tolist()} -> {goal.round(3).tolist()}")

        try:
            result = self._run_pipeline(start, goal)
        except Exception as e:
            self.logger.exception(f"Planning pipeline error: {e}")
            result = PlanningResult(success=False, reason=FailureReason.INTERNAL_ERROR)

        result.planning_time = time.time() - planning_start

        if result.success:
            self._install(result)
        else:
            self._record_failure(result)

        self._update_statistics(result)
        self._notify(result)
        return result

    def _run_pipeline(self, start: np.ndarray, goal: np.ndarray) -> PlanningResult:
        volume = self.state.volume

        route = self.route_search.plan_path(start, goal, volume.origin, volume.corner,
                                            volume, self.route_step)
        route = [np.asarray(p, dtype=float) for p in route]
        if len(route) <= 1:
            return PlanningResult(success=False, reason=FailureReason.DEGENERATE_ROUTE, route=route)

        corridor = self.corridor_builder.convex_cover(route, volume.surface(),
                                                      volume.origin, volume.corner,
                                                      self.corridor_progress, self.corridor_range)
        corridor = self.corridor_builder.short_cut(corridor)
        if len(corridor) == 0:
            return PlanningResult(success=False, reason=FailureReason.EMPTY_CORRIDOR, route=route)

        ini_state = np.vstack([route[0], np.zeros(3), np.zeros(3)])
        fin_state = np.vstack([route[-1], np.zeros(3), np.zeros(3)])

        synthesizer = self.synthesizer_factory()
        if not synthesizer.setup(self.weight_t, ini_state, fin_state, corridor,
                                 self.length_per_piece, self.smoothing_eps, self.integral_intervs,
                                 self.magnitude_bounds, self.penalty_weights, self.physical_params):
            return PlanningResult(success=False, reason=FailureReason.SYNTHESIS_SETUP_FAILED,
                                  route=route, corridor=corridor)

        cost, trajectory = synthesizer.optimize(self.rel_cost_tol)
        if trajectory is None or not np.isfinite(cost):
            return PlanningResult(success=False, reason=FailureReason.NON_FINITE_COST,
                                  route=route, corridor=corridor, cost=float('inf'))

        if trajectory.get_piece_num() <= 0:
            return PlanningResult(success=False, reason=FailureReason.EMPTY_TRAJECTORY,
                                  route=route, corridor=corridor, cost=cost)

        return PlanningResult(success=True, route=route, corridor=corridor,
                              trajectory=trajectory, cost=float(cost))

    def _install(self, result: PlanningResult):
        with self.planning_lock:
            self.state.trajectory = result.trajectory
            self.state.trajectory_stamp = self.clock()
            self.state.route = result.route
            self.state.corridor = result.corridor
            self.state.safety_checker.clear()
            self.state.plan_id += 1
            self.state.status = PlannerStatus.EXECUTING

        self.logger.info(f"Trajectory installed: {result.trajectory.get_piece_num()} pieces, "
                         f"{result.trajectory.get_total_duration():.2f}s, cost {result.cost:.3f}, "
                         f"planned in {result.planning_time:.3f}s")

    def _record_failure(self, result: PlanningResult):
        self.state.status = (PlannerStatus.EXECUTING if self.state.trajectory is not None
                             else PlannerStatus.MAP_READY_IDLE)
        self.logger.warning(f"Planning abandoned: {result.reason.value}")

    def get_active_execution(self) -> Optional[ActiveExecution]:
        """Installed trajectory with its stamp and checker, or None. Call under planning_lock."""
        if self.state.trajectory is None:
            return None

        return ActiveExecution(
            trajectory=self.state.trajectory,
            stamp=self.state.trajectory_stamp,
            safety_checker=self.state.safety_checker,
            plan_id=self.state.plan_id
        )

    def add_plan_listener(self, callback: Callable[[PlanningResult], None]):

        self.plan_listeners.append(callback)

    def _notify(self, result: PlanningResult):
        for callback in self.plan_listeners:
            try:
                callback(result)
            except Exception as e:
                self.logger.error(f"Plan listener error: {e}")

    def _update_statistics(self, result: PlanningResult):
        stats = self.planning_statistics

        if result.success:
            stats['successful_plans'] += 1
        else:
            stats['failed_plans'] += 1
            reason = result.reason.value
            stats['failure_reasons'][reason] = stats['failure_reasons'].get(reason, 0) + 1

        stats['total_planning_time'] += result.planning_time
        stats['average_planning_time'] = stats['total_planning_time'] / stats['planning_attempts']

    def get_planning_statistics(self) -> Dict[str, Any]:
        """Get comprehensive planning statistics."""
        with self.planning_lock:
            stats = dict(self.planning_statistics)
            stats['failure_reasons'] = dict(self.planning_statistics['failure_reasons'])
            stats.update({
                'status': self.state.status.value,
                'buffered_waypoints': len(self.state.waypoints),
                'route_length': len(self.state.route),
                'corridor_size': len(self.state.corridor),
                'trajectory_pieces': self.state.trajectory.get_piece_num() if self.state.trajectory is not None else 0,
                'plan_id': self.state.plan_id
            })

        stats['route_search_stats'] = self.route_search.get_statistics() if hasattr(self.route_search, 'get_statistics') else {}
        return stats


def physical_params_from(config: Dict[str, Any]) -> np.ndarray:
    """[mass, g, horizontal drag, vertical drag, parasitic drag, speed smoothing]"""
    return np.array([
        config.get('vehicle_mass', 0.61),
        config.get('grav_acc', 9.8),
        config.get('horiz_drag', 0.70),
        config.get('vert_drag', 0.80),
        config.get('paras_drag', 0.01),
        config.get('speed_eps', 1.0e-4)
    ])
