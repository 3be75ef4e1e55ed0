"""
Planning Module
Occupancy capture, route search, corridor generation, trajectory synthesis
and look-ahead execution supervision.
"""

from corridor_planner.planning.global_planner import OccupancyVolume, AStarPlanner
from corridor_planner.planning.corridor import CorridorBuilder
from corridor_planner.planning.trajectory import Trajectory, TrajectorySynthesizer, FlatnessMap
from corridor_planner.planning.local_planner import LookAheadSafetyChecker
from corridor_planner.planning.integration import PlannerManager, ExecutionMonitor, PlannerNode

__all__ = [
    'OccupancyVolume',
    'AStarPlanner',
    'CorridorBuilder',
    'Trajectory',
    'TrajectorySynthesizer',
    'FlatnessMap',
    'LookAheadSafetyChecker',
    'PlannerManager',
    'ExecutionMonitor',
    'PlannerNode',
]
