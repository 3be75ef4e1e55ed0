"""
Global Planning Module
Occupancy volume and A* route search.
"""

from corridor_planner.planning.global_planner.occupancy_grid import OccupancyVolume, VolumeInfo
from corridor_planner.planning.global_planner.astar_planner import AStarPlanner, RouteResult

__all__ = ['OccupancyVolume', 'VolumeInfo', 'AStarPlanner', 'RouteResult']
