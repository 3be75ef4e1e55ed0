"""
Trajectory Module
Piecewise quintic trajectories, corridor-constrained synthesis and the
differential-flatness map.
"""

from corridor_planner.planning.trajectory.trajectory import Trajectory, Piece
from corridor_planner.planning.trajectory.flatness import FlatnessMap, body_x_axis, quaternion_to_euler_deg
from corridor_planner.planning.trajectory.synthesizer import TrajectorySynthesizer, smoothed_l1

__all__ = [
    'Trajectory', 'Piece',
    'FlatnessMap', 'body_x_axis', 'quaternion_to_euler_deg',
    'TrajectorySynthesizer', 'smoothed_l1',
]
