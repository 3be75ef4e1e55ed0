"""
Corridor Module
Safe flight corridor generation as sequences of convex polytopes.
"""

from corridor_planner.planning.corridor.corridor_builder import CorridorBuilder
from corridor_planner.planning.corridor.polytope import (
    box_polytope, contains, violation, chebyshev_center, overlap
)

__all__ = ['CorridorBuilder', 'box_polytope', 'contains', 'violation', 'chebyshev_center', 'overlap']
