"""
Local Safety Module
Look-ahead stopping-distance supervision of the active trajectory.
"""

from corridor_planner.planning.local_planner.safety_checker import LookAheadSafetyChecker, SafetyResult

__all__ = ['LookAheadSafetyChecker', 'SafetyResult']
