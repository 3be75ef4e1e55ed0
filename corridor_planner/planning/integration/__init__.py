"""
Planning Integration Module
Orchestrates map capture, corridor planning and trajectory supervision.
"""

from corridor_planner.planning.integration.planner_manager import (
    PlannerManager, PlannerStatus, PlanningResult, PlanningState,
    WaypointBuffer, WaypointRequest, WaypointStatus, FailureReason
)
from corridor_planner.planning.integration.execution_monitor import ExecutionMonitor, TelemetrySample, MonitoringEvent
from corridor_planner.planning.integration.planner_node import PlannerNode

__all__ = [
    'PlannerManager', 'PlannerStatus', 'PlanningResult', 'PlanningState',
    'WaypointBuffer', 'WaypointRequest', 'WaypointStatus', 'FailureReason',
    'ExecutionMonitor', 'TelemetrySample', 'MonitoringEvent',
    'PlannerNode',
]
