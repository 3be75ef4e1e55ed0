#!/usr/bin/env python3
"""
Planner Demo
Builds a synthetic obstacle field, submits two waypoints and supervises the
resulting trajectory while recording telemetry.
"""

import sys
import argparse
import logging
import numpy as np

from corridor_planner.planning.integration import PlannerNode, WaypointRequest
from corridor_planner.utils import (
    load_config, validate_config, setup_logging, TelemetryRecorder, TrajectoryPlotter
)


def box_cloud(lower, upper, spacing: float = 0.1) -> np.ndarray:
    """Points filling an axis-aligned box."""
    axes = [np.arange(lo, hi + 0.5 * spacing, spacing) for lo, hi in zip(lower, upper)]
    grid = np.meshgrid(*axes, indexing='ij')
    return np.stack([g.ravel() for g in grid], axis=1)


def height_to_aux(z: float, map_bound, dilate_radius: float) -> float:
    zmin, zmax = map_bound[4], map_bound[5]
    return (z - zmin - dilate_radius) / (zmax - zmin - 2.0 * dilate_radius)


def main():
    parser = argparse.ArgumentParser(description='Run the corridor planner on a synthetic scene')
    parser.add_argument('--config', type=str, default='config/planner_config.yaml',
                        help='Configuration file')
    parser.add_argument('--start', type=float, nargs=3, default=[-10.0, -10.0, 1.5],
                        help='Start waypoint (x y z)')
    parser.add_argument('--goal', type=float, nargs=3, default=[10.0, 10.0, 1.5],
                        help='Goal waypoint (x y z)')
    parser.add_argument('--output', type=str, default='recorded_data',
                        help='Telemetry output directory')
    parser.add_argument('--plots', action='store_true',
                        help='Save plan and telemetry plots')

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.logging)
    logger = logging.getLogger(__name__)

    errors = validate_config(config)
    if errors:
        for section, messages in errors.items():
            for message in messages:
                logger.error(f"Invalid {section} config: {message}")
        sys.exit(1)

    node = PlannerNode(config.as_dict())

    recorder = TelemetryRecorder({'output_dir': args.output})
    node.execution_monitor.add_telemetry_sink(recorder.record)

    plotter = None
    if args.plots:
        plotter = TrajectoryPlotter({'output_dir': args.output})
        node.planner_manager.add_plan_listener(plotter.on_plan)

    obstacles = np.vstack([
        box_cloud([-2.0, -2.0, 0.0], [2.0, 2.0, 5.0]),
        box_cloud([4.0, -8.0, 0.0], [5.0, 3.0, 3.0]),
        box_cloud([-8.0, 4.0, 0.0], [3.0, 5.0, 5.0]),
    ])
    node.submit_point_cloud(obstacles)

    for point in (args.start, args.goal):
        aux = height_to_aux(point[2], config.map_bound, config.dilate_radius)
        node.submit_waypoint(WaypointRequest(position=tuple(point), aux=aux))

    recorder.start_recording()
    node.spin_once()

    active = node.planner_manager.get_active_execution()
    if active is None:
        logger.error("Planning failed; nothing to execute")
        recorder.stop_recording()
        sys.exit(1)

    node.run(duration=active.trajectory.get_total_duration() + 0.5)
    session_dir = recorder.stop_recording()

    if plotter is not None:
        plotter.plot_telemetry(node.execution_monitor.get_recent_telemetry(config.telemetry_history))

    stats = node.planner_manager.get_planning_statistics()
    monitor_stats = node.execution_monitor.get_statistics()

    print("\nPLANNER RUN SUMMARY")
    print("=" * 50)
    print(f"  Trajectory: {active.trajectory}")
    print(f"  Planning attempts: {stats['planning_attempts']}, successes: {stats['successful_plans']}")
    print(f"  Active ticks: {monitor_stats['ticks']['active_ticks']}, "
          f"unsafe: {monitor_stats['ticks']['unsafe_ticks']}")
    print(f"  Telemetry: {session_dir}")


if __name__ == "__main__":
    main()
