import numpy as np
import matplotlib.pyplot as plt
import logging
from typing import List, Dict, Optional, Any
from pathlib import Path

from corridor_planner.planning.integration.planner_manager import PlanningResult
from corridor_planner.planning.integration.execution_monitor import TelemetrySample
from corridor_planner.planning.trajectory.trajectory import Trajectory


class TrajectoryPlotter:

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.figure_size = tuple(config.get('figure_size', (12, 8)))
        self.dpi = config.get('dpi', 100)
        self.sample_dt = config.get('sample_dt', 0.02)
        self.save_plots = config.get('save_plots', True)
        self.output_dir = Path(config.get('output_dir', 'plots'))

        self.colors = {
            'route': '#7f7f7f',
            'trajectory': '#1f77b4',
            'start': '#2ca02c',
            'goal': '#d62728',
            'progress': '#ff7f0e',
            'corridor': '#9467bd',
            'unsafe': '#d62728'
        }

        self.plan_count = 0

        if self.save_plots:
            self.output_dir.mkdir(parents=True, exist_ok=True)

        self.logger.info("Trajectory Plotter initialized")

    def on_plan(self, result: PlanningResult):
        """Plan listener: save an overview of each successful plan."""
        if not result.success or result.trajectory is None:
            return

        self.plan_count += 1
        fig = self.plot_plan(result, save_name=f'plan_{self.plan_count:03d}.png')
        plt.close(fig)

    __call__ = on_plan

    def plot_plan(self, result: PlanningResult,
                  progress_time: Optional[float] = None,
                  save_name: str = 'plan.png') -> plt.Figure:

        fig = plt.figure(figsize=self.figure_size, dpi=self.dpi)
        ax = fig.add_subplot(111, projection='3d')

        if result.route:
            route = np.array(result.route)
            ax.plot(route[:, 0], route[:, 1], route[:, 2], '--',
                    color=self.colors['route'], linewidth=1, label='Route')
            ax.scatter(*route[0], color=self.colors['start'], s=80, label='Start')
            ax.scatter(*route[-1], color=self.colors['goal'], s=80, label='Goal')

        if result.trajectory is not None:
            _, positions = result.trajectory.sample(self.sample_dt)
            ax.plot(positions[:, 0], positions[:, 1], positions[:, 2],
                    color=self.colors['trajectory'], linewidth=2, label='Trajectory')

            junctions = result.trajectory.get_positions()
            ax.scatter(junctions[:, 0], junctions[:, 1], junctions[:, 2],
                       color=self.colors['trajectory'], s=15)

            if progress_time is not None:
                ax.scatter(*result.trajectory.get_pos(progress_time),
                           color=self.colors['progress'], s=100, marker='*', label='Confirmed progress')

        ax.set_xlabel('X (m)')
        ax.set_ylabel('Y (m)')
        ax.set_zlabel('Z (m)')
        ax.set_title(f'Plan: {len(result.corridor)} polytopes, cost {result.cost:.2f}')
        ax.legend()

        if self.save_plots:
            fig.savefig(self.output_dir / save_name, bbox_inches='tight')

        return fig

    def plot_profiles(self, trajectory: Trajectory,
                      bounds: Optional[Dict[str, float]] = None,
                      save_name: str = 'profiles.png') -> plt.Figure:

        times, velocities = trajectory.sample(self.sample_dt, order=1)
        _, accelerations = trajectory.sample(self.sample_dt, order=2)

        fig, axes = plt.subplots(2, 1, figsize=self.figure_size, dpi=self.dpi, sharex=True)

        axes[0].plot(times, np.linalg.norm(velocities, axis=1), color=self.colors['trajectory'])
        if bounds and 'max_vel_mag' in bounds:
            axes[0].axhline(bounds['max_vel_mag'], color=self.colors['unsafe'], linestyle='--')
        axes[0].set_ylabel('Speed (m/s)')
        axes[0].set_title('Speed')
        axes[0].grid(True, alpha=0.3)

        axes[1].plot(times, np.linalg.norm(accelerations, axis=1), color=self.colors['corridor'])
        axes[1].set_xlabel('Time (s)')
        axes[1].set_ylabel('Acceleration (m/s²)')
        axes[1].set_title('Acceleration Magnitude')
        axes[1].grid(True, alpha=0.3)

        plt.tight_layout()

        if self.save_plots:
            fig.savefig(self.output_dir / save_name, bbox_inches='tight')

        return fig

    def plot_telemetry(self, samples: List[TelemetrySample],
                       save_name: str = 'telemetry.png') -> plt.Figure:

        fig, axes = plt.subplots(2, 2, figsize=(15, 10), dpi=self.dpi)

        if samples:
            elapsed = np.array([s.elapsed for s in samples])
            unsafe = np.array([not s.safe for s in samples])

            axes[0, 0].plot(elapsed, [s.speed for s in samples], color=self.colors['trajectory'])
            axes[0, 0].set_title('Speed')
            axes[0, 0].set_ylabel('Speed (m/s)')

            axes[0, 1].plot(elapsed, [s.tilt_deg for s in samples], label='Tilt')
            axes[0, 1].plot(elapsed, [s.pitch_deg for s in samples], label='Pitch', alpha=0.7)
            axes[0, 1].plot(elapsed, [s.roll_deg for s in samples], label='Roll', alpha=0.7)
            axes[0, 1].set_title('Attitude')
            axes[0, 1].set_ylabel('Angle (deg)')
            axes[0, 1].legend()

            axes[1, 0].plot(elapsed, [s.thrust for s in samples], color=self.colors['corridor'])
            axes[1, 0].set_title('Thrust')
            axes[1, 0].set_ylabel('Thrust (N)')

            axes[1, 1].plot(elapsed, [s.progress for s in samples], color=self.colors['progress'],
                            label='Confirmed progress')
            axes[1, 1].plot(elapsed, elapsed, color=self.colors['route'], linestyle='--', label='Elapsed')
            if unsafe.any():
                axes[1, 1].scatter(elapsed[unsafe], np.array([s.progress for s in samples])[unsafe],
                                   color=self.colors['unsafe'], s=8, label='Unsafe')
            axes[1, 1].set_title('Look-ahead Progress')
            axes[1, 1].set_ylabel('Time (s)')
            axes[1, 1].legend()

        for ax in axes.flat:
            ax.set_xlabel('Elapsed (s)')
            ax.grid(True, alpha=0.3)

        plt.tight_layout()

        if self.save_plots:
            fig.savefig(self.output_dir / save_name, bbox_inches='tight')

        return fig
