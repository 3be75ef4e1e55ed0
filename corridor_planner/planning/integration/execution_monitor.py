import numpy as np
import logging
import time
from typing import Dict, List, Tuple, Optional, Any, Callable
from dataclasses import dataclass, field
from collections import deque

from corridor_planner.planning.integration.planner_manager import PlannerManager, physical_params_from
from corridor_planner.planning.trajectory.flatness import FlatnessMap, quaternion_to_euler_deg


@dataclass
class TelemetrySample:

    timestamp: float
    elapsed: float
    plan_id: int
    position: np.ndarray
    velocity: np.ndarray
    thrust: float
    quaternion: np.ndarray
    body_rate: np.ndarray
    tilt_deg: float
    pitch_deg: float
    roll_deg: float
    yaw_deg: float
    body_rate_mag: float
    speed: float
    progress: float
    safe: bool
    free_distance: Optional[float] = None
    safety_recomputed: bool = False


@dataclass
class MonitoringEvent:

    timestamp: float
    event_type: str
    severity: str
    message: str
    position: Optional[Tuple[float, float, float]] = None
    data: Dict[str, Any] = field(default_factory=dict)


class ExecutionMonitor:
    """
    Per-tick supervision of the installed trajectory.

    Each tick samples the trajectory at the elapsed time, maps it through the
    flatness model, runs the look-ahead safety check and publishes a telemetry
    sample. Ticks without an installed trajectory, or outside its time span,
    do nothing.
    """

    def __init__(self, config: Dict[str, Any],
                 planner_manager: PlannerManager,
                 flatness_map: Optional[FlatnessMap] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.clock = clock

        self.planner_manager = planner_manager

        self.flatness_map = flatness_map or FlatnessMap()
        self.flatness_map.reset(*physical_params_from(config))

        self.telemetry: deque = deque(maxlen=config.get('telemetry_history', 1000))
        self.events: deque = deque(maxlen=1000)
        self.telemetry_sinks: List[Callable[[TelemetrySample], None]] = []
        self.event_callbacks: List[Callable[[MonitoringEvent], None]] = []

        self._last_plan_id = 0
        self._last_safe: Optional[bool] = None
        self._completed_plan_id = 0

        self.statistics = {
            'ticks': 0,
            'active_ticks': 0,
            'unsafe_ticks': 0,
            'safety_recomputations': 0
        }

        self.logger.info("Execution Monitor initialized")

    def tick(self, now: Optional[float] = None) -> Optional[TelemetrySample]:
        """
        Run one supervision step.

        Args:
            now: Current time; defaults to the monitor clock

        Returns:
            Telemetry sample, or None when no trajectory is active at this time
        """
        now = self.clock() if now is None else now
        self.statistics['ticks'] += 1

        # Events are emitted after the lock is released; callbacks may query the planner
        pending: List[Tuple[str, str]] = []
        sample_ready = False

        with self.planner_manager.planning_lock:
            active = self.planner_manager.get_active_execution()
            if active is None:
                return None

            trajectory = active.trajectory
            elapsed = now - active.stamp
            total = trajectory.get_total_duration()

            if active.plan_id != self._last_plan_id:
                self._last_plan_id = active.plan_id
                self._last_safe = None
                pending.append(("TRAJECTORY_STARTED", f"Supervising plan {active.plan_id}: {total:.2f}s"))

            if elapsed > total and self._completed_plan_id != active.plan_id:
                self._completed_plan_id = active.plan_id
                pending.append(("TRAJECTORY_COMPLETED", f"Plan {active.plan_id} finished after {total:.2f}s"))

            if 0.0 <= elapsed <= total:
                sample_ready = True
                pos = trajectory.get_pos(elapsed)
                vel = trajectory.get_vel(elapsed)
                acc = trajectory.get_acc(elapsed)
                jer = trajectory.get_jer(elapsed)

                psi = float(np.arctan2(vel[1], vel[0]))
                thrust, quat, omg = self.flatness_map.forward(vel, acc, jer, psi, 0.0)

                tilt, pitch, roll, yaw = quaternion_to_euler_deg(quat)
                speed = float(np.linalg.norm(vel))

                safety = active.safety_checker.check(trajectory, quat, pos, speed, elapsed)

        for event_type, message in pending:
            self._log_event(event_type, "INFO", message)

        if not sample_ready:
            return None

        sample = TelemetrySample(
            timestamp=now,
            elapsed=elapsed,
            plan_id=active.plan_id,
            position=pos,
            velocity=vel,
            thrust=thrust,
            quaternion=quat,
            body_rate=omg,
            tilt_deg=tilt,
            pitch_deg=pitch,
            roll_deg=roll,
            yaw_deg=yaw,
            body_rate_mag=float(np.linalg.norm(omg)),
            speed=speed,
            progress=safety.progress,
            safe=safety.safe,
            free_distance=safety.free_distance,
            safety_recomputed=safety.recomputed
        )

        self._update_statistics(sample)
        self._track_safety(sample)
        self._publish(sample)
        return sample

    def _update_statistics(self, sample: TelemetrySample):
        self.statistics['active_ticks'] += 1
        if not sample.safe:
            self.statistics['unsafe_ticks'] += 1
        if sample.safety_recomputed:
            self.statistics['safety_recomputations'] += 1

    def _track_safety(self, sample: TelemetrySample):
        if not sample.safety_recomputed or sample.safe == self._last_safe:
            return

        position = tuple(float(v) for v in sample.position)
        data = {'speed': sample.speed, 'free_distance': sample.free_distance, 'progress': sample.progress}

        if sample.safe:
            self._log_event("STOPPING_DISTANCE_OK", "INFO",
                            f"Vehicle can stop within {sample.free_distance:.2f}m", position, data)
        else:
            self._log_event("STOPPING_DISTANCE_VIOLATED", "WARNING",
                            f"Speed {sample.speed:.2f}m/s exceeds stopping capacity of "
                            f"{sample.free_distance:.2f}m confirmed free", position, data)

        self._last_safe = sample.safe

    def _publish(self, sample: TelemetrySample):
        self.telemetry.append(sample)

        for sink in self.telemetry_sinks:
            try:
                sink(sample)
            except Exception as e:
                self.logger.error(f"Telemetry sink error: {e}")

    def _log_event(self, event_type: str, severity: str, message: str,
                   position: Optional[Tuple[float, float, float]] = None,
                   data: Dict[str, Any] = None):

        event = MonitoringEvent(
            timestamp=self.clock(),
            event_type=event_type,
            severity=severity,
            message=message,
            position=position,
            data=data or {}
        )

        self.events.append(event)

        if severity == "INFO":
            self.logger.info(f"[{event_type}] {message}")
        elif severity == "WARNING":
            self.logger.warning(f"[{event_type}] {message}")
        elif severity == "ERROR":
            self.logger.error(f"[{event_type}] {message}")

        for callback in self.event_callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"Event callback error: {e}")

    def add_telemetry_sink(self, sink: Callable[[TelemetrySample], None]):

        self.telemetry_sinks.append(sink)

    def add_event_callback(self, callback: Callable[[MonitoringEvent], None]):

        self.event_callbacks.append(callback)

    def get_recent_telemetry(self, count: int = 20) -> List[TelemetrySample]:

        return list(self.telemetry)[-count:]

    def get_recent_events(self, count: int = 20) -> List[MonitoringEvent]:

        return list(self.events)[-count:]

    def get_statistics(self) -> Dict[str, Any]:

        event_counts = {}
        for event in self.events:
            event_counts[event.event_type] = event_counts.get(event.event_type, 0) + 1

        latest = self.telemetry[-1] if self.telemetry else None

        return {
            'ticks': dict(self.statistics),
            'events': {
                'total_events': len(self.events),
                'event_counts': event_counts
            },
            'latest': {
                'speed': latest.speed,
                'progress': latest.progress,
                'safe': latest.safe
            } if latest else {}
        }
