"""
Planner Node
Single-threaded dispatch loop: queued arrival events run to completion, then
one execution-monitor tick, at a bounded rate.
"""

import logging
import time
from typing import Dict, Optional, Any, Callable, Tuple
from collections import deque

from corridor_planner.planning.integration.planner_manager import PlannerManager, WaypointRequest
from corridor_planner.planning.integration.execution_monitor import ExecutionMonitor, TelemetrySample


class PlannerNode:

    def __init__(self, config: Dict[str, Any],
                 planner_manager: Optional[PlannerManager] = None,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.clock = clock
        self.sleep = sleep

        self.tick_rate = float(config.get('tick_rate', 1000.0))   # Hz

        self.planner_manager = planner_manager or PlannerManager(config, clock=clock)
        self.execution_monitor = ExecutionMonitor(config, self.planner_manager, clock=clock)

        self._events: deque = deque()
        self.is_running = False

        self.logger.info(f"Planner node initialized: {self.tick_rate:.0f}Hz tick rate")

    def submit_point_cloud(self, points: Any):

        self._events.append(('map', points))

    def submit_waypoint(self, request: WaypointRequest):

        self._events.append(('waypoint', request))

    def pending_events(self) -> int:
        return len(self._events)

    def _dispatch(self, event: Tuple[str, Any]):
        kind, payload = event

        try:
            if kind == 'map':
                self.planner_manager.on_point_cloud(payload)
            elif kind == 'waypoint':
                self.planner_manager.on_waypoint(payload)
            else:
                self.logger.error(f"Unknown event type: {kind}")
        except Exception as e:
            self.logger.error(f"Error handling {kind} event: {e}")

    def spin_once(self, now: Optional[float] = None) -> Optional[TelemetrySample]:
        """Drain queued events, then run one monitor tick."""
        while self._events:
            self._dispatch(self._events.popleft())

        return self.execution_monitor.tick(now)

    def run(self, duration: Optional[float] = None, max_ticks: Optional[int] = None):
        """
        Run the loop until stopped, for a wall-clock duration, or for a number of ticks.
        """
        period = 1.0 / self.tick_rate
        start = self.clock()
        ticks = 0

        self.is_running = True
        self.logger.info("Planner node loop started")

        while self.is_running:
            loop_start = self.clock()

            self.spin_once(loop_start)
            ticks += 1

            if max_ticks is not None and ticks >= max_ticks:
                break
            if duration is not None and loop_start - start >= duration:
                break

            elapsed = self.clock() - loop_start
            self.sleep(max(0.0, period - elapsed))

        self.is_running = False
        self.logger.info(f"Planner node loop stopped after {ticks} ticks")

    def stop(self):

        self.is_running = False
