import logging

import numpy as np
import pytest

from corridor_planner.planning.integration.execution_monitor import TelemetrySample


@pytest.fixture
def make_sample():
    """Factory for telemetry samples along a 1 m/s cruise."""
    def factory(k, safe=True):
        return TelemetrySample(
            timestamp=100.0 + 0.1 * k,
            elapsed=0.1 * k,
            plan_id=1,
            position=np.array([0.1 * k, 0.0, 1.0]),
            velocity=np.array([1.0, 0.0, 0.0]),
            thrust=6.0,
            quaternion=np.array([1.0, 0.0, 0.0, 0.0]),
            body_rate=np.zeros(3),
            tilt_deg=5.0 + k,
            pitch_deg=5.0,
            roll_deg=0.0,
            yaw_deg=0.0,
            body_rate_mag=0.0,
            speed=1.0 + k,
            progress=0.1 * k + 1.0,
            safe=safe,
            free_distance=None if k == 0 else 2.0,
            safety_recomputed=k > 0
        )

    return factory


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level

    yield root

    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
