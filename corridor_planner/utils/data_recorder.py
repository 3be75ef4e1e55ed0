import numpy as np
import logging
import time
import json
import csv
from typing import Dict, List, Optional, Any
from pathlib import Path
import threading

from corridor_planner.planning.integration.execution_monitor import TelemetrySample

TELEMETRY_FIELDS = [
    'timestamp', 'elapsed', 'plan_id',
    'pos_x', 'pos_y', 'pos_z',
    'vel_x', 'vel_y', 'vel_z',
    'quat_w', 'quat_x', 'quat_y', 'quat_z',
    'omg_x', 'omg_y', 'omg_z',
    'thrust', 'tilt_deg', 'pitch_deg', 'roll_deg', 'yaw_deg',
    'body_rate_mag', 'speed', 'progress', 'safe', 'free_distance'
]


class TelemetryRecorder:
    """
    Telemetry sink that buffers execution-monitor samples during a recording
    session and writes them as CSV plus a JSON summary.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.output_dir = Path(config.get('output_dir', 'recorded_data'))
        self.buffer_size = config.get('buffer_size', 100000)

        self.is_recording = False
        self.recording_session_id: Optional[str] = None

        self.telemetry_buffer: List[TelemetrySample] = []
        self.dropped_samples = 0
        self.save_lock = threading.Lock()

        self.logger.info("Telemetry Recorder initialized")
        self.logger.info(f"Output directory: {self.output_dir}")

    def start_recording(self, session_id: Optional[str] = None):

        if self.is_recording:
            self.logger.warning("Recording already in progress")
            return

        if session_id is None:
            timestamp = time.strftime("%Y%m%d_%H%M%S")
            session_id = f"planner_session_{timestamp}"

        self.recording_session_id = session_id
        self.is_recording = True

        with self.save_lock:
            self.telemetry_buffer.clear()
            self.dropped_samples = 0

        self.logger.info(f"Started recording session: {session_id}")

    def record(self, sample: TelemetrySample):

        if not self.is_recording:
            return

        with self.save_lock:
            if len(self.telemetry_buffer) >= self.buffer_size:
                self.dropped_samples += 1
                return
            self.telemetry_buffer.append(sample)

    __call__ = record

    def stop_recording(self) -> str:

        if not self.is_recording:
            self.logger.warning("No recording in progress")
            return ""

        self.is_recording = False

        session_dir = self.output_dir / self.recording_session_id
        session_dir.mkdir(parents=True, exist_ok=True)

        with self.save_lock:
            samples = list(self.telemetry_buffer)

        self._save_csv(samples, session_dir / "telemetry.csv")
        self._save_json(self.summarize(samples), session_dir / "summary.json")

        self.logger.info(f"Recording stopped. Data saved to: {session_dir}")
        self.logger.info(f"Recorded {len(samples)} telemetry samples")
        if self.dropped_samples:
            self.logger.warning(f"Dropped {self.dropped_samples} samples after buffer filled")

        return str(session_dir)

    def summarize(self, samples: List[TelemetrySample]) -> Dict[str, Any]:

        if not samples:
            return {'session_id': self.recording_session_id, 'samples': 0}

        speeds = np.array([s.speed for s in samples])
        tilts = np.array([s.tilt_deg for s in samples])
        thrusts = np.array([s.thrust for s in samples])
        unsafe = sum(1 for s in samples if not s.safe)

        return {
            'session_id': self.recording_session_id,
            'samples': len(samples),
            'plans': sorted({s.plan_id for s in samples}),
            'duration': float(samples[-1].timestamp - samples[0].timestamp),
            'max_speed': float(np.max(speeds)),
            'mean_speed': float(np.mean(speeds)),
            'max_tilt_deg': float(np.max(tilts)),
            'thrust_range': [float(np.min(thrusts)), float(np.max(thrusts))],
            'unsafe_samples': unsafe,
            'unsafe_ratio': unsafe / len(samples),
            'dropped_samples': self.dropped_samples
        }

    def _save_csv(self, samples: List[TelemetrySample], filepath: Path):

        try:
            with open(filepath, 'w', newline='') as csvfile:
                writer = csv.DictWriter(csvfile, fieldnames=TELEMETRY_FIELDS)
                writer.writeheader()

                for s in samples:
                    writer.writerow({
                        'timestamp': s.timestamp, 'elapsed': s.elapsed, 'plan_id': s.plan_id,
                        'pos_x': s.position[0], 'pos_y': s.position[1], 'pos_z': s.position[2],
                        'vel_x': s.velocity[0], 'vel_y': s.velocity[1], 'vel_z': s.velocity[2],
                        'quat_w': s.quaternion[0], 'quat_x': s.quaternion[1],
                        'quat_y': s.quaternion[2], 'quat_z': s.quaternion[3],
                        'omg_x': s.body_rate[0], 'omg_y': s.body_rate[1], 'omg_z': s.body_rate[2],
                        'thrust': s.thrust,
                        'tilt_deg': s.tilt_deg, 'pitch_deg': s.pitch_deg,
                        'roll_deg': s.roll_deg, 'yaw_deg': s.yaw_deg,
                        'body_rate_mag': s.body_rate_mag,
                        'speed': s.speed,
                        'progress': s.progress,
                        'safe': int(s.safe),
                        'free_distance': '' if s.free_distance is None else s.free_distance
                    })

        except OSError as e:
            self.logger.error(f"Failed to save CSV data: {e}")

    def _save_json(self, data: Dict[str, Any], filepath: Path):

        try:
            with open(filepath, 'w') as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            self.logger.error(f"Failed to save JSON data: {e}")
