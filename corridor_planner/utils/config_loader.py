import os
import yaml
import json
import logging
import math
from typing import Dict, List, Optional, Any, Tuple
from pathlib import Path
from dataclasses import dataclass, field, fields, asdict


@dataclass(frozen=True)
class PlannerConfig:

    # Occupancy volume
    map_bound: Tuple[float, ...] = (-25.0, 25.0, -25.0, 25.0, 0.0, 5.0)
    voxel_width: float = 0.25
    dilate_radius: float = 0.5

    # Route search and corridor
    route_timeout: float = 1.0
    route_step: float = 0.01
    max_iterations: int = 200000
    allow_diagonal: bool = True
    heuristic_weight: float = 1.0
    corridor_progress: float = 7.0
    corridor_range: float = 3.0
    corridor_overlap_eps: float = 0.01

    # Magnitude bounds
    max_vel_mag: float = 4.0
    max_bdr_mag: float = 2.1
    max_tilt_angle: float = 1.05
    min_thrust: float = 2.0
    max_thrust: float = 12.0
    max_pitch: float = 0.8

    # Vehicle model
    vehicle_mass: float = 0.61
    grav_acc: float = 9.8
    horiz_drag: float = 0.70
    vert_drag: float = 0.80
    paras_drag: float = 0.01
    speed_eps: float = 1.0e-4

    # Trajectory synthesis
    weight_t: float = 20.0
    chi_vec: Tuple[float, ...] = (1.0e4, 1.0e4, 1.0e4, 1.0e4, 1.0e5, 1.0e4)
    smoothing_eps: float = 1.0e-2
    integral_intervs: int = 16
    rel_cost_tol: float = 1.0e-5
    length_per_piece: float = float('inf')
    synthesis_max_iterations: int = 100
    min_piece_duration: float = 0.05
    max_piece_duration: float = 100.0

    # Look-ahead safety check
    fov_angle_deg: float = 40.0
    max_deceleration: float = 4.0
    max_lookahead_distance: float = 4.0

    # Runtime
    tick_rate: float = 1000.0
    telemetry_history: int = 1000
    logging: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['map_bound'] = list(self.map_bound)
        data['chi_vec'] = list(self.chi_vec)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlannerConfig':
        known = {f.name for f in fields(cls)}
        values = {}

        for key, value in (data or {}).items():
            if key not in known:
                logging.getLogger(__name__).warning(f"Ignoring unknown config key: {key}")
                continue
            if key in ('map_bound', 'chi_vec'):
                value = tuple(float(v) for v in value)
            values[key] = value

        return cls(**values)


class ConfigManager:

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.logger = logging.getLogger(__name__)

        self._config_cache: Dict[str, PlannerConfig] = {}

        self.default_configs = {
            'planner': self.config_dir / 'planner_config.yaml'
        }

        self.env_prefix = 'CORRIDOR_PLANNER_'

        self.logger.info(f"Config Manager initialized: {config_dir}")

    def load_config(self, config_name: str = 'planner') -> PlannerConfig:

        if config_name in self._config_cache:
            return self._config_cache[config_name]

        config_path = self.default_configs.get(config_name, self.config_dir / f"{config_name}_config.yaml")
        config_data = self.load_file(config_path)

        planner_config = PlannerConfig.from_dict(config_data)
        self._config_cache[config_name] = planner_config

        self.logger.info(f"Configuration loaded: {config_name}")
        return planner_config

    def load_file(self, config_path: Path) -> Dict[str, Any]:
        """Read a config file and apply environment overrides; a missing file yields defaults."""
        config_path = Path(config_path)

        if not config_path.exists():
            self.logger.warning(f"Config file not found: {config_path}, using defaults")
            config_data = {}
        else:
            config_data = self._load_config_file(config_path)

        return self._apply_env_overrides(config_data)

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:

        with open(config_path, 'r') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            elif config_path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {config_path.suffix}")

        return data or {}

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:

        result = dict(config_data)
        applied = 0

        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                config_key = key[len(self.env_prefix):].lower()
                result[config_key] = self._parse_env_value(value)
                applied += 1

        if applied:
            self.logger.info(f"Applied {applied} environment overrides")

        return result

    def _parse_env_value(self, value: str) -> Any:

        if value.lower() in ['true', 'false']:
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            pass

        return value

    def save_config(self, config: PlannerConfig, output_path: str):

        output_path = Path(output_path)
        config_dict = config.as_dict()

        with open(output_path, 'w') as f:
            if output_path.suffix.lower() in ['.yaml', '.yml']:
                yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {output_path}")


def load_config(config_path: Optional[str] = None) -> PlannerConfig:

    manager = ConfigManager()

    if config_path:
        return PlannerConfig.from_dict(manager.load_file(Path(config_path)))

    return manager.load_config('planner')


def validate_config(config: PlannerConfig) -> Dict[str, List[str]]:

    errors = {}

    map_errors = []
    bound = config.map_bound
    if len(bound) != 6:
        map_errors.append("map_bound must have 6 values")
    else:
        for axis, (lo, hi) in zip('xyz', (bound[0:2], bound[2:4], bound[4:6])):
            if hi - lo < config.voxel_width:
                map_errors.append(f"map_bound {axis} span is smaller than one voxel")
    if config.voxel_width <= 0:
        map_errors.append("voxel_width must be positive")
    if config.dilate_radius < 0:
        map_errors.append("dilate_radius must be non-negative")

    if map_errors:
        errors['map'] = map_errors

    planning_errors = []
    if config.corridor_progress <= 0 or config.corridor_range <= 0:
        planning_errors.append("corridor_progress and corridor_range must be positive")
    if config.route_step <= 0:
        planning_errors.append("route_step must be positive")
    if config.min_thrust >= config.max_thrust:
        planning_errors.append("min_thrust must be below max_thrust")
    if min(config.max_vel_mag, config.max_bdr_mag, config.max_tilt_angle, config.max_pitch) <= 0:
        planning_errors.append("Magnitude bounds must be positive")
    if len(config.chi_vec) != 6:
        planning_errors.append("chi_vec must have 6 penalty weights")
    if config.integral_intervs <= 0:
        planning_errors.append("integral_intervs must be positive")
    if config.smoothing_eps <= 0:
        planning_errors.append("smoothing_eps must be positive")
    if not (config.length_per_piece > 0 or math.isinf(config.length_per_piece)):
        planning_errors.append("length_per_piece must be positive")

    if planning_errors:
        errors['planning'] = planning_errors

    safety_errors = []
    if config.max_deceleration <= 0:
        safety_errors.append("max_deceleration must be positive")
    if config.max_lookahead_distance <= 0:
        safety_errors.append("max_lookahead_distance must be positive")
    if not 0 < config.fov_angle_deg < 360:
        safety_errors.append("fov_angle_deg must lie in (0, 360)")

    if safety_errors:
        errors['safety'] = safety_errors

    runtime_errors = []
    if config.tick_rate <= 0:
        runtime_errors.append("tick_rate must be positive")
    if config.vehicle_mass <= 0:
        runtime_errors.append("vehicle_mass must be positive")

    if runtime_errors:
        errors['runtime'] = runtime_errors

    return errors
