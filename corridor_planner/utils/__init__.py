from corridor_planner.utils.config_loader import ConfigManager, PlannerConfig, load_config, validate_config
from corridor_planner.utils.logger import PlannerLogger, setup_logging, get_logger
from corridor_planner.utils.data_recorder import TelemetryRecorder
from corridor_planner.utils.visualization import TrajectoryPlotter

__all__ = [
    'ConfigManager', 'PlannerConfig', 'load_config', 'validate_config',

    'PlannerLogger', 'setup_logging', 'get_logger',

    'TelemetryRecorder',

    'TrajectoryPlotter'
]
