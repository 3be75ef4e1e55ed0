import logging
import logging.handlers
import sys
from typing import Dict, Any
from pathlib import Path


class PlannerLogger:

    def __init__(self, config: Dict[str, Any]):
        self.config = config

        self.log_level = getattr(logging, config.get("level", "INFO").upper())
        self.log_dir = Path(config.get("log_dir", "logs"))
        self.max_file_size = config.get("max_file_size_mb", 10) * 1024 * 1024
        self.backup_count = config.get("backup_count", 5)

        self.console_format = config.get(
            "console_format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        self.file_format = config.get(
            "file_format",
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        )

        self._setup_root_logger()
        self._setup_component_levels()

        self.logger = logging.getLogger(__name__)
        self.logger.info("Planner Logger initialized")

    def _setup_root_logger(self):

        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)

        root_logger.handlers.clear()

        if self.config.get("console_logging", True):
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            console_handler.setFormatter(logging.Formatter(self.console_format))
            root_logger.addHandler(console_handler)

        if self.config.get("file_logging", False):
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / "planner.log", maxBytes=self.max_file_size, backupCount=self.backup_count
            )
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(logging.Formatter(self.file_format))
            root_logger.addHandler(file_handler)

    def _setup_component_levels(self):
        # e.g. {"planning.integration.execution_monitor": "DEBUG"}
        for component, level in self.config.get("components", {}).items():
            logging.getLogger(f"corridor_planner.{component}").setLevel(
                getattr(logging, str(level).upper())
            )


def setup_logging(config: Dict[str, Any]) -> PlannerLogger:

    default_config = {
        "level": "INFO",
        "log_dir": "logs",
        "console_logging": True,
        "file_logging": False,
        "max_file_size_mb": 10,
        "backup_count": 5,
        "components": {},
    }

    merged_config = {**default_config, **(config or {})}

    return PlannerLogger(merged_config)


def get_logger(name: str) -> logging.Logger:

    return logging.getLogger(name)
