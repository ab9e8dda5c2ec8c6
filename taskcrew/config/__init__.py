"""Configuration for taskcrew."""

from .loader import load_config, save_config, validate_config_file
from .models import ExecutorConfig, LoggingConfig, OrchestratorConfig, TaskCrewConfig

__all__ = [
    "TaskCrewConfig",
    "OrchestratorConfig",
    "ExecutorConfig",
    "LoggingConfig",
    "load_config",
    "save_config",
    "validate_config_file",
]
