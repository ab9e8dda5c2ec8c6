"""Configuration models for taskcrew."""

import os
import re
from pathlib import Path
from typing import Any, List

from pydantic import BaseModel, Field, field_validator

from taskcrew.orchestrator.agents import DEFAULT_AGENTS


class OrchestratorConfig(BaseModel):
    """Scheduling configuration."""

    max_auto_retries: int = Field(
        default=1, description="Automatic retries per task before it fails"
    )
    agents: List[str] = Field(
        default_factory=lambda: list(DEFAULT_AGENTS),
        description="Agent roster, fixed before any plan is created",
    )

    @field_validator("max_auto_retries")
    @classmethod
    def validate_max_auto_retries(cls, v: int) -> int:
        """Validate retry budget."""
        if v < 0:
            raise ValueError("max_auto_retries cannot be negative")
        if v > 10:
            raise ValueError("max_auto_retries cannot exceed 10")
        return v

    @field_validator("agents")
    @classmethod
    def validate_agents(cls, v: List[str]) -> List[str]:
        """Validate the agent roster."""
        names = [name.strip() for name in v]
        if not names:
            raise ValueError("agents cannot be empty")
        if any(not name for name in names):
            raise ValueError("Agent names cannot be empty")
        if len(set(names)) != len(names):
            raise ValueError("Agent names must be unique")
        return names


class ExecutorConfig(BaseModel):
    """Task executor configuration."""

    kind: str = Field(default="echo", description="Executor kind")
    command: str = Field(
        default="claude --dangerously-skip-permissions",
        description="Generator command for the command executor",
    )
    working_dir: str = Field(default=".", description="Working directory")
    timeout: str = Field(default="30m", description="Per-task command timeout")

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        """Validate executor kind."""
        valid_kinds = ["echo", "command"]
        if v not in valid_kinds:
            raise ValueError(f"kind must be one of: {', '.join(valid_kinds)}")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: str) -> str:
        """Validate timeout format."""
        if not re.match(r"^\d+[hms]$", v):
            raise ValueError("Timeout must be in format like '30m', '2h', or '300s'")
        return v

    def get_timeout_seconds(self) -> int:
        value, unit = int(self.timeout[:-1]), self.timeout[-1]
        return value * {"h": 3600, "m": 60, "s": 1}[unit]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format")
    output_dir: str = Field(default=".taskcrew/logs", description="Log output directory")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARN", "ERROR"]
        if v.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "text"]
        if v not in valid_formats:
            raise ValueError(f"format must be one of: {', '.join(valid_formats)}")
        return v


class TaskCrewConfig(BaseModel):
    """Main taskcrew configuration."""

    orchestrator: OrchestratorConfig = Field(
        default_factory=OrchestratorConfig, description="Orchestrator configuration"
    )
    executor: ExecutorConfig = Field(
        default_factory=ExecutorConfig, description="Executor configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    def resolve_env_vars(self) -> "TaskCrewConfig":
        """Resolve environment variables in configuration values."""
        config_dict = self.model_dump()
        resolved_dict = _resolve_env_vars_recursive(config_dict)
        return TaskCrewConfig(**resolved_dict)

    def get_log_dir(self) -> Path:
        """Get the log directory as a Path object."""
        return Path(self.logging.output_dir).expanduser().resolve()

    def get_working_dir(self) -> Path:
        """Get the executor working directory as a Path object."""
        return Path(self.executor.working_dir).expanduser().resolve()


def _resolve_env_vars_recursive(obj: Any) -> Any:
    """Recursively resolve environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _resolve_env_vars_recursive(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_env_vars_recursive(item) for item in obj]
    elif isinstance(obj, str):
        return _resolve_env_var_string(obj)
    else:
        return obj


def _resolve_env_var_string(value: str) -> str:
    """Resolve environment variables in a string."""
    # Pattern for ${VAR_NAME} or ${VAR_NAME:default_value}
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replace_var(match):
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.getenv(var_name, default_value)

    return re.sub(pattern, replace_var, value)
