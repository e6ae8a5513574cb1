"""Configuration loader with validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import TaskWeaveConfig


class ConfigError(Exception):
    """Configuration error."""

    pass


def load_config(config_path: Path) -> TaskWeaveConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated TaskWeaveConfig instance

    Raises:
        ConfigError: If config file missing or invalid
    """
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if not data:
        raise ConfigError(f"Empty configuration file: {config_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")

    # Resolve paths relative to config file
    base_dir = config_path.parent
    tasks = data.get("tasks")
    if isinstance(tasks, dict) and tasks.get("file"):
        tasks_file = Path(tasks["file"])
        if not tasks_file.is_absolute():
            tasks["file"] = (base_dir / tasks_file).resolve()

    log_cfg = data.get("logging")
    if isinstance(log_cfg, dict) and log_cfg.get("log_dir"):
        log_dir = Path(log_cfg["log_dir"])
        if not log_dir.is_absolute():
            log_cfg["log_dir"] = (base_dir / log_dir).resolve()

    try:
        return TaskWeaveConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}")


def create_default_config(config_path: Path) -> None:
    """Create default configuration file.

    Args:
        config_path: Path where config should be created
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    default_config = {
        "tasks": {
            "file": "../tasks/tasks.json",
            "done_statuses": ["done", "completed"],
        },
        "repair": {
            "max_passes": None,
        },
        "logging": {
            "level": "INFO",
            "log_dir": "logs",
            "rotation_mb": 10,
            "retention_days": 7,
        },
    }

    with open(config_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
