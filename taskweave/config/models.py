"""Configuration models for taskweave."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TasksConfig(BaseModel):
    """Tasks file configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    file: Path = Field(default=Path("tasks/tasks.json"), description="Tasks JSON file")
    done_statuses: list[str] = Field(
        default_factory=lambda: ["done", "completed"],
        description="Statuses treated as completed when picking the next task",
    )


class RepairConfig(BaseModel):
    """Dependency repair configuration."""

    max_passes: Optional[int] = Field(
        default=None,
        ge=1,
        description="Lower bound on cycle-breaking passes (never below node count)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = Field(default="INFO", description="Log level")
    log_dir: Optional[Path] = Field(default=None, description="Log directory (no file logging if unset)")
    rotation_mb: int = Field(default=10, description="Log rotation size (MB)")
    retention_days: int = Field(default=7, description="Log retention days")


class TaskWeaveConfig(BaseModel):
    """Main configuration model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tasks: TasksConfig = Field(default_factory=TasksConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
