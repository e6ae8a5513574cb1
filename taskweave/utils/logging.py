"""Logging configuration for the taskweave CLI."""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class TaskWeaveFormatter(logging.Formatter):
    """Compact formatter: ``[HH:MM:SS] LEVEL    name         message``."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        """Initialize formatter.

        Args:
            use_colors: Color level names when stderr is a terminal
        """
        super().__init__()
        self.use_colors = use_colors

    def _level(self, levelname: str) -> str:
        if not (self.use_colors and sys.stderr.isatty()):
            return levelname
        return f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        # Last component only: taskweave.state.machine -> machine
        name = record.name.rsplit(".", 1)[-1]
        line = f"[{timestamp}] {self._level(record.levelname):8} {name:12} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _prune_logs(log_dir: Path, retention_days: int) -> None:
    """Delete log files older than retention_days (<= 0 keeps everything)."""
    if retention_days <= 0 or not log_dir.is_dir():
        return
    cutoff = datetime.now().timestamp() - retention_days * 86400
    for path in log_dir.glob("taskweave_*.log*"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
        except OSError:
            continue


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    rotation_mb: int = 10,
    retention_days: int = 7,
    use_colors: bool = True,
    console: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Log level name
        log_file: Explicit log file path
        log_dir: Directory for a timestamped log file (used if log_file not given)
        rotation_mb: Max log size before rotation (MB)
        retention_days: Days to keep old log files
        use_colors: Color console output
        console: Log to stderr
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(TaskWeaveFormatter(use_colors=use_colors))
        root_logger.addHandler(console_handler)

    if log_file is None and log_dir is not None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = Path(log_dir) / f"taskweave_{timestamp}.log"

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _prune_logs(log_file.parent, retention_days)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max(1, rotation_mb) * 1024 * 1024,
            backupCount=max(1, retention_days),
        )
        file_handler.setFormatter(TaskWeaveFormatter(use_colors=False))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
