"""Where the intake JSONL logs go, how big they grow and at what level."""

import os
from dataclasses import dataclass, field
from pathlib import Path

MB = 1024 * 1024


@dataclass
class LogConfig:
    """Log directory, rotation and per-log levels."""

    log_dir: Path = field(default_factory=lambda: Path.home() / ".intake" / "logs")
    max_file_size_bytes: int = 10 * MB
    backup_count: int = 5
    error_level: str = "INFO"
    operation_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LogConfig":
        """
        Build from INTAKE_LOG_LEVEL, INTAKE_LOG_DIR and INTAKE_LOG_MAX_SIZE_MB.

        A non-integer size keeps the default.
        """
        config = cls()
        level = os.environ.get("INTAKE_LOG_LEVEL")
        if level:
            config.error_level = config.operation_level = level.upper()
        log_dir = os.environ.get("INTAKE_LOG_DIR")
        if log_dir:
            config.log_dir = Path(log_dir).expanduser()
        size_mb = os.environ.get("INTAKE_LOG_MAX_SIZE_MB", "")
        if size_mb.isdigit():
            config.max_file_size_bytes = int(size_mb) * MB
        return config

    @property
    def error_log_path(self) -> Path:
        return self.log_dir / "errors.jsonl"

    @property
    def operation_log_path(self) -> Path:
        return self.log_dir / "operations.jsonl"


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Active log config, read from the environment on first use."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
    return _config


def set_config(config: LogConfig) -> None:
    """Swap the active log config; JSONL loggers are rebuilt on next use."""
    global _config
    _config = config

    from intake.logging import reset_loggers

    reset_loggers()
