"""
Intake Logging System.

Provides structured JSONL logging for:
- Errors reported through the ErrorCenter (name, message, stack, context)
- Operation lifecycle events (start, complete, fail)

Usage:
    from intake.logging import error_logger, ErrorLogEntry, now_iso

    entry = ErrorLogEntry(
        timestamp=now_iso(),
        error_id="...",
        category="file",
        error_name="FileUploadError",
        message="Failed to read",
    )
    error_logger.error(entry)

Logs are written to ~/.intake/logs/:
    - errors.jsonl: reported errors and their recovery plan
    - operations.jsonl: operation lifecycle events
"""

import logging
from typing import Any

from .config import LogConfig, get_config, set_config
from .entries import ErrorLogEntry, OperationLogEntry, now_iso
from .handlers import create_jsonl_logger

# Lazy-initialized loggers to avoid creating files before needed
_loggers: dict[str, logging.Logger] = {}


def _get(name: str) -> logging.Logger:
    """Create the named JSONL logger on first use."""
    if name not in _loggers:
        config = get_config()
        if name == "errors":
            path, level = config.error_log_path, config.error_level
        else:
            path, level = config.operation_log_path, config.operation_level
        _loggers[name] = create_jsonl_logger(
            f"intake.jsonl.{name}",
            path,
            level=level,
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
        )
    return _loggers[name]


def reset_loggers() -> None:
    """Drop cached loggers so the next use picks up the current config."""
    for logger in _loggers.values():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
    _loggers.clear()


class _LazyLogger:
    """Lazy wrapper that initializes the actual logger on first use."""

    def __init__(self, name: str):
        self._name = name

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        _get(self._name).debug(msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        _get(self._name).info(msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        _get(self._name).warning(msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        _get(self._name).error(msg, *args, **kwargs)


# Public logger instances
error_logger = _LazyLogger("errors")
operation_logger = _LazyLogger("operations")


__all__ = [
    # Loggers
    "error_logger",
    "operation_logger",
    "reset_loggers",
    # Log entries
    "ErrorLogEntry",
    "OperationLogEntry",
    # Utilities
    "now_iso",
    # Config
    "LogConfig",
    "get_config",
    "set_config",
]
