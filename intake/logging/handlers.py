"""
Log handlers for the intake JSONL logs.

Records carry either a log entry object (anything with ``to_dict``) or plain
text; both end up as one JSON object per line.
"""

import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path


class JSONLFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = record.msg
        if hasattr(entry, "to_dict"):
            data = entry.to_dict()
        else:
            data = {
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        return json.dumps(data, default=str)


class JSONLRotatingHandler(RotatingFileHandler):
    """Size-rotated JSONL file; the parent directory is created on demand."""

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = 10_000_000,
        backup_count: int = 5,
    ):
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        self.setFormatter(JSONLFormatter())


def create_jsonl_logger(
    name: str,
    filepath: Path,
    level: str = "INFO",
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Build a non-propagating logger that appends to ``filepath``.

    Calling it again for the same name replaces the previous handler, which
    is how a changed LogConfig takes effect.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(JSONLRotatingHandler(filepath, max_bytes, backup_count))
    logger.propagate = False
    return logger
