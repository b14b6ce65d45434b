"""
Log Entry Data Structures for Intake.

Structured entries for reported errors and operation lifecycle events.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass
class ErrorLogEntry:
    """Log entry for an error funneled through the ErrorCenter."""

    # Identity
    timestamp: str  # ISO 8601
    error_id: str
    category: str  # file, git, parsing, ai, general

    # Underlying error
    error_name: str
    message: str
    stack: str | None = None
    subtype: str | None = None

    # Context
    context: str | None = None
    operation_id: str | None = None

    # Recovery plan
    recovery: str | None = None  # retry, skip, fallback, user_action
    recoverable: bool = False

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorLogEntry":
        """Create from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class OperationLogEntry:
    """Log entry for operation lifecycle events."""

    timestamp: str  # ISO 8601
    operation_id: str
    event_type: str  # "start", "complete", "fail"
    operation_type: str = ""
    title: str = ""
    progress: float = 0.0
    duration_ms: int | None = None
    error: str | None = None

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperationLogEntry":
        """Create from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def now_iso() -> str:
    """Get current time as ISO 8601 string."""
    return datetime.now().isoformat()
