"""
Intake - work tracking and failure recovery for source ingestion.

Tracks long-running operations with live progress, classifies failures into
typed recovery plans, and streams large files under a bounded memory budget.
"""

__version__ = "0.1.0"

from intake.exceptions import (
    AIError,
    ConfigError,
    FileError,
    GitError,
    IntakeError,
    MemoryExhaustedError,
    ParsingError,
)

__all__ = [
    "__version__",
    "IntakeError",
    "ConfigError",
    "FileError",
    "GitError",
    "ParsingError",
    "AIError",
    "MemoryExhaustedError",
]
