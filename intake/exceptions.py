"""
Intake - Exception Hierarchy

All Intake-specific exceptions inherit from IntakeError. Collaborators that
can fail (file reads, remote fetches, parsers, AI clients) raise one of the
category errors below with a subtype tag in ``type``; they never decide how
to recover. That decision belongs to intake.recovery.
"""

from typing import Any


class IntakeError(Exception):
    """Base exception for all Intake-related errors."""

    name = "IntakeError"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Configuration Errors
class ConfigError(IntakeError):
    """Raised when configuration is invalid or missing."""

    pass


# Category Errors
class CategoryError(IntakeError):
    """Base for errors that carry a category subtype tag."""

    category = "general"

    def __init__(self, message: str, type: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"type": type, **(details or {})})
        self.type = type


class FileError(CategoryError):
    """Raised when a local file cannot be accepted or read."""

    name = "FileUploadError"
    category = "file"

    def __init__(self, message: str, type: str, file_name: str | None = None):
        super().__init__(message, type, {"file_name": file_name})
        self.file_name = file_name


class GitError(CategoryError):
    """Raised when a remote repository cannot be fetched."""

    name = "GitCloneError"
    category = "git"

    def __init__(self, message: str, type: str, git_url: str | None = None):
        super().__init__(message, type, {"git_url": git_url})
        self.git_url = git_url


class ParsingError(CategoryError):
    """Raised when source content cannot be decoded or parsed.

    ``line`` is set for syntax errors.
    """

    name = "ParsingError"
    category = "parsing"

    def __init__(
        self,
        message: str,
        type: str,
        file_name: str | None = None,
        line: int | None = None,
    ):
        super().__init__(message, type, {"file_name": file_name, "line": line})
        self.file_name = file_name
        self.line = line


class AIError(CategoryError):
    """Raised when the analysis model call fails."""

    name = "AIError"
    category = "ai"

    def __init__(self, message: str, type: str, retry_after: int | None = None):
        super().__init__(message, type, {"retry_after": retry_after})
        self.retry_after = retry_after


# Resource Errors (prefixed to avoid shadowing built-in MemoryError)
class MemoryExhaustedError(FileError):
    """Raised when the memory budget refuses to admit a file."""

    def __init__(
        self,
        message: str,
        estimate: int,
        outstanding: int,
        ceiling: int,
        file_name: str | None = None,
    ):
        super().__init__(message, "memory_exhausted", file_name)
        self.details.update(
            {"estimate": estimate, "outstanding": outstanding, "ceiling": ceiling}
        )
        self.estimate = estimate
        self.outstanding = outstanding
        self.ceiling = ceiling


# State Errors
class OperationTransitionError(IntakeError):
    """Raised when an invalid operation status transition is required.

    Includes the current status and the attempted target status for debugging.
    """

    def __init__(self, message: str, from_state: str, to_state: str):
        super().__init__(message, {"from_state": from_state, "to_state": to_state})
        self.from_state = from_state
        self.to_state = to_state
