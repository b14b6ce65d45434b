"""
Intake - Recovery Planner

Turns a categorized failure into a RecoveryAction. The policy is a single
lookup table keyed by (category, subtype) so it can be audited and tested
exhaustively; anything not in the table degrades to USER_ACTION.

Classification is pure and synchronous.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Where a failure came from."""

    FILE = "file"
    GIT = "git"
    PARSING = "parsing"
    AI = "ai"
    GENERAL = "general"


class RecoveryKind(str, Enum):
    """How to respond to a classified failure."""

    RETRY = "retry"
    SKIP = "skip"
    FALLBACK = "fallback"
    USER_ACTION = "user_action"


@dataclass(frozen=True)
class RecoveryAction:
    """A recovery instruction. ``delay`` is in milliseconds."""

    kind: RecoveryKind
    message: str
    max_retries: int | None = None
    delay: int | None = None
    fallback_strategy: str | None = None


@dataclass(frozen=True)
class RecoveryRule:
    """One row of the policy table.

    ``message`` is a str.format template over the error's fields. ``delay``
    may be computed from those fields.
    """

    kind: RecoveryKind
    message: str
    max_retries: int | None = None
    delay: int | Callable[[Mapping[str, Any]], int] | None = None
    fallback_strategy: str | None = None

    def build(self, fields: Mapping[str, Any]) -> RecoveryAction:
        delay = self.delay(fields) if callable(self.delay) else self.delay
        return RecoveryAction(
            kind=self.kind,
            message=self.message.format_map(fields),
            max_retries=self.max_retries,
            delay=delay,
            fallback_strategy=self.fallback_strategy,
        )


DEFAULT_RETRY_AFTER_SECONDS = 60

# Mapping errors may use the camelCase field names of JSON payloads
_CAMEL_KEYS = {"file_name": "fileName", "git_url": "gitUrl", "retry_after": "retryAfter"}


def _retry_after_ms(fields: Mapping[str, Any]) -> int:
    return int(float(fields["retry_after"]) * 1000)


RECOVERY_POLICY: dict[tuple[ErrorCategory, str], RecoveryRule] = {
    # File
    (ErrorCategory.FILE, "file_too_large"): RecoveryRule(
        RecoveryKind.USER_ACTION,
        'File "{file_name}" is too large. Please select smaller files or compress the content.',
    ),
    (ErrorCategory.FILE, "unsupported_format"): RecoveryRule(
        RecoveryKind.SKIP,
        'File format not supported for "{file_name}". Skipping this file.',
    ),
    (ErrorCategory.FILE, "read_failed"): RecoveryRule(
        RecoveryKind.RETRY,
        'Failed to read "{file_name}". Retrying...',
        max_retries=3,
        delay=1000,
    ),
    # Git
    (ErrorCategory.GIT, "network_failed"): RecoveryRule(
        RecoveryKind.RETRY,
        "Network connection failed. Please check your internet connection and try again.",
        max_retries=3,
        delay=2000,
    ),
    (ErrorCategory.GIT, "auth_failed"): RecoveryRule(
        RecoveryKind.USER_ACTION,
        "Authentication failed. Please check your credentials and try again.",
    ),
    (ErrorCategory.GIT, "repo_not_found"): RecoveryRule(
        RecoveryKind.USER_ACTION,
        'Repository not found at "{git_url}". Please verify the URL is correct.',
    ),
    (ErrorCategory.GIT, "private_repo"): RecoveryRule(
        RecoveryKind.FALLBACK,
        "Cannot access private repository. Please use file upload instead.",
        fallback_strategy="file_upload",
    ),
    # Parsing
    (ErrorCategory.PARSING, "syntax_error"): RecoveryRule(
        RecoveryKind.SKIP,
        'Syntax error in "{file_name}" at line {line}. Skipping this file.',
    ),
    (ErrorCategory.PARSING, "encoding_error"): RecoveryRule(
        RecoveryKind.RETRY,
        'Encoding issue in "{file_name}". Trying different encoding...',
        max_retries=2,
        delay=500,
    ),
    (ErrorCategory.PARSING, "file_too_large"): RecoveryRule(
        RecoveryKind.FALLBACK,
        'File "{file_name}" is too large to parse. Processing in chunks...',
        fallback_strategy="chunk_processing",
    ),
    # AI
    (ErrorCategory.AI, "api_limit"): RecoveryRule(
        RecoveryKind.RETRY,
        "API rate limit reached. Waiting {retry_after} seconds before retry...",
        max_retries=3,
        delay=_retry_after_ms,
    ),
    (ErrorCategory.AI, "model_unavailable"): RecoveryRule(
        RecoveryKind.FALLBACK,
        "AI model is currently unavailable. Please try again later.",
        fallback_strategy="local_analysis",
    ),
    (ErrorCategory.AI, "context_too_long"): RecoveryRule(
        RecoveryKind.FALLBACK,
        "Context is too long for the AI model. Optimizing context and retrying...",
        fallback_strategy="context_optimization",
    ),
    (ErrorCategory.AI, "network_timeout"): RecoveryRule(
        RecoveryKind.RETRY,
        "Network timeout occurred. Retrying with longer timeout...",
        max_retries=2,
        delay=5000,
    ),
}

# Fallback for subtypes missing from the table
UNRECOGNIZED_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.FILE: "Unknown file error: {message}",
    ErrorCategory.GIT: "Git error: {message}",
    ErrorCategory.PARSING: 'Parsing error in "{file_name}": {message}',
    ErrorCategory.AI: "AI model error: {message}",
}

RECOVERABLE_SUBTYPES = frozenset(
    {"network_failed", "api_limit", "network_timeout", "read_failed", "encoding_error"}
)

_MESSAGE_PREFIXES = {
    "FileUploadError": "File Upload Error",
    "GitCloneError": "Git Repository Error",
    "ParsingError": "Code Parsing Error",
    "AIError": "AI Analysis Error",
}


def error_subtype(error: Any) -> str | None:
    """Read the subtype tag from an error object or a plain dict."""
    if isinstance(error, Mapping):
        value = error.get("type")
    else:
        value = getattr(error, "type", None)
    return value if isinstance(value, str) else None


def error_name(error: Any) -> str:
    if isinstance(error, Mapping):
        return str(error.get("name", "Error"))
    return str(getattr(error, "name", None) or type(error).__name__)


def error_message(error: Any) -> str:
    if isinstance(error, Mapping):
        return str(error.get("message", ""))
    message = getattr(error, "message", None)
    return message if isinstance(message, str) else str(error)


def error_fields(error: Any) -> dict[str, Any]:
    """Template fields for policy messages, with printable defaults."""
    source = error if isinstance(error, Mapping) else None

    def read(key: str) -> Any:
        if source is not None:
            value = source.get(key)
            return value if value is not None else source.get(_CAMEL_KEYS.get(key, key))
        return getattr(error, key, None)

    try:
        retry_after = float(read("retry_after") or DEFAULT_RETRY_AFTER_SECONDS)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric retry_after: %r", read("retry_after"))
        retry_after = float(DEFAULT_RETRY_AFTER_SECONDS)
    if retry_after.is_integer():
        retry_after = int(retry_after)
    return {
        "message": error_message(error),
        "file_name": read("file_name") or "unknown",
        "git_url": read("git_url") or "unknown",
        "line": read("line") if read("line") is not None else "unknown",
        "retry_after": retry_after,
    }


def format_error_message(error: Any) -> str:
    """User-facing message prefixed by the error's origin."""
    prefix = _MESSAGE_PREFIXES.get(error_name(error), "Unexpected Error")
    return f"{prefix}: {error_message(error)}"


def classify(error: Any, category: ErrorCategory | str | None = None) -> RecoveryAction:
    """
    Plan recovery for an error.

    Args:
        error: Exception or dict carrying a ``type`` subtype tag and
            category-specific fields (``file_name``, ``git_url``, ``line``,
            ``retry_after``; dicts may also use ``fileName``, ``gitUrl``
            and ``retryAfter``). A non-numeric ``retry_after`` falls back
            to 60 seconds.
        category: Error category. Defaults to the error's own ``category``
            attribute, then GENERAL.

    Returns:
        RecoveryAction from the policy table, or USER_ACTION when the
        category/subtype pair is not in it
    """
    if category is None:
        category = getattr(error, "category", None) or ErrorCategory.GENERAL
    category = ErrorCategory(category)

    if category == ErrorCategory.GENERAL:
        return RecoveryAction(RecoveryKind.USER_ACTION, format_error_message(error))

    fields = error_fields(error)
    rule = RECOVERY_POLICY.get((category, error_subtype(error) or ""))
    if rule is None:
        return RecoveryAction(
            RecoveryKind.USER_ACTION,
            UNRECOGNIZED_MESSAGES[category].format_map(fields),
        )
    return rule.build(fields)


def is_recoverable(error: Any) -> bool:
    """True iff the subtype is in the fixed recoverable set.

    Independent of the action ``classify`` picks.
    """
    return error_subtype(error) in RECOVERABLE_SUBTYPES
