"""File and repository helpers used by the ingestion flow."""

import re
from collections.abc import Iterable
from pathlib import PurePath

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "cs": "csharp",
    "php": "php",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "kt": "kotlin",
    "swift": "swift",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "less": "less",
    "json": "json",
    "xml": "xml",
    "yaml": "yaml",
    "yml": "yaml",
    "md": "markdown",
    "sql": "sql",
}

_GIT_URL_PATTERNS = (
    re.compile(r"^https://[\w.-]+\.[\w.-]+/[\w.-]+/[\w.-]+\.git$"),
    re.compile(r"^git@[\w.-]+:[\w.-]+/[\w.-]+\.git$"),
    re.compile(r"^https://[\w.-]+\.[\w.-]+/[\w.-]+/[\w.-]+/?$"),
)


def file_extension(file_name: str) -> str:
    """Lowercased extension including the dot, or "" if there is none."""
    return PurePath(file_name).suffix.lower()


def detect_language(file_name: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(file_extension(file_name).lstrip("."), "text")


def is_supported_file(file_name: str, extensions: Iterable[str]) -> bool:
    ext = file_extension(file_name)
    return bool(ext) and ext in set(extensions)


def is_valid_git_url(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    return any(pattern.match(url) for pattern in _GIT_URL_PATTERNS)


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(size / 1024**i, 2)
    return f"{value:g} {units[i]}"
