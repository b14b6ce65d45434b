"""
Intake - Configuration Management

Handles defaults, the optional config.json file, and environment overrides.
The config file lives in ~/.config/intake/config.json
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from intake.exceptions import ConfigError


# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "intake"
CONFIG_FILE = CONFIG_DIR / "config.json"

MB = 1024 * 1024

DEFAULT_EXTENSIONS: tuple[str, ...] = (
    ".js", ".jsx", ".ts", ".tsx", ".py", ".pyw", ".java",
    ".cpp", ".cc", ".cxx", ".c++", ".c", ".cs",
    ".php", ".php3", ".php4", ".php5", ".rb", ".go", ".rs", ".kt", ".swift",
    ".html", ".htm", ".css", ".scss", ".less",
    ".json", ".xml", ".yaml", ".yml", ".md", ".markdown", ".sql",
)


@dataclass
class IntakeConfig:
    """Main configuration container for Intake.

    Sizes are bytes, durations are milliseconds.
    """

    # Chunked reads
    small_file_threshold: int = 1_048_576
    chunk_size: int = 524_288

    # Memory budget
    memory_ceiling: int = 500 * MB
    estimate_multiplier: int = 2

    # Upload limits, enforced before any chunking
    max_file_size: int = 10 * MB
    max_total_size: int = 100 * MB
    supported_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))

    # Notification auto-hide durations
    success_duration: int = 3000
    warning_duration: int = 5000
    info_duration: int = 4000
    error_duration: int = 5000
    resolution_duration: int = 3000

    def __post_init__(self) -> None:
        for name in ("small_file_threshold", "chunk_size", "memory_ceiling", "estimate_multiplier"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive", {name: getattr(self, name)})
        self.supported_extensions = [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.supported_extensions
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IntakeConfig":
        """Create IntakeConfig from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# Environment variable -> config field
_ENV_OVERRIDES: dict[str, str] = {
    "INTAKE_CHUNK_SIZE": "chunk_size",
    "INTAKE_SMALL_FILE_THRESHOLD": "small_file_threshold",
    "INTAKE_MEMORY_CEILING": "memory_ceiling",
    "INTAKE_MAX_FILE_SIZE": "max_file_size",
    "INTAKE_MAX_TOTAL_SIZE": "max_total_size",
}


def load_config(path: Path | None = None) -> IntakeConfig:
    """
    Load configuration from file and environment.

    Args:
        path: Config file to read. Defaults to ~/.config/intake/config.json

    Returns:
        IntakeConfig with all settings loaded

    Raises:
        ConfigError: If configuration is invalid
    """
    config_path = path or CONFIG_FILE
    data: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in {config_path}",
                {"error": str(e)},
            )
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a JSON object in {config_path}")

    for env_name, field_name in _ENV_OVERRIDES.items():
        if value := os.environ.get(env_name):
            try:
                data[field_name] = int(value)
            except ValueError:
                raise ConfigError(
                    f"{env_name} must be an integer",
                    {"value": value},
                )

    try:
        return IntakeConfig.from_dict(data)
    except TypeError as e:
        raise ConfigError("Invalid configuration value", {"error": str(e)})


def save_config(config: IntakeConfig, path: Path | None = None) -> None:
    """Save configuration to the config file."""
    config_path = path or CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
