"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .logging import LoggingConfig
from .record_replay import RecordingConfig, ReplayConfig


@dataclass
class Settings:
    """
    Master configuration for process-replay.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    recording: RecordingConfig = field(default_factory=RecordingConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "PROCESS_REPLAY_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            PROCESS_REPLAY_MANIFEST_NAME=MANIFEST.txt
            PROCESS_REPLAY_FLUSH_TIMEOUT=0.5
            PROCESS_REPLAY_SKIPPABLE_EXECUTABLES=env,xcrun,sudo
            PROCESS_REPLAY_STREAM_DELAY=0.05

        Raises:
            InvalidConfigError: If a variable does not parse or fails validation.
        """
        recording: dict[str, Any] = {}
        replay: dict[str, Any] = {}
        logging: dict[str, Any] = {}

        try:
            if manifest_name := os.getenv(f"{prefix}MANIFEST_NAME"):
                recording["manifest_name"] = manifest_name
                replay["manifest_name"] = manifest_name
            if skippable := os.getenv(f"{prefix}SKIPPABLE_EXECUTABLES"):
                recording["skippable_executables"] = tuple(
                    name.strip() for name in skippable.split(",") if name.strip()
                )
            if flush_timeout := os.getenv(f"{prefix}FLUSH_TIMEOUT"):
                recording["flush_timeout"] = float(flush_timeout)

            if stream_delay := os.getenv(f"{prefix}STREAM_DELAY"):
                replay["stream_delay"] = float(stream_delay)

            if level := os.getenv(f"{prefix}LOG_LEVEL"):
                logging["level"] = level.upper()
            if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
                logging["format"] = log_format.lower()

            return cls(
                recording=RecordingConfig(**recording),
                replay=ReplayConfig(**replay),
                logging=LoggingConfig(**logging),
            )
        except ValueError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e}", cause=e) from e

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError("PyYAML is required for YAML config files: pip install pyyaml") from exc
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema first.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        try:
            return cls(
                recording=RecordingConfig(**data.get("recording", {})),
                replay=ReplayConfig(**data.get("replay", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except ValueError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e}", cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        import dataclasses

        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {k: convert(v) for k, v in dataclasses.asdict(obj).items()}
            elif isinstance(obj, tuple):
                return list(obj)
            return obj

        return convert(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating with defaults if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    The logging section is applied to the default logger.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    from ..logging import configure_logging

    configure_logging(
        level=_global_settings.logging.level,
        json_output=_global_settings.logging.format == "json",
    )
    return _global_settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]
