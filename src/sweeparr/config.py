"""Configuration management for sweeparr."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

DEFAULT_MEDIA_EXTENSIONS: frozenset[str] = frozenset({
    ".3gp",
    ".3g2",
    ".asf",
    ".wmv",
    ".avi",
    ".divx",
    ".evo",
    ".f4v",
    ".flv",
    ".h265",
    ".hevc",
    ".mkv",
    ".mk3d",
    ".mp4",
    ".mpg",
    ".mpeg",
    ".m2p",
    ".ps",
    ".ts",
    ".m2ts",
    ".mxf",
    ".ogg",
    ".mov",
    ".qt",
    ".rmvb",
    ".vob",
    ".webm",
})

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})

# Legacy form: \.(mkv|mp4|avi)$
_EXTENSION_REGEX = re.compile(r"^\\\.\((?P<alternatives>[^()]*)\)\$?$")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_bool(value: Any, default: bool) -> bool:
    """Interpret a YAML or environment value as a boolean.

    Args:
        value: Raw value (bool, int, str or None).
        default: Returned when value is None.

    Returns:
        Parsed boolean.

    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def normalize_extension(extension: str) -> str:
    """Lower-case an extension and give it a leading dot."""
    extension = extension.strip().lower()
    if not extension:
        return extension
    return extension if extension.startswith(".") else f".{extension}"


def parse_extensions(value: str | Iterable[str]) -> frozenset[str]:
    """Parse a media extension list.

    Accepts an iterable of extensions, a comma/whitespace separated string,
    or the regular expression form ``\\.(mkv|mp4)$``.

    Args:
        value: Raw extension specification.

    Returns:
        Normalized extension set.

    """
    if isinstance(value, str):
        text = value.strip()
        if match := _EXTENSION_REGEX.match(text):
            items: Iterable[str] = match.group("alternatives").split("|")
        else:
            items = re.split(r"[,\s]+", text)
    else:
        items = value

    return frozenset(ext for ext in (normalize_extension(str(item)) for item in items) if ext)


def parse_folder_list(value: str | Iterable[str]) -> list[Path]:
    """Parse protected folders from a list or a comma/newline separated string."""
    items = re.split(r"[,\n]", value) if isinstance(value, str) else value
    return [Path(os.path.expanduser(str(item).strip())) for item in items if str(item).strip()]


@dataclass
class SweeparrConfig:
    """Configuration for a cleanup run."""

    # Download folders that must never be deleted
    protected_folders: list[Path] = field(default_factory=list)

    # Files with these extensions keep a folder alive
    media_extensions: frozenset[str] = DEFAULT_MEDIA_EXTENSIONS

    # Log intended actions without touching the filesystem
    dry_run: bool = False

    # Move to the recoverable area instead of deleting
    use_recoverable_area: bool = False
    recoverable_area: Path | None = None

    # Wait before cleanup (seconds) - lets the caller release its file handles
    wait_seconds: int = 45

    # Logging
    log_file: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        if env_path := os.environ.get("SWEEPARR_CONFIG"):
            return Path(os.path.expanduser(env_path))
        return Path.home() / ".config/sweeparr/config.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> SweeparrConfig:
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        if not config_path.exists():
            return cls()

        try:
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

        try:
            return cls._from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value in config file {config_path}: {e}") from e

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> SweeparrConfig:
        """Create config from dictionary."""
        config = cls()

        if "protected_folders" in data:
            config.protected_folders = parse_folder_list(data["protected_folders"] or [])
        if "media_extensions" in data:
            config.media_extensions = parse_extensions(data["media_extensions"] or [])

        # Simple fields
        if "dry_run" in data:
            config.dry_run = parse_bool(data["dry_run"], config.dry_run)
        if "wait_seconds" in data:
            config.wait_seconds = int(data["wait_seconds"])

        # Recovery settings
        if "recovery" in data:
            recovery = data["recovery"] or {}
            if "enabled" in recovery:
                config.use_recoverable_area = parse_bool(recovery["enabled"], False)
            if recovery.get("directory"):
                config.recoverable_area = Path(os.path.expanduser(recovery["directory"]))

        # Logging
        if "logging" in data:
            logging_cfg = data["logging"] or {}
            if logging_cfg.get("file"):
                config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
            if "level" in logging_cfg:
                config.log_level = str(logging_cfg["level"]).upper()

        return config

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        """Overlay container-style environment variables onto this config.

        Args:
            environ: Environment mapping, usually ``os.environ``.

        """
        if "DRY_RUN" in environ:
            self.dry_run = parse_bool(environ["DRY_RUN"], self.dry_run)
        if "USE_TRASH" in environ:
            self.use_recoverable_area = parse_bool(environ["USE_TRASH"], self.use_recoverable_area)
        if environ.get("TRASH_FOLDER"):
            self.recoverable_area = Path(os.path.expanduser(environ["TRASH_FOLDER"]))
        if environ.get("WAIT_TIME"):
            try:
                self.wait_seconds = int(environ["WAIT_TIME"])
            except ValueError as e:
                raise ConfigurationError(f"WAIT_TIME must be an integer, got {environ['WAIT_TIME']!r}") from e
        if environ.get("LOG_FILE"):
            self.log_file = Path(os.path.expanduser(environ["LOG_FILE"]))
        if environ.get("LOG_LEVEL"):
            self.log_level = environ["LOG_LEVEL"].strip().upper()
        if environ.get("DOWNLOAD_FOLDERS"):
            self.protected_folders = parse_folder_list(environ["DOWNLOAD_FOLDERS"])
        if environ.get("VIDEO_EXTENSIONS"):
            self.media_extensions = parse_extensions(environ["VIDEO_EXTENSIONS"])

    def validate(self) -> None:
        """Check the configuration before any cleanup runs.

        Raises:
            ConfigurationError: If a required setting is missing or invalid.

        """
        if not self.protected_folders:
            raise ConfigurationError("No protected download folders configured")

        for folder in self.protected_folders:
            if not folder.is_absolute():
                raise ConfigurationError(f"Protected folder must be an absolute path: {folder}")

        if not self.media_extensions:
            raise ConfigurationError("Media extension list is empty")

        if self.wait_seconds < 0:
            raise ConfigurationError(f"wait_seconds must be non-negative, got {self.wait_seconds}")

        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.log_level}")

        if self.use_recoverable_area:
            if self.recoverable_area is None or not str(self.recoverable_area).strip():
                raise ConfigurationError("Recoverable area is enabled but no directory is set")
            if not _is_writable(self.recoverable_area):
                raise ConfigurationError(f"Recoverable area is not writable: {self.recoverable_area}")

    @property
    def numeric_log_level(self) -> int:
        """Logging module level for log_level."""
        return getattr(logging, self.log_level)

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        # Ensure directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "protected_folders": [str(p) for p in self.protected_folders],
            "media_extensions": sorted(self.media_extensions),
            "dry_run": self.dry_run,
            "wait_seconds": self.wait_seconds,
            "recovery": {
                "enabled": self.use_recoverable_area,
                "directory": str(self.recoverable_area) if self.recoverable_area else None,
            },
            "logging": {
                "file": str(self.log_file) if self.log_file else None,
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _is_writable(path: Path) -> bool:
    """Check that path, or the nearest existing ancestor it would be created in, is writable."""
    candidate = path
    while not candidate.exists():
        if candidate.parent == candidate:
            return False
        candidate = candidate.parent
    return candidate.is_dir() and os.access(candidate, os.W_OK | os.X_OK)
