"""Exception hierarchy for sweeparr."""

from __future__ import annotations

from pathlib import Path


class SweeparrError(Exception):
    """Base class for all fatal and per-target failures."""


class ConfigurationError(SweeparrError):
    """Invalid or missing required settings."""


class InvalidEvent(SweeparrError):
    """Trigger fired without the expected path variables."""


class QuotaExceeded(SweeparrError):
    """Not enough free space in the recoverable area for a relocation."""

    def __init__(self, path: Path, required: int, available: int) -> None:
        self.path = path
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough space in recoverable area for {path}: need {required} bytes, {available} available"
        )


class FilesystemError(SweeparrError):
    """Unexpected failure probing size, deleting or moving a target."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")
