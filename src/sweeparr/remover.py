"""Delete or relocate cleanup targets with quota and dry-run support."""

from __future__ import annotations

import errno
import logging
import math
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import FilesystemError, QuotaExceeded

if TYPE_CHECKING:
    from .config import SweeparrConfig

_IEC_UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def format_size(size: int) -> str:
    """Render a byte count the way ``numfmt --to=iec-i --suffix=B`` does.

    Values below ten units keep one decimal, larger ones are whole numbers;
    both round away from zero.
    """
    if size < 1024:
        return f"{size}B"

    value = float(size)
    for unit in _IEC_UNITS:
        value /= 1024
        rounded = _round_up(value)
        # Rounding may reach the next unit (1023.5KiB -> 1.0MiB)
        if float(rounded) < 1024 or unit == _IEC_UNITS[-1]:
            return f"{rounded}{unit}"
    raise AssertionError("unreachable")


def _round_up(value: float) -> str:
    if value < 10:
        tenths = math.ceil(value * 10) / 10
        if tenths < 10:
            return f"{tenths:.1f}"
    return str(math.ceil(value))


@dataclass
class CleanupOutcome:
    """Counters for a single cleanup run."""

    files_removed: int = 0
    dirs_removed: int = 0
    items_relocated: int = 0
    bytes_freed: int = 0

    def summary(self, *, relocating: bool) -> str:
        """Human-readable summary line."""
        space = format_size(self.bytes_freed)
        if relocating:
            return f"Cleanup complete. Items moved to recoverable area: {self.items_relocated}. Space freed: {space}."
        return (
            f"Cleanup complete. Files deleted: {self.files_removed}. "
            f"Directories deleted: {self.dirs_removed}. Space freed: {space}."
        )


@dataclass(frozen=True)
class RemovalTarget:
    """A file, directory or symbolic link to remove."""

    path: Path
    is_directory: bool
    is_symlink: bool

    @classmethod
    def from_path(cls, path: Path) -> RemovalTarget:
        """Describe a path without following symbolic links."""
        is_symlink = path.is_symlink()
        return cls(
            path=path,
            is_directory=path.is_dir() and not is_symlink,
            is_symlink=is_symlink,
        )

    @property
    def kind(self) -> str:
        if self.is_symlink:
            return "symlink"
        return "folder" if self.is_directory else "file"


@dataclass
class RemovalResult:
    """Result of a removal operation."""

    path: Path
    action: str  # "deleted", "relocated", "dry-run", "skipped"
    relocation_path: Path | None = None
    size: int = 0


class Remover:
    """Removes targets permanently or into the recoverable area."""

    def __init__(self, config: SweeparrConfig, logger: logging.Logger) -> None:
        """Initialize the remover.

        Args:
            config: Sweeparr configuration.
            logger: Logger instance.

        """
        self.config = config
        self.logger = logger

    @property
    def relocating(self) -> bool:
        return self.config.use_recoverable_area and self.config.recoverable_area is not None

    def _require_area(self) -> Path:
        if self.config.recoverable_area is None:
            raise ValueError("Recoverable area is not configured")
        return self.config.recoverable_area

    def _timestamp(self) -> str:
        return datetime.now().strftime("%Y%m%d%H%M%S")

    def get_relocation_path(self, target: RemovalTarget) -> Path:
        """Generate a unique path in the recoverable area for a target.

        Args:
            target: Target to relocate.

        Returns:
            ``<area>/<name>_<YYYYMMDDHHMMSS>_<pid>``, with a numeric suffix
            if that name is already taken.

        """
        area = self._require_area()
        base = f"{target.path.name}_{self._timestamp()}_{os.getpid()}"
        candidate = area / base
        counter = 1
        while os.path.lexists(candidate):
            candidate = area / f"{base}_{counter}"
            counter += 1
        return candidate

    def measure(self, target: RemovalTarget) -> int:
        """Compute the size of a target in bytes without following links.

        Raises:
            FilesystemError: If any part of the target cannot be probed.

        """
        try:
            if not target.is_directory:
                return target.path.lstat().st_size

            total = 0
            for dirpath, _dirnames, filenames in os.walk(target.path, followlinks=False, onerror=_raise_walk_error):
                for name in filenames:
                    total += os.lstat(os.path.join(dirpath, name)).st_size
            return total
        except OSError as e:
            raise FilesystemError(target.path, f"Failed to get size ({e.strerror or e})") from e

    def check_quota(self, target: RemovalTarget, size: int) -> None:
        """Ensure the recoverable area can take a target.

        Raises:
            QuotaExceeded: If free space is below the target size.
            FilesystemError: If free space cannot be determined.

        """
        area = self._require_area()

        probe = area
        while not probe.exists() and probe.parent != probe:
            probe = probe.parent

        try:
            available = shutil.disk_usage(probe).free
        except OSError as e:
            raise FilesystemError(area, f"Failed to check free space ({e.strerror or e})") from e

        if size > available:
            raise QuotaExceeded(target.path, required=size, available=available)

    def remove(self, target: RemovalTarget, outcome: CleanupOutcome) -> RemovalResult:
        """Delete a target, or move it to the recoverable area.

        Symbolic links are removed or moved as links; what they point to
        is never touched.

        Args:
            target: Target to remove.
            outcome: Counters updated on success.

        Returns:
            RemovalResult with operation details.

        Raises:
            QuotaExceeded: If the recoverable area is too small. The target
                is left in place.
            FilesystemError: If probing, deleting or moving fails.

        """
        path = target.path
        relocating = self.relocating
        operation = "move to recoverable area" if relocating else "delete"

        if self.config.dry_run:
            if relocating:
                relocation_path = self.get_relocation_path(target)
                self.logger.info("[DRY RUN] Would %s (%s): %s -> %s", operation, target.kind, path, relocation_path)
                return RemovalResult(path=path, action="dry-run", relocation_path=relocation_path)
            self.logger.info("[DRY RUN] Would %s (%s): %s", operation, target.kind, path)
            return RemovalResult(path=path, action="dry-run")

        if not os.path.lexists(path):
            self.logger.info("Already gone, nothing to %s: %s", operation, path)
            return RemovalResult(path=path, action="skipped")

        size = self.measure(target)

        if relocating:
            self.check_quota(target, size)
            relocation_path = self._relocate(target)
            outcome.items_relocated += 1
            outcome.bytes_freed += size
            self.logger.info("Moved %s to recoverable area: %s -> %s", target.kind, path, relocation_path)
            return RemovalResult(path=path, action="relocated", relocation_path=relocation_path, size=size)

        self._delete(target)
        if target.is_directory:
            outcome.dirs_removed += 1
        else:
            outcome.files_removed += 1
        outcome.bytes_freed += size
        self.logger.info("Deleted %s: %s", target.kind, path)
        return RemovalResult(path=path, action="deleted", size=size)

    def _relocate(self, target: RemovalTarget) -> Path:
        area = self._require_area()

        try:
            area.mkdir(parents=True, exist_ok=True)
            relocation_path = self.get_relocation_path(target)
            if target.is_symlink:
                try:
                    os.rename(target.path, relocation_path)
                except OSError as e:
                    if e.errno != errno.EXDEV:
                        raise
                    # Recreate the link instead of copying its target
                    os.symlink(os.readlink(target.path), relocation_path)
                    target.path.unlink()
            else:
                shutil.move(str(target.path), str(relocation_path))
        except OSError as e:
            raise FilesystemError(target.path, f"Failed to move {target.kind} to recoverable area ({e})") from e

        return relocation_path

    def _delete(self, target: RemovalTarget) -> None:
        try:
            if target.is_directory:
                shutil.rmtree(target.path)
            else:
                # Files and symlinks, including links to directories
                target.path.unlink()
        except OSError as e:
            raise FilesystemError(target.path, f"Failed to delete {target.kind} ({e})") from e


def _raise_walk_error(error: OSError) -> None:
    raise error
