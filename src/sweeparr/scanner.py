"""Detect remaining media files below a candidate folder."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from .config import normalize_extension

logger = logging.getLogger("sweeparr")


def iter_media_files(folder: Path, extensions: Iterable[str]) -> Iterator[Path]:
    """Yield media files below a folder.

    Symbolic links to files are matched on their own name and on the name
    of the file they point to. Symbolic links to directories are never
    descended into. Unreadable subdirectories are skipped.

    Args:
        folder: Directory to scan.
        extensions: Media extensions, case-insensitive.

    Yields:
        Paths of matching files.

    """
    suffixes = tuple(ext for ext in (normalize_extension(e) for e in extensions) if ext)
    if not suffixes:
        return

    for dirpath, _dirnames, filenames in os.walk(folder, followlinks=False, onerror=_log_walk_error):
        for name in filenames:
            path = Path(dirpath) / name
            if not path.is_file():
                # Broken links and special files
                continue
            if name.lower().endswith(suffixes):
                yield path
            elif path.is_symlink() and path.resolve().name.lower().endswith(suffixes):
                yield path


def contains_media(folder: Path, extensions: Iterable[str]) -> bool:
    """Check whether any media file remains below a folder.

    A nonexistent or unreadable folder reports False.

    Args:
        folder: Directory to scan.
        extensions: Media extensions, case-insensitive.

    Returns:
        True if at least one media file was found.

    """
    if not folder.is_dir() or folder.is_symlink():
        return False

    for path in iter_media_files(folder, extensions):
        logger.debug("Found media file: %s", path)
        return True
    return False


def _log_walk_error(error: OSError) -> None:
    logger.debug("Cannot read %s: %s", error.filename, error.strerror)
