"""Sequence a single post-import cleanup."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

from .errors import QuotaExceeded
from .pathindex import PathIndex
from .remover import CleanupOutcome, RemovalResult, RemovalTarget, Remover
from .resolver import ResolutionKind, resolve_safe_parent
from .scanner import contains_media

if TYPE_CHECKING:
    from .config import SweeparrConfig
    from .event import CleanupEvent


def setup_logging(config: SweeparrConfig) -> logging.Logger:
    """Set up the sweeparr logger.

    Args:
        config: Sweeparr configuration.

    Returns:
        Configured logger instance.

    """
    logger = logging.getLogger("sweeparr")
    logger.setLevel(config.numeric_log_level)

    # Clear existing handlers to avoid duplicates if called twice
    if logger.handlers:
        logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
    )
    console_handler.setLevel(config.numeric_log_level)
    logger.addHandler(console_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setLevel(config.numeric_log_level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(file_handler)

    return logger


class CleanupRunner:
    """Removes the source file and its emptied download folder."""

    def __init__(
        self,
        config: SweeparrConfig,
        index: PathIndex | None = None,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Validated configuration.
            index: Protected path index. Built from config if None.
            logger: Logger instance. Uses the "sweeparr" logger if None.
            sleep: Blocking wait used for the pre-cleanup delay.

        """
        self.config = config
        self.index = index if index is not None else PathIndex.build(config.protected_folders)
        self.logger = logger or logging.getLogger("sweeparr")
        self.remover = Remover(config, self.logger)
        self._sleep = sleep

        # Removal results of the most recent run
        self.results: list[RemovalResult] = []

    def run(self, event: CleanupEvent) -> CleanupOutcome:
        """Clean up after a single import.

        Args:
            event: Import event from the media manager.

        Returns:
            Counters for what was removed.

        Raises:
            InvalidEvent: If the event has no usable source paths.
            FilesystemError: If a removal fails.

        """
        event.validate()
        outcome = CleanupOutcome()
        self.results = []

        self.logger.info("Running cleanup for %s", event.caller)
        self.logger.info("Source: %s", event.source_file)
        if event.destination:
            self.logger.info("Destination: %s", event.destination)
        if self.config.dry_run:
            self.logger.info("Dry run enabled, nothing will be changed")

        if self.config.wait_seconds > 0:
            self.logger.info("Waiting %ds for operations to complete...", self.config.wait_seconds)
            self._sleep(self.config.wait_seconds)

        self._cleanup_file(event, outcome)
        self._cleanup_folder(event, outcome)

        self.logger.info(outcome.summary(relocating=self.remover.relocating))
        return outcome

    def _cleanup_file(self, event: CleanupEvent, outcome: CleanupOutcome) -> None:
        path = event.source_file_path

        if not os.path.lexists(path):
            self.logger.info("Source file already deleted or moved: %s", path)
            return
        if path.is_dir() and not path.is_symlink():
            self.logger.warning("Source file is a directory, not removing it: %s", path)
            return

        self.logger.info("Attempting to remove source file: %s", path)
        self._remove(RemovalTarget.from_path(path), outcome)

    def _cleanup_folder(self, event: CleanupEvent, outcome: CleanupOutcome) -> None:
        folder = event.source_folder_path

        if not folder.is_dir():
            self.logger.info("Source folder already deleted or moved: %s", folder)
            return

        resolution = resolve_safe_parent(folder, self.index)
        self.logger.debug("Resolved %s", resolution)

        if resolution.kind is ResolutionKind.PROTECTED:
            self.logger.info("Known download folder, will not be deleted: %s", folder)
            return
        candidate = resolution.candidate
        if resolution.kind is ResolutionKind.OUTSIDE or candidate is None:
            self.logger.info("Folder outside known locations, will not be deleted: %s", folder)
            return

        self.logger.info("Checking for remaining media files in: %s", candidate)
        if contains_media(candidate, self.config.media_extensions):
            self.logger.info("Media files found, keeping folder: %s", candidate)
            return

        self.logger.info("No media files found, attempting to remove folder: %s", candidate)
        self._remove(RemovalTarget.from_path(candidate), outcome)

    def _remove(self, target: RemovalTarget, outcome: CleanupOutcome) -> None:
        try:
            result = self.remover.remove(target, outcome)
        except QuotaExceeded as e:
            self.logger.error("Skipping %s: %s", target.path, e)
            result = RemovalResult(path=target.path, action="skipped")
        self.results.append(result)
