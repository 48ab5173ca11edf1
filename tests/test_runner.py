"""Tests for the cleanup runner."""

from __future__ import annotations

import logging
import os
from collections import namedtuple
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sweeparr.config import SweeparrConfig
from sweeparr.errors import FilesystemError, InvalidEvent
from sweeparr.event import CleanupEvent
from sweeparr.remover import CleanupOutcome
from sweeparr.runner import CleanupRunner, setup_logging

DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])

GB = 1024**3


@pytest.fixture
def tv_root(tmp_path: Path) -> Path:
    """Create the protected TV download folder."""
    root = tmp_path / "downloads" / "tv"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def config(tv_root: Path) -> SweeparrConfig:
    """Create a test configuration protecting the TV download folder."""
    return SweeparrConfig(protected_folders=[tv_root], wait_seconds=0)


@pytest.fixture
def sleep() -> MagicMock:
    """Replace the blocking wait."""
    return MagicMock()


@pytest.fixture
def runner(config: SweeparrConfig, sleep: MagicMock) -> CleanupRunner:
    """Create a runner instance."""
    return CleanupRunner(config, logger=logging.getLogger("test-runner"), sleep=sleep)


@pytest.fixture
def season(tv_root: Path) -> Path:
    """Create ShowX/Season1 with an imported episode and leftovers."""
    folder = tv_root / "ShowX" / "Season1"
    folder.mkdir(parents=True)
    (folder / "ShowX.S01E01.mkv").write_bytes(b"x" * 100)
    (folder / "ShowX.S01E01.nfo").write_bytes(b"x" * 10)
    (tv_root / "ShowX" / "poster.jpg").write_bytes(b"x" * 20)
    return folder


def _event(folder: Path, name: str = "ShowX.S01E01.mkv") -> CleanupEvent:
    return CleanupEvent(source_file=str(folder / name), source_folder=str(folder), caller="Sonarr")


def _snapshot(root: Path) -> list[tuple[str, bool, int]]:
    entries: list[tuple[str, bool, int]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            entries.append((str(path.relative_to(root)), path.is_dir(), path.lstat().st_size))
    return sorted(entries)


class TestScenarios:
    """End-to-end cleanup scenarios."""

    def test_empty_staging_folder_removed(self, runner: CleanupRunner, season: Path, tv_root: Path) -> None:
        """Scenario A: the whole show folder goes once no media remains."""
        outcome = runner.run(_event(season))

        assert not (tv_root / "ShowX").exists()
        assert tv_root.is_dir()
        assert outcome == CleanupOutcome(files_removed=1, dirs_removed=1, bytes_freed=130)

    def test_remaining_media_keeps_folder(self, runner: CleanupRunner, season: Path, tv_root: Path) -> None:
        """Scenario B: another episode keeps the show folder alive."""
        (season / "ShowX.S01E02.mkv").write_bytes(b"x")

        outcome = runner.run(_event(season))

        assert not (season / "ShowX.S01E01.mkv").exists()
        assert (season / "ShowX.S01E02.mkv").exists()
        assert (tv_root / "ShowX" / "poster.jpg").exists()
        assert outcome == CleanupOutcome(files_removed=1, bytes_freed=100)

    def test_protected_root_never_removed(self, runner: CleanupRunner, tv_root: Path) -> None:
        """Scenario C: a file directly in the protected root leaves the root alone."""
        (tv_root / "episode.mkv").write_bytes(b"x")
        (tv_root / "leftover.nfo").write_bytes(b"x")

        outcome = runner.run(_event(tv_root, "episode.mkv"))

        assert tv_root.is_dir()
        assert (tv_root / "leftover.nfo").exists()
        assert outcome.dirs_removed == 0

    def test_quota_exceeded_is_not_fatal(
        self, config: SweeparrConfig, sleep: MagicMock, season: Path, tmp_path: Path
    ) -> None:
        """Scenario D: targets too large for the recoverable area stay in place."""
        area = tmp_path / "trash"
        area.mkdir()
        config.use_recoverable_area = True
        config.recoverable_area = area
        runner = CleanupRunner(config, sleep=sleep)

        with (
            patch.object(runner.remover, "measure", return_value=5 * GB),
            patch("sweeparr.remover.shutil.disk_usage", return_value=DiskUsage(10 * GB, 8 * GB, 2 * GB)),
        ):
            outcome = runner.run(_event(season))

        assert season.is_dir()
        assert (season / "ShowX.S01E01.mkv").exists()
        assert list(area.iterdir()) == []
        assert outcome == CleanupOutcome()

    def test_relocation_mode(self, config: SweeparrConfig, sleep: MagicMock, season: Path, tmp_path: Path) -> None:
        """Test that file and folder are moved to the recoverable area."""
        area = tmp_path / "trash"
        config.use_recoverable_area = True
        config.recoverable_area = area
        runner = CleanupRunner(config, sleep=sleep)

        outcome = runner.run(_event(season))

        assert not season.exists()
        moved = sorted(p.name.split("_")[0] for p in area.iterdir())
        assert moved == ["ShowX", "ShowX.S01E01.mkv"]
        assert outcome == CleanupOutcome(items_relocated=2, bytes_freed=130)

    def test_nested_root_beside_removed_folder(self, sleep: MagicMock, tmp_path: Path) -> None:
        """Test that a sibling folder is removed while the nested root above stays."""
        outer = tmp_path / "downloads"
        inner = outer / "incoming" / "tv"
        inner.mkdir(parents=True)
        (inner / "keep.nfo").write_bytes(b"x")
        folder = outer / "incoming" / "other" / "Season1"
        folder.mkdir(parents=True)
        (folder / "ep.mkv").write_bytes(b"x" * 5)
        config = SweeparrConfig(protected_folders=[outer, inner], wait_seconds=0)

        outcome = CleanupRunner(config, sleep=sleep).run(_event(folder, "ep.mkv"))

        assert not (outer / "incoming" / "other").exists()
        assert inner.is_dir()
        assert (inner / "keep.nfo").exists()
        assert outcome == CleanupOutcome(files_removed=1, dirs_removed=1, bytes_freed=5)


class TestSkips:
    """Tests for skip decisions."""

    def test_folder_outside_protected_roots(self, runner: CleanupRunner, tmp_path: Path) -> None:
        """Test that folders outside any protected root are left alone."""
        folder = tmp_path / "elsewhere" / "Show"
        folder.mkdir(parents=True)
        (folder / "ep.mkv").write_bytes(b"x")
        (folder / "ep.nfo").write_bytes(b"x")

        outcome = runner.run(_event(folder, "ep.mkv"))

        assert folder.is_dir()
        assert (folder / "ep.nfo").exists()
        assert outcome == CleanupOutcome(files_removed=1, bytes_freed=1)

    def test_source_file_already_moved(self, runner: CleanupRunner, season: Path, tv_root: Path) -> None:
        """Test that a file moved away by the caller is not an error."""
        (season / "ShowX.S01E01.mkv").unlink()

        outcome = runner.run(_event(season))

        assert not (tv_root / "ShowX").exists()
        assert outcome == CleanupOutcome(dirs_removed=1, bytes_freed=30)

    def test_idempotent(self, runner: CleanupRunner, season: Path) -> None:
        """Test that running again on a cleaned event only skips."""
        runner.run(_event(season))
        second = runner.run(_event(season))

        assert second == CleanupOutcome()

    def test_dry_run_does_not_mutate(
        self, config: SweeparrConfig, sleep: MagicMock, season: Path, tmp_path: Path
    ) -> None:
        """Test that dry-run leaves the filesystem identical."""
        config.dry_run = True
        config.use_recoverable_area = True
        config.recoverable_area = tmp_path / "trash"
        before = _snapshot(tmp_path)

        outcome = CleanupRunner(config, sleep=sleep).run(_event(season))

        assert _snapshot(tmp_path) == before
        assert outcome == CleanupOutcome()


class TestRunFlow:
    """Tests for run sequencing."""

    def test_waits_before_cleanup(self, config: SweeparrConfig, sleep: MagicMock, season: Path) -> None:
        """Test that the configured delay is applied once."""
        config.wait_seconds = 45
        CleanupRunner(config, sleep=sleep).run(_event(season))
        sleep.assert_called_once_with(45)

    def test_no_wait_when_zero(self, runner: CleanupRunner, sleep: MagicMock, season: Path) -> None:
        """Test that a zero delay does not sleep."""
        runner.run(_event(season))
        sleep.assert_not_called()

    def test_invalid_event_aborts_before_wait(
        self, config: SweeparrConfig, sleep: MagicMock, season: Path
    ) -> None:
        """Test that validation happens before any waiting or removal."""
        config.wait_seconds = 45
        event = CleanupEvent(source_file="", source_folder=str(season), caller="Sonarr")

        with pytest.raises(InvalidEvent):
            CleanupRunner(config, sleep=sleep).run(event)

        sleep.assert_not_called()
        assert (season / "ShowX.S01E01.mkv").exists()

    def test_filesystem_error_propagates(self, runner: CleanupRunner, season: Path) -> None:
        """Test that a failed deletion aborts the run."""
        with (
            patch.object(runner.remover, "_delete", side_effect=FilesystemError(season, "Failed to delete")),
            pytest.raises(FilesystemError),
        ):
            runner.run(_event(season))

    def test_summary_logged(
        self, runner: CleanupRunner, season: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that the run ends with a summary line."""
        with caplog.at_level(logging.INFO, logger="test-runner"):
            runner.run(_event(season))

        assert caplog.records[-1].getMessage() == (
            "Cleanup complete. Files deleted: 1. Directories deleted: 1. Space freed: 130B."
        )

    def test_resolution_logged_at_debug(
        self, runner: CleanupRunner, season: Path, tv_root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that the resolver decision is logged."""
        with caplog.at_level(logging.DEBUG, logger="test-runner"):
            runner.run(_event(season))

        assert f"Resolved Resolution(candidate={tv_root / 'ShowX'}, root={tv_root})" in caplog.messages

    def test_results_recorded(self, runner: CleanupRunner, season: Path, tv_root: Path) -> None:
        """Test that each removal result is kept for the last run."""
        runner.run(_event(season))

        assert [(r.path, r.action) for r in runner.results] == [
            (season / "ShowX.S01E01.mkv", "deleted"),
            (tv_root / "ShowX", "deleted"),
        ]
        assert [r.size for r in runner.results] == [100, 30]

        runner.run(_event(season))
        assert runner.results == []

    def test_quota_skip_recorded(
        self, config: SweeparrConfig, sleep: MagicMock, season: Path, tmp_path: Path
    ) -> None:
        """Test that targets left in place by the quota check are recorded as skipped."""
        config.use_recoverable_area = True
        config.recoverable_area = tmp_path / "trash"
        runner = CleanupRunner(config, sleep=sleep)

        with (
            patch.object(runner.remover, "measure", return_value=5 * GB),
            patch("sweeparr.remover.shutil.disk_usage", return_value=DiskUsage(10 * GB, 8 * GB, 2 * GB)),
        ):
            runner.run(_event(season))

        assert [r.action for r in runner.results] == ["skipped", "skipped"]


class TestSetupLogging:
    """Tests for logger configuration."""

    def test_file_handler_added(self, config: SweeparrConfig, tmp_path: Path) -> None:
        """Test that a log file gets its own handler."""
        config.log_file = tmp_path / "logs" / "sweeparr.log"
        config.log_level = "DEBUG"

        logger = setup_logging(config)
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.info("hello")
            for handler in logger.handlers:
                handler.flush()
            assert "| INFO | hello" in config.log_file.read_text()
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_repeated_setup_does_not_duplicate(self, config: SweeparrConfig) -> None:
        """Test that handlers are replaced, not stacked."""
        setup_logging(config)
        logger = setup_logging(config)
        try:
            assert len(logger.handlers) == 1
        finally:
            logger.handlers.clear()
