"""Cleanup events passed in by Sonarr or Radarr custom-script connections."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidEvent

IMPORT_EVENT_TYPE = "Download"


@dataclass(frozen=True)
class _CallerVariables:
    name: str
    event_type: str
    source_file: str
    source_folder: str
    destination: str


_CALLERS: tuple[_CallerVariables, ...] = (
    _CallerVariables(
        name="Sonarr",
        event_type="sonarr_eventtype",
        source_file="sonarr_episodefile_sourcepath",
        source_folder="sonarr_episodefile_sourcefolder",
        destination="sonarr_episodefile_path",
    ),
    _CallerVariables(
        name="Radarr",
        event_type="radarr_eventtype",
        source_file="radarr_moviefile_sourcepath",
        source_folder="radarr_moviefile_sourcefolder",
        destination="radarr_moviefile_path",
    ),
)


@dataclass(frozen=True)
class CleanupEvent:
    """A single import notification from the media manager."""

    source_file: str
    source_folder: str
    caller: str
    event_type: str = IMPORT_EVENT_TYPE
    destination: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> CleanupEvent:
        """Build an event from the caller's environment variables.

        Args:
            environ: Environment mapping, usually ``os.environ``.

        Returns:
            The event for whichever caller set its variables.

        Raises:
            InvalidEvent: If neither Sonarr nor Radarr variables are present.

        """
        for caller in _CALLERS:
            if caller.event_type in environ or caller.source_file in environ:
                return cls(
                    source_file=environ.get(caller.source_file, ""),
                    source_folder=environ.get(caller.source_folder, ""),
                    caller=caller.name,
                    event_type=environ.get(caller.event_type, IMPORT_EVENT_TYPE),
                    destination=environ.get(caller.destination) or None,
                )

        raise InvalidEvent("Neither Sonarr nor Radarr environment variables detected")

    @property
    def is_import(self) -> bool:
        """Whether this is the import-completed event we clean up after."""
        return self.event_type == IMPORT_EVENT_TYPE

    @property
    def source_file_path(self) -> Path:
        return Path(self.source_file)

    @property
    def source_folder_path(self) -> Path:
        return Path(self.source_folder)

    def validate(self) -> None:
        """Check that both source paths are present and absolute.

        Raises:
            InvalidEvent: If a source path is missing or relative.

        """
        for label, value in (("source file", self.source_file), ("source folder", self.source_folder)):
            if not value or not value.strip():
                raise InvalidEvent(f"{self.caller} event has no {label} path")
            if not value.startswith("/"):
                raise InvalidEvent(f"{self.caller} event {label} path is not absolute: {value}")
