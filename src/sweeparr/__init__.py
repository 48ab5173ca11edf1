"""Post-import cleanup for Sonarr/Radarr download folders."""

__version__ = "0.1.0"
