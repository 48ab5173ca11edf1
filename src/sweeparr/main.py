"""Main entry point for sweeparr."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import SweeparrConfig
from .errors import SweeparrError
from .event import CleanupEvent
from .pathindex import PathIndex
from .resolver import ResolutionKind, resolve_safe_parent
from .runner import CleanupRunner, setup_logging
from .scanner import contains_media


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse. Uses sys.argv if None.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="sweeparr",
        description="Remove leftover download files and folders after a Sonarr/Radarr import",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command (default)
    run_parser = subparsers.add_parser("run", help="Clean up after the import in the environment")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would be removed without changing anything",
    )

    # Check command
    check_parser = subparsers.add_parser("check", help="Show what would happen to a folder")
    check_parser.add_argument("folder", type=Path, help="Source folder to evaluate")

    # Config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--init",
        action="store_true",
        help="Create default configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> SweeparrConfig:
    """Load the YAML config and overlay environment variables."""
    config = SweeparrConfig.load(args.config)
    config.apply_environment(os.environ)
    if getattr(args, "dry_run", False):
        config.dry_run = True
    return config


def cmd_run(config: SweeparrConfig) -> int:
    """Execute run command.

    Args:
        config: Sweeparr configuration.

    Returns:
        Exit code.

    """
    config.validate()
    logger = setup_logging(config)

    event = CleanupEvent.from_environ(os.environ)
    if not event.is_import:
        logger.info("Ignoring %s event from %s", event.event_type, event.caller)
        return 0

    runner = CleanupRunner(config, PathIndex.build(config.protected_folders), logger)
    runner.run(event)
    return 0


def cmd_check(config: SweeparrConfig, args: argparse.Namespace) -> int:
    """Execute check command.

    Args:
        config: Sweeparr configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    index = PathIndex.build(config.protected_folders)
    resolution = resolve_safe_parent(args.folder.absolute(), index)

    table = Table(title=f"Cleanup decision for {args.folder}")
    table.add_column("Check", style="cyan")
    table.add_column("Result", style="green")

    table.add_row("Decision", resolution.kind.value)
    if resolution.kind is ResolutionKind.CANDIDATE and resolution.candidate is not None:
        table.add_row("Protected root", str(resolution.protected_root))
        table.add_row("Removal candidate", str(resolution.candidate))
        has_media = contains_media(resolution.candidate, config.media_extensions)
        table.add_row("Media remaining", "yes" if has_media else "no")
        table.add_row("Would remove", "no" if has_media else "yes")
    else:
        table.add_row("Would remove", "no")

    console.print(table)
    return 0


def cmd_config(config: SweeparrConfig, args: argparse.Namespace) -> int:
    """Execute config command.

    Args:
        config: Sweeparr configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    if args.init:
        config_path = args.config or SweeparrConfig.get_config_path()
        if config_path.exists():
            console.print(f"[yellow]Config already exists: {config_path}[/yellow]")
            return 1
        config.save(config_path)
        console.print(f"[green]Created config: {config_path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Protected folders", "\n".join(str(d) for d in config.protected_folders))
        table.add_row("Media extensions", " ".join(sorted(config.media_extensions)))
        table.add_row("Wait before cleanup", f"{config.wait_seconds}s")
        table.add_row("Dry run", str(config.dry_run))
        table.add_row("Recoverable area enabled", str(config.use_recoverable_area))
        table.add_row("Recoverable area", str(config.recoverable_area or "-"))
        table.add_row("Log file", str(config.log_file or "-"))
        table.add_row("Log level", config.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)

    # Default to run command
    command = args.command or "run"

    try:
        config = load_config(args)
        if command == "check":
            return cmd_check(config, args)
        elif command == "config":
            return cmd_config(config, args)
        elif command == "run":
            return cmd_run(config)
        else:
            print(f"Unknown command: {command}")
            return 1
    except SweeparrError as e:
        logging.getLogger("sweeparr").error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
