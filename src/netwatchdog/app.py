"""Core application runner for netwatchdog.

This module provides the main application runner that coordinates:
- Command-line parsing and configuration loading
- Logging setup
- Dependency wiring and signal handling
- Continuous and single-check modes

Any unexpected fault escaping the watchdog is logged with its traceback and
turned into a non-zero exit code instead of crashing silently.
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from netwatchdog import __version__
from netwatchdog.cli import apply_overrides, parse_args
from netwatchdog.config import load_config
from netwatchdog.container import create_container
from netwatchdog.logging import get_logger, setup_logging
from netwatchdog.shutdown import create_shutdown_handler

if TYPE_CHECKING:
    from netwatchdog.config import Config
    from netwatchdog.watchdog import Watchdog

logger = get_logger(__name__)


def run_once_mode(watchdog: Watchdog) -> int:
    """Run a single check.

    Args:
        watchdog: Configured Watchdog instance.

    Returns:
        Exit code: 0 if the network was reachable, 1 otherwise.
    """
    logger.info("Running single check (--once mode)")
    report = watchdog.run_once()
    return 0 if report.result.reachable else 1


def run_continuous_mode(watchdog: Watchdog) -> int:
    """Run the watchdog loop until shutdown is requested.

    Args:
        watchdog: Configured Watchdog instance.

    Returns:
        Exit code: 0 for success.
    """
    watchdog.run()
    return 0


def run_application(parsed: argparse.Namespace, config: Config) -> int:
    """Run the watchdog with the given configuration.

    Args:
        parsed: Parsed command-line arguments.
        config: Effective configuration.

    Returns:
        Exit code for the application.
    """
    container = create_container(config)
    watchdog = container.watchdog()
    create_shutdown_handler(container.cancel_event())

    if parsed.once:
        return run_once_mode(watchdog)
    return run_continuous_mode(watchdog)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)

    if parsed.version:
        print(f"Version: {__version__}")
        return 0

    config = apply_overrides(load_config(parsed.env_file), parsed)
    setup_logging(
        level=config.logging_config.level,
        json_format=config.logging_config.json,
    )

    try:
        return run_application(parsed, config)
    except Exception as e:
        logger.exception(
            "Run time fault: %s",
            e,
            extra={"error_type": type(e).__name__},
        )
        return 1


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())


__all__ = [
    "cli",
    "main",
    "run_application",
    "run_continuous_mode",
    "run_once_mode",
]
