"""Command-line interface argument parsing for netwatchdog.

This module provides the CLI argument parser that handles:
- Check cadence (interval, retry interval)
- Failure threshold and reboot comparison
- Endpoint list
- Logging options and .env file location
- Version and single-check modes
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from netwatchdog.config import VALID_REBOOT_COMPARISONS, parse_addresses, parse_duration

if TYPE_CHECKING:
    from netwatchdog.config import Config


def _duration(value: str) -> float:
    """argparse type for duration strings such as 15m or 90."""
    try:
        seconds = parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive: {value!r}")
    return seconds


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from e
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return parsed


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace. Options not given on the command line
        are None so that environment configuration is kept.
    """
    parser = argparse.ArgumentParser(
        prog="netwatchdog",
        description="Connectivity watchdog - restarts networking or reboots when offline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--dbg",
        action="store_true",
        help="Show debug info (same as --log-level DEBUG)",
    )

    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-a",
        "--attempts-allowed",
        type=_positive_int,
        default=None,
        help="Number of failed attempts allowed before reboot (default: 5)",
    )

    parser.add_argument(
        "--address",
        default=None,
        help="Address list to check - comma separated",
    )

    parser.add_argument(
        "-i",
        "--interval",
        type=_duration,
        default=None,
        help="Interval between checks, e.g. 15m (default: 15m)",
    )

    parser.add_argument(
        "-r",
        "--retry-interval",
        type=_duration,
        default=None,
        help="Interval between checks after failed attempt (default: 5m)",
    )

    parser.add_argument(
        "--probe-timeout",
        type=_duration,
        default=None,
        help="Timeout for each endpoint request (default: 30s)",
    )

    parser.add_argument(
        "--reboot-comparison",
        choices=sorted(VALID_REBOOT_COMPARISONS),
        default=None,
        help="Reboot when failures >= attempts (inclusive) or > attempts (strict)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check and exit (no waiting, no loop)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log remediation actions instead of executing them",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides NETWATCHDOG_LOG_LEVEL)",
    )

    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON log lines",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    return parser.parse_args(args)


def apply_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Return a copy of config with command-line options applied.

    Args:
        config: Configuration loaded from the environment.
        parsed: Parsed command-line arguments.

    Returns:
        New Config; options left unset on the command line keep their
        environment values.
    """
    watchdog = config.watchdog
    if parsed.interval is not None:
        watchdog = replace(watchdog, interval=parsed.interval)
    if parsed.retry_interval is not None:
        watchdog = replace(watchdog, retry_interval=parsed.retry_interval)
    if parsed.attempts_allowed is not None:
        watchdog = replace(watchdog, attempts_allowed=parsed.attempts_allowed)
    if parsed.address is not None:
        watchdog = replace(watchdog, addresses=parse_addresses(parsed.address))
    if parsed.probe_timeout is not None:
        watchdog = replace(watchdog, probe_timeout=parsed.probe_timeout)

    escalation = config.escalation
    if parsed.reboot_comparison is not None:
        escalation = replace(escalation, reboot_comparison=parsed.reboot_comparison)

    logging_config = config.logging_config
    if parsed.log_level is not None:
        logging_config = replace(logging_config, level=parsed.log_level)
    if parsed.dbg:
        logging_config = replace(logging_config, level="DEBUG")
    if parsed.log_json:
        logging_config = replace(logging_config, json=True)

    system = config.system
    if parsed.dry_run:
        system = replace(system, dry_run=True)

    return replace(
        config,
        watchdog=watchdog,
        escalation=escalation,
        logging_config=logging_config,
        system=system,
    )


__all__ = ["apply_overrides", "parse_args"]
