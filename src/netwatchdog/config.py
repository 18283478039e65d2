"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Reboot threshold comparison modes:
# - "inclusive": reboot when failures >= attempts_allowed
# - "strict": reboot when failures > attempts_allowed
VALID_REBOOT_COMPARISONS = frozenset({"inclusive", "strict"})

DEFAULT_ADDRESS = "https://www.google.com,https://www.cloudflare.com,https://www.amazon.com"
DEFAULT_INTERVAL = 15 * 60.0
DEFAULT_RETRY_INTERVAL = 5 * 60.0
DEFAULT_ATTEMPTS_ALLOWED = 5
DEFAULT_PROBE_TIMEOUT = 30.0
DEFAULT_REMEDIATION_PAUSE = 5.0
DEFAULT_COMMAND_TIMEOUT = 60.0

# Go-style duration units, in seconds
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_addresses(value: str) -> tuple[str, ...]:
    """Split a comma-separated endpoint list.

    Entries are kept untrimmed; the prober trims them before use. An empty
    string yields an empty tuple.
    """
    if not value:
        return ()
    return tuple(value.split(","))


@dataclass(frozen=True)
class WatchdogConfig:
    """Polling and escalation ladder timing.

    Attributes:
        interval: Baseline seconds between checks while healthy.
        retry_interval: Seconds between checks after any failed check.
        attempts_allowed: Number of failed checks allowed before reboot.
        addresses: Ordered endpoints to probe (raw, untrimmed).
        probe_timeout: Per-endpoint request timeout in seconds.
        remediation_pause: Seconds to wait between restarting the
            name-resolution service and the network manager.
    """

    interval: float = DEFAULT_INTERVAL
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    attempts_allowed: int = DEFAULT_ATTEMPTS_ALLOWED
    addresses: tuple[str, ...] = field(default_factory=lambda: parse_addresses(DEFAULT_ADDRESS))
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    remediation_pause: float = DEFAULT_REMEDIATION_PAUSE


@dataclass(frozen=True)
class EscalationConfig:
    """How the failure counter maps to remediation actions.

    Attributes:
        reboot_comparison: "inclusive" (failures >= threshold) or
            "strict" (failures > threshold).
        first_failure_continues: When True, the tick that runs first-level
            remediation does not also evaluate the reboot threshold.
    """

    reboot_comparison: str = "inclusive"
    first_failure_continues: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json: Whether to emit JSON-formatted log lines.
    """

    level: str = "INFO"
    json: bool = False


@dataclass(frozen=True)
class SystemConfig:
    """OS integration settings for remediation actions.

    Attributes:
        dns_service: systemd unit restarted as name-resolution remediation.
        network_service: systemd unit restarted as network remediation.
        command_timeout: Timeout in seconds for each systemctl invocation.
        dry_run: Log remediation actions without executing them.
    """

    dns_service: str = "systemd-resolved"
    network_service: str = "NetworkManager"
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    dry_run: bool = False


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation. Values are read once at startup.
    """

    watchdog: WatchdogConfig = field(default_factory=WatchdogConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    logging_config: LoggingConfig = field(default_factory=LoggingConfig)
    system: SystemConfig = field(default_factory=SystemConfig)


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts a bare number of seconds ("90", "2.5") or a Go-style duration
    made of unit-suffixed parts ("15m", "1h30m", "500ms").

    Args:
        value: The duration string.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        return seconds

    sign = 1.0
    if text[0] in "+-":
        if text[0] == "-":
            sign = -1.0
        text = text[1:]

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return sign * total


def _parse_positive_duration(value: str, name: str, default: float) -> float:
    """Parse a duration string that must be strictly positive.

    Logs a warning and returns the default if the value is invalid.
    """
    try:
        parsed = parse_duration(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid duration, using default %s",
            name,
            value,
            default,
        )
        return default
    if parsed <= 0:
        logging.warning(
            "Invalid %s: '%s' is not positive, using default %s",
            name,
            value,
            default,
        )
        return default
    return parsed


def _parse_non_negative_duration(value: str, name: str, default: float) -> float:
    """Parse a duration string that may be zero but not negative.

    Logs a warning and returns the default if the value is invalid.
    """
    try:
        parsed = parse_duration(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid duration, using default %s",
            name,
            value,
            default,
        )
        return default
    if parsed < 0:
        logging.warning(
            "Invalid %s: '%s' is negative, using default %s",
            name,
            value,
            default,
        )
        return default
    return parsed


def _parse_positive_int(value: str, name: str, default: int) -> int:
    """Parse a string as a positive integer with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed positive integer, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = int(value)
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %d is not positive, using default %d",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Args:
        value: The string value to parse.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.

    Logs a warning if the value is invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid NETWATCHDOG_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _validate_reboot_comparison(value: str, default: str = "inclusive") -> str:
    """Validate and normalize the reboot threshold comparison mode.

    Logs a warning and returns the default if the value is invalid.
    """
    normalized = value.strip().lower()
    if normalized not in VALID_REBOOT_COMPARISONS:
        logging.warning(
            "Invalid NETWATCHDOG_REBOOT_COMPARISON: '%s' is not valid, using default '%s'. "
            "Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_REBOOT_COMPARISONS)),
        )
        return default
    return normalized


def _getenv(name: str, default: str, legacy: str | None = None) -> str:
    """Read a prefixed variable, falling back to its legacy unprefixed name."""
    value = os.getenv(name)
    if value is not None:
        return value
    if legacy is not None:
        value = os.getenv(legacy)
        if value is not None:
            return value
    return default


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values.

    Values are validated and defaults are used for invalid inputs:
    - Durations must be positive (the remediation pause may be zero)
    - NETWATCHDOG_ATTEMPTS_ALLOWED must be a positive integer
    - NETWATCHDOG_LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL
    """
    # Load .env file if it exists
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    interval = _parse_positive_duration(
        _getenv("NETWATCHDOG_INTERVAL", "15m", legacy="INTERVAL"),
        "NETWATCHDOG_INTERVAL",
        DEFAULT_INTERVAL,
    )
    retry_interval = _parse_positive_duration(
        _getenv("NETWATCHDOG_RETRY_INTERVAL", "5m", legacy="RETRY_INTERVAL"),
        "NETWATCHDOG_RETRY_INTERVAL",
        DEFAULT_RETRY_INTERVAL,
    )
    attempts_allowed = _parse_positive_int(
        os.getenv("NETWATCHDOG_ATTEMPTS_ALLOWED", str(DEFAULT_ATTEMPTS_ALLOWED)),
        "NETWATCHDOG_ATTEMPTS_ALLOWED",
        DEFAULT_ATTEMPTS_ALLOWED,
    )
    probe_timeout = _parse_positive_duration(
        os.getenv("NETWATCHDOG_PROBE_TIMEOUT", "30s"),
        "NETWATCHDOG_PROBE_TIMEOUT",
        DEFAULT_PROBE_TIMEOUT,
    )
    remediation_pause = _parse_non_negative_duration(
        os.getenv("NETWATCHDOG_REMEDIATION_PAUSE", "5s"),
        "NETWATCHDOG_REMEDIATION_PAUSE",
        DEFAULT_REMEDIATION_PAUSE,
    )

    # DEBUG is the historical switch for verbose output
    debug = _parse_bool(_getenv("NETWATCHDOG_DEBUG", "", legacy="DEBUG"))
    log_level = _validate_log_level(os.getenv("NETWATCHDOG_LOG_LEVEL", "INFO"))
    if debug:
        log_level = "DEBUG"

    command_timeout = _parse_positive_duration(
        os.getenv("NETWATCHDOG_COMMAND_TIMEOUT", "60s"),
        "NETWATCHDOG_COMMAND_TIMEOUT",
        DEFAULT_COMMAND_TIMEOUT,
    )

    return Config(
        watchdog=WatchdogConfig(
            interval=interval,
            retry_interval=retry_interval,
            attempts_allowed=attempts_allowed,
            addresses=parse_addresses(os.getenv("NETWATCHDOG_ADDRESS", DEFAULT_ADDRESS)),
            probe_timeout=probe_timeout,
            remediation_pause=remediation_pause,
        ),
        escalation=EscalationConfig(
            reboot_comparison=_validate_reboot_comparison(
                os.getenv("NETWATCHDOG_REBOOT_COMPARISON", "inclusive"),
            ),
            first_failure_continues=_parse_bool(
                os.getenv("NETWATCHDOG_FIRST_FAILURE_CONTINUES", "true")
            ),
        ),
        logging_config=LoggingConfig(
            level=log_level,
            json=_parse_bool(os.getenv("NETWATCHDOG_LOG_JSON", "")),
        ),
        system=SystemConfig(
            dns_service=os.getenv("NETWATCHDOG_DNS_SERVICE", "systemd-resolved"),
            network_service=os.getenv("NETWATCHDOG_NETWORK_SERVICE", "NetworkManager"),
            command_timeout=command_timeout,
            dry_run=_parse_bool(os.getenv("NETWATCHDOG_DRY_RUN", "")),
        ),
    )
