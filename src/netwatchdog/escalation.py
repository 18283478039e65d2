"""Escalation policy for consecutive connectivity failures.

The ladder is fixed: the first failure triggers first-level remediation
(restart name resolution, pause, restart the network manager), and reaching
the failure threshold triggers a reboot. Two details are configurable
because deployments have relied on both behaviours:

- ``comparison``: reboot when ``failures >= threshold`` (inclusive, the
  default) or only when ``failures > threshold`` (strict).
- ``first_failure_continues``: when True (the default), the tick that runs
  first-level remediation ends there and does not evaluate the reboot
  threshold. When False, the same tick also checks the threshold, so a
  threshold of 1 reboots on the very first failure.

The reboot is not one-shot: every failing tick that satisfies the threshold
asks for it again.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from netwatchdog.config import Config


class ConfigurationError(ValueError):
    """Raised when the watchdog is constructed with unusable settings."""


class RebootComparison(StrEnum):
    """How the failure counter is compared to the threshold."""

    INCLUSIVE = "inclusive"
    STRICT = "strict"


class EscalationAction(Enum):
    """Remediation steps the watchdog can take after a failed probe."""

    REMEDIATE = "remediate"
    REBOOT = "reboot"


@dataclass(frozen=True)
class EscalationPolicy:
    """Maps the post-increment failure counter to remediation actions.

    Attributes:
        threshold: Failed checks allowed before reboot.
        comparison: Inclusive (``>=``) or strict (``>``) threshold check.
        first_failure_continues: Skip the reboot check on the tick that
            runs first-level remediation.
    """

    threshold: int
    comparison: RebootComparison = RebootComparison.INCLUSIVE
    first_failure_continues: bool = True

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ConfigurationError(f"threshold must be positive, got {self.threshold}")
        # Accept plain strings from config
        object.__setattr__(self, "comparison", RebootComparison(self.comparison))

    @classmethod
    def from_config(cls, config: Config) -> EscalationPolicy:
        """Create the policy from application Config."""
        return cls(
            threshold=config.watchdog.attempts_allowed,
            comparison=RebootComparison(config.escalation.reboot_comparison),
            first_failure_continues=config.escalation.first_failure_continues,
        )

    def reboot_due(self, failures: int) -> bool:
        """Whether the failure count satisfies the reboot threshold."""
        if self.comparison is RebootComparison.STRICT:
            return failures > self.threshold
        return failures >= self.threshold

    def actions_for(self, failures: int) -> tuple[EscalationAction, ...]:
        """Decide what to do after a failed probe.

        Args:
            failures: The failure counter after it was incremented for
                this tick.

        Returns:
            Actions to run, in order. Empty for pure bookkeeping ticks.
        """
        if failures <= 0:
            return ()

        actions: list[EscalationAction] = []
        if failures == 1:
            actions.append(EscalationAction.REMEDIATE)
            if self.first_failure_continues:
                return tuple(actions)

        if self.reboot_due(failures):
            actions.append(EscalationAction.REBOOT)
        return tuple(actions)

    def describe(self) -> str:
        """One-line summary for the startup banner."""
        op = ">" if self.comparison is RebootComparison.STRICT else ">="
        suffix = "" if self.first_failure_continues else ", checked on first failure too"
        return f"reboot when failures {op} {self.threshold}{suffix}"
