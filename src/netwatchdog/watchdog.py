"""Watchdog control loop.

This module contains the Watchdog class, the state machine that owns polling
cadence, the consecutive-failure counter and escalation.

Each tick waits for the current interval, probes connectivity and reacts:

- reachable: the failure counter resets to 0 and the interval returns to
  the baseline
- unreachable: the counter increments by exactly 1, the interval switches to
  the retry interval, and the escalation policy decides whether to run
  first-level remediation or reboot

Cancellation is cooperative. The loop observes its cancellation event while
waiting between ticks and right before probing; a probe or remediation
action already in flight always runs to completion.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from netwatchdog import __version__
from netwatchdog.escalation import ConfigurationError, EscalationAction, EscalationPolicy
from netwatchdog.logging import get_logger
from netwatchdog.prober import EndpointFailure, ProbeOutcome, ProbeResult
from netwatchdog.system_actions import ActionResult, SystemActions

if TYPE_CHECKING:
    from netwatchdog.config import Config

logger = get_logger(__name__)


class Prober(Protocol):
    """Anything that can run one connectivity probe."""

    def probe(self) -> ProbeResult: ...


class LoopState(Enum):
    """Lifecycle states of the watchdog loop."""

    IDLE_WAITING = "idle_waiting"
    PROBING = "probing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class TickReport:
    """What happened during one tick.

    Attributes:
        result: The probe result that drove the tick.
        failures: Failure counter after the tick.
        interval: Interval that will be waited before the next tick.
        actions: Remediation actions run during the tick, in order.
    """

    result: ProbeResult
    failures: int
    interval: float
    actions: tuple[ActionResult, ...] = field(default_factory=tuple)

    @property
    def rebooted(self) -> bool:
        """Whether a reboot was requested during this tick."""
        return any(a.action == "reboot" for a in self.actions)


@dataclass(frozen=True)
class WatchdogStatus:
    """Point-in-time view of the loop state, for inspection and logging."""

    state: LoopState
    failures: int
    interval: float
    ticks: int
    last_outcome: ProbeOutcome | None


class Watchdog:
    """Connectivity watchdog state machine.

    The loop state (failure counter, effective interval) is owned by this
    object and only mutated from the thread running :meth:`run` or
    :meth:`tick`. The only state shared with other threads is the
    cancellation event.
    """

    def __init__(
        self,
        prober: Prober,
        actions: SystemActions,
        policy: EscalationPolicy,
        interval: float,
        retry_interval: float,
        remediation_pause: float = 5.0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the watchdog.

        Args:
            prober: Connectivity prober invoked once per tick.
            actions: Remediation capabilities (service restarts, reboot).
            policy: Escalation policy applied after each failed probe.
            interval: Baseline seconds between ticks while healthy.
            retry_interval: Seconds between ticks after a failed probe.
            remediation_pause: Seconds to wait between the two first-level
                remediation actions.
            cancel_event: Cancellation token. A new one is created if
                omitted; call :meth:`request_stop` to set it.

        Raises:
            ConfigurationError: If an interval is not positive or the pause
                is negative.
        """
        if interval <= 0:
            raise ConfigurationError(f"interval must be positive, got {interval}")
        if retry_interval <= 0:
            raise ConfigurationError(f"retry_interval must be positive, got {retry_interval}")
        if remediation_pause < 0:
            raise ConfigurationError(
                f"remediation_pause must not be negative, got {remediation_pause}"
            )

        self.prober = prober
        self.actions = actions
        self.policy = policy
        self.baseline_interval = interval
        self.retry_interval = retry_interval
        self.remediation_pause = remediation_pause
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()

        # Loop state
        self._state = LoopState.IDLE_WAITING
        self._failures = 0
        self._interval = interval
        self._ticks = 0
        self._last_outcome: ProbeOutcome | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        prober: Prober,
        actions: SystemActions,
        cancel_event: threading.Event | None = None,
    ) -> Watchdog:
        """Create a Watchdog from application Config."""
        return cls(
            prober=prober,
            actions=actions,
            policy=EscalationPolicy.from_config(config),
            interval=config.watchdog.interval,
            retry_interval=config.watchdog.retry_interval,
            remediation_pause=config.watchdog.remediation_pause,
            cancel_event=cancel_event,
        )

    # =========================================================================
    # Public Accessors
    # =========================================================================

    @property
    def failures(self) -> int:
        """Consecutive failed probes since the last success."""
        return self._failures

    @property
    def interval(self) -> float:
        """Seconds that will be waited before the next tick."""
        return self._interval

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def ticks(self) -> int:
        """Number of completed ticks."""
        return self._ticks

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def is_stop_requested(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancel_event.is_set()

    def request_stop(self) -> None:
        """Request graceful shutdown of the loop."""
        logger.info("Shutdown requested")
        self._cancel_event.set()

    def snapshot(self) -> WatchdogStatus:
        """Return a snapshot of the loop state."""
        return WatchdogStatus(
            state=self._state,
            failures=self._failures,
            interval=self._interval,
            ticks=self._ticks,
            last_outcome=self._last_outcome,
        )

    # =========================================================================
    # Loop
    # =========================================================================

    def run(self) -> None:
        """Run ticks until cancellation is requested."""
        logger.info(
            "Worker started with options:\n"
            "* Interval: %ss\n"
            "* Retry Interval: %ss\n"
            "* Attempts Allowed: %s (%s)\n"
            "* Check Address: %s\n"
            "version: %s",
            self.baseline_interval,
            self.retry_interval,
            self.policy.threshold,
            self.policy.describe(),
            ",".join(getattr(self.prober, "endpoints", ()) or ()),
            __version__,
        )

        try:
            while True:
                self._state = LoopState.IDLE_WAITING
                if self._cancel_event.wait(self._interval):
                    break
                logger.info("Interval passed: %ss", self._interval)
                if self._cancel_event.is_set():
                    break
                self.tick()
        finally:
            self._state = LoopState.STOPPED

        logger.info("Worker stopped: shutdown requested")

    def tick(self) -> TickReport:
        """Probe once and apply the state transition for the outcome.

        This does not wait for the interval. It is used by :meth:`run` after
        the wait and directly for single-check mode.

        Returns:
            Report describing the probe result and actions taken.
        """
        self._state = LoopState.PROBING
        try:
            result = self._probe()
            self._ticks += 1
            self._last_outcome = result.outcome
            tick_logger = logger.with_context(tick=self._ticks)

            if result.reachable:
                tick_logger.info("Network check passed")
                self._failures = 0
                self._interval = self.baseline_interval
                return TickReport(result=result, failures=0, interval=self._interval)

            self._failures += 1
            self._interval = self.retry_interval
            failure_logger = logger.with_context(tick=self._ticks, failures=self._failures)
            failure_logger.info("Network check failed: %s", result.error_summary())
            failure_logger.debug("Failed attempts: %d", self._failures)

            action_results = self._escalate(self._failures)
            return TickReport(
                result=result,
                failures=self._failures,
                interval=self._interval,
                actions=action_results,
            )
        finally:
            self._state = LoopState.IDLE_WAITING

    def run_once(self) -> TickReport:
        """Run a single check without waiting first."""
        return self.tick()

    # =========================================================================
    # Internals
    # =========================================================================

    def _probe(self) -> ProbeResult:
        """Run the prober; a crashing prober counts as a failed probe."""
        try:
            return self.prober.probe()
        except Exception as e:
            # The loop must survive any prober fault
            logger.exception(
                "Unexpected error while probing: %s",
                e,
                extra={"error_type": type(e).__name__},
            )
            return ProbeResult(
                outcome=ProbeOutcome.UNREACHABLE,
                failures=(EndpointFailure("<prober>", str(e), type(e).__name__),),
            )

    def _escalate(self, failures: int) -> tuple[ActionResult, ...]:
        """Run the actions the policy prescribes for this failure count."""
        results: list[ActionResult] = []
        for action in self.policy.actions_for(failures):
            if action is EscalationAction.REMEDIATE:
                results.extend(self._remediate())
            elif action is EscalationAction.REBOOT:
                logger.info("Network check failed %d times, rebooting system", failures)
                result = self._invoke("reboot", self.actions.reboot_system)
                if not result.ok:
                    logger.error("Failed to reboot: %s", result.detail, extra={"action": "reboot"})
                results.append(result)
        return tuple(results)

    def _remediate(self) -> list[ActionResult]:
        """First-level remediation: restart name resolution, then the network."""
        results = [
            self._invoke("restart_dns", self.actions.restart_name_resolution_service),
        ]
        self._log_remediation(results[-1], "Restarted name-resolution service")

        if self.remediation_pause > 0:
            # Shortened by cancellation; the second restart still runs
            self._cancel_event.wait(self.remediation_pause)

        results.append(
            self._invoke("restart_netmgr", self.actions.restart_network_manager_service)
        )
        self._log_remediation(results[-1], "Restarted network-management service")
        return results

    def _log_remediation(self, result: ActionResult, message: str) -> None:
        if result.ok:
            logger.info(message, extra={"action": result.action})
        else:
            logger.warning(
                "%s failed: %s",
                result.action,
                result.detail,
                extra={"action": result.action},
            )

    def _invoke(self, name: str, action: Callable[[], ActionResult]) -> ActionResult:
        """Call a remediation action; exceptions become failed results."""
        try:
            return action()
        except Exception as e:
            # Remediation is best-effort and must never stop the loop
            logger.exception(
                "Unexpected error during %s: %s",
                name,
                e,
                extra={"action": name, "error_type": type(e).__name__},
            )
            return ActionResult.failure(name, str(e))
