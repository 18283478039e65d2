"""Tests for the Watchdog control loop."""

from __future__ import annotations

import logging
import threading

import pytest

from netwatchdog.escalation import ConfigurationError, EscalationPolicy, RebootComparison
from netwatchdog.prober import ProbeOutcome, ProbeResult
from netwatchdog.watchdog import LoopState, TickReport, Watchdog
from tests.helpers import make_config
from tests.mocks import (
    InstantEvent,
    RaisingProber,
    RecordingActions,
    ScriptedProber,
    reachable_result,
)

BASELINE = 900.0
RETRY = 300.0


def make_watchdog(
    outcomes: list[bool],
    actions: RecordingActions | None = None,
    threshold: int = 5,
    event: threading.Event | None = None,
    remediation_pause: float = 0.0,
    **policy_kwargs: object,
) -> Watchdog:
    return Watchdog(
        prober=ScriptedProber(outcomes),
        actions=actions or RecordingActions(),
        policy=EscalationPolicy(threshold=threshold, **policy_kwargs),  # type: ignore[arg-type]
        interval=BASELINE,
        retry_interval=RETRY,
        remediation_pause=remediation_pause,
        cancel_event=event,
    )


class TestWatchdogConstruction:
    """Tests for initial state and validation."""

    def test_initial_state(self) -> None:
        watchdog = make_watchdog([True])
        assert watchdog.failures == 0
        assert watchdog.interval == BASELINE
        assert watchdog.ticks == 0
        assert watchdog.state is LoopState.IDLE_WAITING
        assert watchdog.is_stop_requested() is False

    @pytest.mark.parametrize(
        ("interval", "retry_interval", "pause"),
        [(0, 300, 0), (-1, 300, 0), (900, 0, 0), (900, 300, -1)],
    )
    def test_rejects_invalid_timing(self, interval: float, retry_interval: float, pause: float) -> None:
        with pytest.raises(ConfigurationError):
            Watchdog(
                prober=ScriptedProber([True]),
                actions=RecordingActions(),
                policy=EscalationPolicy(threshold=5),
                interval=interval,
                retry_interval=retry_interval,
                remediation_pause=pause,
            )

    def test_from_config(self) -> None:
        config = make_config(
            interval=60,
            retry_interval=10,
            attempts_allowed=2,
            remediation_pause=1.5,
            reboot_comparison="strict",
        )
        event = threading.Event()
        watchdog = Watchdog.from_config(
            config,
            prober=ScriptedProber([True]),
            actions=RecordingActions(),
            cancel_event=event,
        )
        assert watchdog.baseline_interval == 60
        assert watchdog.retry_interval == 10
        assert watchdog.remediation_pause == 1.5
        assert watchdog.policy.threshold == 2
        assert watchdog.policy.comparison is RebootComparison.STRICT
        assert watchdog.cancel_event is event


class TestTickTransitions:
    """Tests for the counter and interval invariants."""

    def test_success_keeps_baseline(self) -> None:
        watchdog = make_watchdog([True])
        report = watchdog.tick()
        assert report.result.reachable
        assert report.failures == 0
        assert watchdog.failures == 0
        assert watchdog.interval == BASELINE

    @pytest.mark.parametrize("k", [1, 2, 3, 7])
    def test_k_failures(self, k: int) -> None:
        watchdog = make_watchdog([False], threshold=100)
        for _ in range(k):
            watchdog.tick()
        assert watchdog.failures == k
        assert watchdog.interval == RETRY

    def test_counter_increments_by_one_per_failing_tick(self) -> None:
        watchdog = make_watchdog([False], threshold=100)
        seen = [watchdog.tick().failures for _ in range(5)]
        assert seen == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize(
        "outcomes",
        [
            [True, True, True],
            [False, True],
            [False, False, False, True],
            [False, True, False, True, True],
        ],
    )
    def test_success_resets(self, outcomes: list[bool]) -> None:
        watchdog = make_watchdog(outcomes, threshold=100)
        for _ in outcomes:
            watchdog.tick()
        assert watchdog.failures == 0
        assert watchdog.interval == BASELINE

    def test_ticks_counted(self) -> None:
        watchdog = make_watchdog([False, True, False])
        for _ in range(3):
            watchdog.tick()
        assert watchdog.ticks == 3

    def test_state_is_probing_during_probe(self) -> None:
        seen: list[LoopState] = []

        class ObservingProber:
            watchdog: Watchdog

            def probe(self) -> ProbeResult:
                seen.append(self.watchdog.state)
                return reachable_result()

        prober = ObservingProber()
        watchdog = Watchdog(
            prober=prober,
            actions=RecordingActions(),
            policy=EscalationPolicy(threshold=5),
            interval=BASELINE,
            retry_interval=RETRY,
        )
        prober.watchdog = watchdog
        watchdog.tick()
        assert seen == [LoopState.PROBING]
        assert watchdog.state is LoopState.IDLE_WAITING

    def test_raising_prober_counts_as_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        prober = RaisingProber(RuntimeError("boom"))
        watchdog = Watchdog(
            prober=prober,
            actions=RecordingActions(),
            policy=EscalationPolicy(threshold=5),
            interval=BASELINE,
            retry_interval=RETRY,
            remediation_pause=0,
        )
        with caplog.at_level(logging.ERROR, logger="netwatchdog"):
            report = watchdog.tick()
        assert report.result.outcome is ProbeOutcome.UNREACHABLE
        assert watchdog.failures == 1
        assert "boom" in caplog.text

    def test_snapshot(self) -> None:
        watchdog = make_watchdog([False])
        watchdog.tick()
        status = watchdog.snapshot()
        assert status.failures == 1
        assert status.interval == RETRY
        assert status.ticks == 1
        assert status.last_outcome is ProbeOutcome.UNREACHABLE
        assert status.state is LoopState.IDLE_WAITING


class TestEscalation:
    """Tests for remediation and reboot firing."""

    def test_first_failure_runs_remediation_in_order(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions)
        report = watchdog.tick()
        assert actions.calls == ["restart_dns", "restart_netmgr"]
        assert [a.action for a in report.actions] == ["restart_dns", "restart_netmgr"]

    def test_remediation_fires_exactly_once_per_streak(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions, threshold=100)
        for _ in range(6):
            watchdog.tick()
        assert actions.calls.count("restart_dns") == 1
        assert actions.calls.count("restart_netmgr") == 1

    def test_remediation_fires_again_after_recovery(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog([False, True, False], actions=actions)
        for _ in range(3):
            watchdog.tick()
        assert actions.calls.count("restart_dns") == 2

    def test_middle_failures_are_bookkeeping_only(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions, threshold=5)
        watchdog.tick()
        actions.calls.clear()
        for _ in range(3):
            report = watchdog.tick()
            assert report.actions == ()
        assert actions.calls == []

    def test_reboot_is_not_one_shot(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions, threshold=3)
        reboot_ticks = []
        for _ in range(6):
            report = watchdog.tick()
            if report.rebooted:
                reboot_ticks.append(report.failures)
        assert reboot_ticks == [3, 4, 5, 6]
        assert actions.reboots == 4

    def test_strict_comparison_delays_reboot(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog(
            [False], actions=actions, threshold=3, comparison=RebootComparison.STRICT
        )
        reports = [watchdog.tick() for _ in range(4)]
        assert [r.rebooted for r in reports] == [False, False, False, True]

    def test_threshold_one_with_fall_through(self) -> None:
        actions = RecordingActions()
        watchdog = make_watchdog(
            [False], actions=actions, threshold=1, first_failure_continues=False
        )
        watchdog.tick()
        assert actions.calls == ["restart_dns", "restart_netmgr", "reboot"]

    def test_failed_reboot_is_logged_and_loop_continues(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        actions = RecordingActions(fail={"reboot"})
        watchdog = make_watchdog([False], actions=actions, threshold=2)
        with caplog.at_level(logging.INFO, logger="netwatchdog"):
            for _ in range(4):
                watchdog.tick()
        assert actions.reboots == 3
        assert watchdog.failures == 4
        assert watchdog.interval == RETRY
        assert "Failed to reboot" in caplog.text

    def test_raising_remediation_does_not_abort_tick(self) -> None:
        actions = RecordingActions(raise_on={"restart_dns"})
        watchdog = make_watchdog([False], actions=actions)
        report = watchdog.tick()
        assert actions.calls == ["restart_dns", "restart_netmgr"]
        assert [a.ok for a in report.actions] == [False, True]
        assert watchdog.failures == 1

    def test_failed_remediation_does_not_change_bookkeeping(self) -> None:
        healthy = make_watchdog([False, False, True])
        broken = make_watchdog(
            [False, False, True],
            actions=RecordingActions(fail={"restart_dns", "restart_netmgr"}),
        )
        for _ in range(3):
            a = healthy.tick()
            b = broken.tick()
            assert (a.failures, a.interval) == (b.failures, b.interval)

    def test_remediation_pause_uses_cancellable_wait(self) -> None:
        event = InstantEvent()
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions, event=event, remediation_pause=5.0)
        watchdog.tick()
        assert event.waits == [5.0]
        assert actions.calls == ["restart_dns", "restart_netmgr"]

    def test_cancellation_does_not_interrupt_remediation(self) -> None:
        event = InstantEvent()
        event.set()
        actions = RecordingActions()
        watchdog = make_watchdog([False], actions=actions, event=event, remediation_pause=5.0)
        watchdog.tick()
        assert actions.calls == ["restart_dns", "restart_netmgr"]

    def test_failure_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        watchdog = make_watchdog([False])
        with caplog.at_level(logging.DEBUG, logger="netwatchdog"):
            watchdog.tick()
        assert "Network check failed" in caplog.text
        assert "Failed attempts: 1" in caplog.text

    def test_failure_logs_carry_failure_count(self, caplog: pytest.LogCaptureFixture) -> None:
        watchdog = make_watchdog([False, False])
        with caplog.at_level(logging.DEBUG, logger="netwatchdog"):
            watchdog.tick()
            watchdog.tick()
        failure_records = [
            r for r in caplog.records if r.getMessage().startswith(("Network check failed", "Failed attempts"))
        ]
        assert [(r.tick, r.failures) for r in failure_records] == [  # type: ignore[attr-defined]
            (1, 1),
            (1, 1),
            (2, 2),
            (2, 2),
        ]


class TestRunLoop:
    """Tests for the run() loop and cancellation."""

    def test_waits_current_interval_before_each_tick(self) -> None:
        event = InstantEvent(stop_after=4)
        watchdog = make_watchdog([False, False, True], event=event)
        watchdog.run()
        assert event.waits == [BASELINE, RETRY, RETRY, BASELINE]
        assert watchdog.ticks == 3
        assert watchdog.state is LoopState.STOPPED

    def test_cancelled_before_start_never_probes(self) -> None:
        event = threading.Event()
        event.set()
        watchdog = make_watchdog([True], event=event)
        watchdog.run()
        assert watchdog.prober.calls == 0  # type: ignore[attr-defined]
        assert watchdog.state is LoopState.STOPPED

    def test_cancel_while_sleeping_exits_promptly(self) -> None:
        watchdog = make_watchdog([True])
        thread = threading.Thread(target=watchdog.run, daemon=True)
        thread.start()
        # Interval is 15 minutes; the loop must wake on cancellation
        watchdog.request_stop()
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert watchdog.prober.calls == 0  # type: ignore[attr-defined]
        assert watchdog.state is LoopState.STOPPED

    def test_logs_start_and_stop(self, caplog: pytest.LogCaptureFixture) -> None:
        event = InstantEvent(stop_after=1)
        watchdog = make_watchdog([True], event=event)
        with caplog.at_level(logging.INFO, logger="netwatchdog"):
            watchdog.run()
        assert "Worker started" in caplog.text
        assert "Worker stopped" in caplog.text


class TestScenarios:
    """End-to-end scenarios through run()."""

    def test_single_failure_then_recovery(self) -> None:
        """baseline=15m, retry=5m, threshold=5: fail once, then recover."""
        config = make_config(interval=900, retry_interval=300, attempts_allowed=5)
        actions = RecordingActions()
        event = InstantEvent(stop_after=2)
        watchdog = Watchdog.from_config(
            config, prober=ScriptedProber([False, True]), actions=actions, cancel_event=event
        )

        watchdog.run()
        assert watchdog.failures == 1
        assert watchdog.interval == 300

        event.stop_after = None
        event.clear()
        report: TickReport = watchdog.tick()
        assert report.result.reachable
        assert watchdog.failures == 0
        assert watchdog.interval == 900
        assert actions.calls == ["restart_dns", "restart_netmgr"]
        assert actions.reboots == 0

    def test_threshold_three_always_down(self) -> None:
        config = make_config(attempts_allowed=3)
        actions = RecordingActions()
        event = InstantEvent(stop_after=4)
        watchdog = Watchdog.from_config(
            config, prober=ScriptedProber([False]), actions=actions, cancel_event=event
        )
        watchdog.run()
        assert watchdog.ticks == 3
        assert watchdog.failures == 3
        assert actions.reboots >= 1
        assert actions.calls[-1] == "reboot"
