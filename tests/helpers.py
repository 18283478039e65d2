"""Test helper functions for netwatchdog tests.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import make_config, make_transport

    def test_example():
        config = make_config(attempts_allowed=3)
        prober = ConnectivityProber(["https://a.example"], transport=make_transport({"https://a.example": 200}))
        # ... use in test ...
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from netwatchdog.config import Config, EscalationConfig, SystemConfig, WatchdogConfig


def make_config(
    interval: float = 900.0,
    retry_interval: float = 300.0,
    attempts_allowed: int = 5,
    addresses: tuple[str, ...] = ("https://a.example",),
    remediation_pause: float = 0.0,
    reboot_comparison: str = "inclusive",
    first_failure_continues: bool = True,
    **system: Any,
) -> Config:
    """Build a Config with test-friendly defaults (no remediation pause)."""
    return Config(
        watchdog=WatchdogConfig(
            interval=interval,
            retry_interval=retry_interval,
            attempts_allowed=attempts_allowed,
            addresses=addresses,
            remediation_pause=remediation_pause,
        ),
        escalation=EscalationConfig(
            reboot_comparison=reboot_comparison,
            first_failure_continues=first_failure_continues,
        ),
        system=SystemConfig(**system),
    )


def make_transport(
    routes: Mapping[str, int | Exception],
    calls: list[str] | None = None,
) -> httpx.MockTransport:
    """Build a MockTransport answering from a fixed routing table.

    Args:
        routes: Maps a URL (without trailing slash) to either a status code
            to answer with or an exception to raise. Unknown URLs raise
            ConnectError.
        calls: Optional list that receives every requested URL.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).rstrip("/")
        if calls is not None:
            calls.append(url)
        outcome = routes.get(url)
        if outcome is None:
            raise httpx.ConnectError("Name or service not known", request=request)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, request=request)

    return httpx.MockTransport(handler)
