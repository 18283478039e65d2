"""Shared pytest fixtures for netwatchdog tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import pytest

from netwatchdog.escalation import EscalationPolicy
from tests.mocks import InstantEvent, RecordingActions

# Unprefixed names still honoured by load_config
LEGACY_ENV_VARS = ("DEBUG", "INTERVAL", "RETRY_INTERVAL")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host environment from leaking into configuration tests."""
    for name in list(os.environ):
        if name.startswith("NETWATCHDOG_") or name in LEGACY_ENV_VARS:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Undo handler changes made by setup_logging()."""
    root = logging.getLogger()
    package_logger = logging.getLogger("netwatchdog")
    handlers = root.handlers[:]
    level = root.level
    package_level = package_logger.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    package_logger.setLevel(package_level)


@pytest.fixture
def actions() -> RecordingActions:
    return RecordingActions()


@pytest.fixture
def policy() -> EscalationPolicy:
    return EscalationPolicy(threshold=5)


@pytest.fixture
def instant_event() -> InstantEvent:
    return InstantEvent()
