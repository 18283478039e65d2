"""Dependency Injection container for netwatchdog.

This module wires the watchdog together using the dependency-injector
library:

- config: the immutable application Config
- cancel_event: the one-shot cancellation token shared with the signal handler
- prober: ConnectivityProber over the configured endpoints
- actions: SystemActions implementation (systemd by default)
- watchdog: the Watchdog state machine built from the above

Usage:
    # Production setup
    container = create_container(config)
    watchdog = container.watchdog()

    # Test setup with fakes
    container = create_container(config)
    container.actions.override(providers.Object(RecordingActions()))
    watchdog = container.watchdog()
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from dependency_injector import containers, providers

if TYPE_CHECKING:
    from netwatchdog.config import Config
    from netwatchdog.prober import ConnectivityProber
    from netwatchdog.system_actions import SystemActions
    from netwatchdog.watchdog import Prober, Watchdog


class WatchdogContainer(containers.DeclarativeContainer):
    """Main dependency injection container for the watchdog.

    WatchdogContainer
    ├── config (Config)
    ├── cancel_event (threading.Event)
    ├── prober (ConnectivityProber)
    ├── actions (SystemActions)
    └── watchdog (Watchdog)
    """

    config: providers.Dependency[Config] = providers.Dependency()

    cancel_event = providers.Singleton(threading.Event)

    # Using Dependency() makes it explicit these must be provided at container creation
    prober: providers.Dependency[Prober] = providers.Dependency()
    actions: providers.Dependency[SystemActions] = providers.Dependency()
    watchdog: providers.Dependency[Watchdog] = providers.Dependency()


def create_prober(config: Config) -> ConnectivityProber:
    """Create the HTTP connectivity prober.

    Args:
        config: Application configuration.

    Returns:
        ConnectivityProber over the configured endpoints.
    """
    from netwatchdog.prober import ConnectivityProber

    return ConnectivityProber.from_config(config)


def create_system_actions(config: Config) -> SystemActions:
    """Create the systemd-backed remediation actions.

    Args:
        config: Application configuration.

    Returns:
        SystemdActions configured from config.
    """
    from netwatchdog.system_actions import SystemdActions

    return SystemdActions.from_config(config)


def create_watchdog(
    config: Config,
    prober: Prober,
    actions: SystemActions,
    cancel_event: threading.Event,
) -> Watchdog:
    """Create a Watchdog instance with all dependencies.

    Args:
        config: Application configuration.
        prober: Connectivity prober.
        actions: Remediation actions.
        cancel_event: Cancellation token observed by the loop.

    Returns:
        Configured Watchdog instance.
    """
    from netwatchdog.watchdog import Watchdog

    return Watchdog.from_config(config, prober=prober, actions=actions, cancel_event=cancel_event)


def create_container(config: Config | None = None) -> WatchdogContainer:
    """Create and configure the main DI container.

    Args:
        config: Optional configuration. If not provided, loads from environment.

    Returns:
        Fully configured WatchdogContainer ready for use.
    """
    from netwatchdog.config import load_config

    if config is None:
        config = load_config()

    container = WatchdogContainer()
    container.config.override(providers.Object(config))

    container.prober.override(providers.Singleton(create_prober, config))
    container.actions.override(providers.Singleton(create_system_actions, config))

    container.watchdog.override(
        providers.Singleton(
            create_watchdog,
            config=container.config,
            prober=container.prober,
            actions=container.actions,
            cancel_event=container.cancel_event,
        )
    )

    return container


__all__ = [
    "WatchdogContainer",
    "create_container",
    "create_prober",
    "create_system_actions",
    "create_watchdog",
]
