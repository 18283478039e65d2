"""Graceful shutdown handling for netwatchdog.

This module provides signal handling and shutdown coordination for:
- SIGINT (Ctrl+C) handling
- SIGTERM handling
- Waking the watchdog loop early through its cancellation event
"""

from __future__ import annotations

import signal
import threading
from types import FrameType

from netwatchdog.logging import get_logger

logger = get_logger(__name__)


class ShutdownHandler:
    """Turns termination signals into a one-shot cancellation event.

    The handler shares nothing with the watchdog loop except the event:
    it is set once and only ever read by the loop.
    """

    def __init__(self, cancel_event: threading.Event | None = None) -> None:
        """Initialize the shutdown handler.

        Args:
            cancel_event: Event to set when shutdown is requested. A new one
                is created if omitted.
        """
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self.cancel_event.is_set()

    def request_shutdown(self) -> None:
        """Request graceful shutdown.

        This method can be called programmatically to initiate shutdown,
        in addition to signal-based shutdown. Repeated calls are harmless.
        """
        if self.cancel_event.is_set():
            return
        logger.info("Shutdown signal received")
        self.cancel_event.set()

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM).

        Args:
            signum: The signal number received.
            frame: The current stack frame (unused).
        """
        signal_name = signal.Signals(signum).name
        logger.info("Received %s, initiating graceful shutdown...", signal_name)
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        """Install signal handlers for SIGINT and SIGTERM.

        After calling this method, SIGINT (Ctrl+C) and SIGTERM will
        trigger graceful shutdown instead of immediate termination.
        """
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")


def create_shutdown_handler(cancel_event: threading.Event | None = None) -> ShutdownHandler:
    """Create and configure a shutdown handler.

    This is a convenience factory function that creates a ShutdownHandler
    and installs signal handlers.

    Args:
        cancel_event: Event to set when shutdown is requested.

    Returns:
        Configured ShutdownHandler with signal handlers installed.
    """
    handler = ShutdownHandler(cancel_event)
    handler.install_signal_handlers()
    return handler


__all__ = [
    "ShutdownHandler",
    "create_shutdown_handler",
]
