"""Operating system remediation actions.

The watchdog never talks to the init system directly. It is handed an object
implementing :class:`SystemActions`, which keeps the escalation logic
portable and lets tests substitute a recording fake.

The default implementation, :class:`SystemdActions`, drives ``systemctl``:

- name-resolution remediation restarts ``systemd-resolved``
- network remediation restarts ``NetworkManager``
- reboot flushes filesystem buffers and asks systemd to reboot

Every action reports success or failure through :class:`ActionResult` and
never raises.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from netwatchdog.logging import get_logger

if TYPE_CHECKING:
    from netwatchdog.config import Config

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a remediation action.

    Attributes:
        action: Name of the action that ran.
        ok: Whether the action reported success.
        detail: Error text or command output worth logging.
    """

    action: str
    ok: bool
    detail: str = ""

    @classmethod
    def success(cls, action: str, detail: str = "") -> ActionResult:
        return cls(action=action, ok=True, detail=detail)

    @classmethod
    def failure(cls, action: str, detail: str) -> ActionResult:
        return cls(action=action, ok=False, detail=detail)


@runtime_checkable
class SystemActions(Protocol):
    """Side-effecting remediation capabilities used by the watchdog.

    Implementations must not raise: failures are reported through the
    returned :class:`ActionResult`.
    """

    def restart_name_resolution_service(self) -> ActionResult:
        """Restart the DNS resolver service."""
        ...

    def restart_network_manager_service(self) -> ActionResult:
        """Restart the network management service."""
        ...

    def reboot_system(self) -> ActionResult:
        """Reboot the host."""
        ...


class SystemdActions:
    """Remediation actions backed by ``systemctl``.

    Attributes:
        dns_service: Unit restarted for name-resolution remediation.
        network_service: Unit restarted for network remediation.
        command_timeout: Timeout in seconds for each ``systemctl`` call.
        dry_run: When True, actions are logged and reported as successful
            without executing anything.
    """

    SYSTEMCTL = "systemctl"

    def __init__(
        self,
        dns_service: str = "systemd-resolved",
        network_service: str = "NetworkManager",
        command_timeout: float = 60.0,
        dry_run: bool = False,
    ) -> None:
        self.dns_service = dns_service
        self.network_service = network_service
        self.command_timeout = command_timeout
        self.dry_run = dry_run

    @classmethod
    def from_config(cls, config: Config) -> SystemdActions:
        """Create actions from application Config."""
        return cls(
            dns_service=config.system.dns_service,
            network_service=config.system.network_service,
            command_timeout=config.system.command_timeout,
            dry_run=config.system.dry_run,
        )

    def restart_name_resolution_service(self) -> ActionResult:
        return self._run("restart_dns", [self.SYSTEMCTL, "restart", self.dns_service])

    def restart_network_manager_service(self) -> ActionResult:
        return self._run("restart_netmgr", [self.SYSTEMCTL, "restart", self.network_service])

    def reboot_system(self) -> ActionResult:
        """Flush filesystem buffers, then reboot through systemd."""
        logger.warning("!!! REBOOT CALLED !!!")
        if not self.dry_run:
            os.sync()
        return self._run("reboot", [self.SYSTEMCTL, "reboot"])

    def _run(self, action: str, cmd: Sequence[str]) -> ActionResult:
        """Run a command, converting every failure mode into an ActionResult."""
        if self.dry_run:
            logger.info("Dry run, not executing: %s", " ".join(cmd), extra={"action": action})
            return ActionResult.success(action, "dry run")

        logger.debug("Running command: %s", " ".join(cmd), extra={"action": action})
        try:
            result = subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired:
            return ActionResult.failure(
                action, f"{' '.join(cmd)} timed out after {self.command_timeout}s"
            )
        except OSError as e:
            # Missing binary, permission denied, etc.
            return ActionResult.failure(action, f"{cmd[0]} could not be started: {e}")

        if result.returncode != 0:
            error_msg = result.stderr.strip() or f"Exit code: {result.returncode}"
            return ActionResult.failure(action, error_msg)
        return ActionResult.success(action, result.stdout.strip())
