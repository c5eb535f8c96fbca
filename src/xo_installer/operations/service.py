from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .base import Operation
from ..executors import Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)

_STATE_ALIASES = {"running": "started"}


@dataclass
class SystemCtl:
    executable: str = "systemctl"

    def available(self, executor: Executor) -> bool:
        return executor.which(self.executable) is not None

    def daemon_reload(self, executor: Executor) -> None:
        executor.run([self.executable, "daemon-reload"])

    def is_enabled(self, executor: Executor, service: str) -> bool:
        result = executor.run([self.executable, "is-enabled", service], check=False, mutable=False)
        return result.returncode == 0

    def is_active(self, executor: Executor, service: str) -> bool:
        result = executor.run([self.executable, "is-active", service], check=False, mutable=False)
        return result.returncode == 0

    def enable(self, executor: Executor, service: str) -> None:
        executor.run([self.executable, "enable", service])

    def disable(self, executor: Executor, service: str) -> None:
        executor.run([self.executable, "disable", service])

    def start(self, executor: Executor, service: str) -> None:
        executor.run([self.executable, "start", service])

    def stop(self, executor: Executor, service: str) -> None:
        executor.run([self.executable, "stop", service])

    def restart(self, executor: Executor, service: str) -> None:
        executor.run([self.executable, "restart", service])


class ServiceOperation(Operation):
    """Manage systemd services."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_name = spec.get("name")
        if not raw_name:
            raise ValueError("service operation requires a name")
        self.name = str(raw_name)
        self._enabled = self.coerce_bool(spec.get("enabled"))
        state = spec.get("state")
        self._state = _STATE_ALIASES.get(state, state) if isinstance(state, str) else state
        if self._state not in {None, "started", "stopped", "restarted"}:
            raise ValueError("service state must be 'started', 'stopped' or 'restarted'")
        self.daemon_reload = bool(self.coerce_bool(spec.get("daemon_reload", False)))
        self.systemctl = SystemCtl()

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        if not self.systemctl.available(executor):
            raise RuntimeError("systemctl is not available on this host")

        if self.daemon_reload:
            # A unit cache refresh is not a change of the service itself.
            logger.debug("Reloading systemd units before managing %s", self.name)
            self.systemctl.daemon_reload(executor)

        changes: list[str] = []

        if self._enabled is not None:
            should_enable = bool(self._enabled)
            enabled = self.systemctl.is_enabled(executor, self.name)
            if should_enable and not enabled:
                logger.debug("Enabling service %s", self.name)
                if not executor.dry_run:
                    self.systemctl.enable(executor, self.name)
                changes.append("enabled")
            elif not should_enable and enabled:
                logger.debug("Disabling service %s", self.name)
                if not executor.dry_run:
                    self.systemctl.disable(executor, self.name)
                changes.append("disabled")

        if self._state == "restarted":
            logger.debug("Restarting service %s", self.name)
            if not executor.dry_run:
                self.systemctl.restart(executor, self.name)
            changes.append("restarted")
        elif self._state is not None:
            active = self.systemctl.is_active(executor, self.name)
            if self._state == "started" and not active:
                logger.debug("Starting service %s", self.name)
                if not executor.dry_run:
                    self.systemctl.start(executor, self.name)
                changes.append("started")
            elif self._state == "stopped" and active:
                logger.debug("Stopping service %s", self.name)
                if not executor.dry_run:
                    self.systemctl.stop(executor, self.name)
                changes.append("stopped")

        changed = bool(changes)
        detail = ", ".join(changes) if changes else "noop"
        return ActionResult(
            host=host.name, action="service", changed=changed, details=detail, resource=self.name
        )
