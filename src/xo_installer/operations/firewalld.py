from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .base import Operation
from ..executors import Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)


@dataclass
class FirewallCmd:
    executable: str = "firewall-cmd"

    def available(self, executor: Executor) -> bool:
        return executor.which(self.executable) is not None

    def _args(self, permanent: bool, *args: str) -> list[str]:
        command = [self.executable]
        if permanent:
            command.append("--permanent")
        command.extend(args)
        return command

    def query_service(self, executor: Executor, service: str, *, permanent: bool) -> bool:
        result = executor.run(
            self._args(permanent, f"--query-service={service}"), check=False, mutable=False
        )
        return result.returncode == 0

    def add_service(self, executor: Executor, service: str, *, permanent: bool) -> None:
        executor.run(self._args(permanent, f"--add-service={service}"))

    def remove_service(self, executor: Executor, service: str, *, permanent: bool) -> None:
        executor.run(self._args(permanent, f"--remove-service={service}"))


class FirewalldOperation(Operation):
    """Allow or deny a named firewalld service in the permanent and/or runtime config."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_service = spec.get("service")
        if not raw_service:
            raise ValueError("firewalld operation requires a service")
        self.service = str(raw_service)
        self.state = str(spec.get("state", "enabled"))
        if self.state not in {"enabled", "disabled"}:
            raise ValueError("firewalld state must be 'enabled' or 'disabled'")
        self.permanent = bool(self.coerce_bool(spec.get("permanent", False)))
        self.immediate = bool(self.coerce_bool(spec.get("immediate", False)))
        if not self.permanent and not self.immediate:
            # Without either flag only the runtime configuration is touched.
            self.immediate = True
        self.firewall = FirewallCmd()

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        if not self.firewall.available(executor):
            raise RuntimeError("firewall-cmd is not available on this host")

        want = self.state == "enabled"
        changes: list[str] = []
        scopes = []
        if self.permanent:
            scopes.append(("permanent", True))
        if self.immediate:
            scopes.append(("runtime", False))

        for label, permanent in scopes:
            present = self.firewall.query_service(executor, self.service, permanent=permanent)
            if present == want:
                continue
            logger.debug("firewalld %s %s service=%s", label, self.state, self.service)
            if want:
                self.firewall.add_service(executor, self.service, permanent=permanent)
            else:
                self.firewall.remove_service(executor, self.service, permanent=permanent)
            changes.append(f"{label}:{self.state}")

        changed = bool(changes)
        detail = ", ".join(changes) if changes else "noop"
        return ActionResult(
            host=host.name, action="firewalld", changed=changed, details=detail, resource=self.service
        )
