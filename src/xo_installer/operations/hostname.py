from __future__ import annotations

import logging
from typing import Any

from .base import Operation
from ..executors import Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)


class HostnameOperation(Operation):
    """Set the static hostname, preferring ``hostnamectl`` when present."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_name = spec.get("name")
        if not raw_name:
            raise ValueError("hostname operation requires a name")
        self.name = str(raw_name).strip()

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        use_hostnamectl = executor.which("hostnamectl") is not None
        current = self._current(executor, use_hostnamectl)
        if current == self.name:
            return ActionResult(host=host.name, action="hostname", changed=False, details="noop")

        logger.debug("hostname %s -> %s", current, self.name)
        if use_hostnamectl:
            executor.run(["hostnamectl", "set-hostname", self.name])
        else:
            executor.run(["hostname", self.name])
        detail = f"{current or '?'}->{self.name}"
        return ActionResult(host=host.name, action="hostname", changed=True, details=detail)

    @staticmethod
    def _current(executor: Executor, use_hostnamectl: bool) -> str:
        command = ["hostnamectl", "--static"] if use_hostnamectl else ["hostname"]
        result = executor.run(command, check=False, mutable=False)
        if result.returncode != 0:
            return ""
        return result.stdout.strip()
