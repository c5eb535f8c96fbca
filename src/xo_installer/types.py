from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class HostConfig:
    name: str
    connection: str = "local"
    variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionSpec:
    name: str
    type: Optional[str]
    data: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    when: Optional[str] = None
    register: Optional[str] = None
    ignore_errors: bool = False
    changed_when: Optional[Any] = None
    failed_when: Optional[Any] = None
    loop: Optional[Any] = None
    become: bool = False
    block: list["ActionSpec"] = field(default_factory=list)


@dataclass
class Playbook:
    name: str
    host: HostConfig
    actions: list[ActionSpec]
    variables: dict[str, Any] = field(default_factory=dict)
    base_dir: Optional[str] = None


@dataclass
class ActionResult:
    host: str
    action: str
    changed: bool
    details: str
    failed: bool = False
    resource: Optional[str] = None
    name: Optional[str] = None
    skipped: bool = False
    ignored: bool = False
    rc: Optional[int] = None
    stdout: str = ""
    stderr: str = ""

    def as_registered(self) -> dict[str, Any]:
        """Outcome as exposed to later ``when`` guards and templates."""

        return {
            "changed": self.changed,
            "failed": self.failed,
            "skipped": self.skipped,
            "rc": self.rc,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "stdout_lines": self.stdout.splitlines(),
            "stderr_lines": self.stderr.splitlines(),
            "details": self.details,
        }
