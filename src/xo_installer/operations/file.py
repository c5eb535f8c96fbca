from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from .base import Operation, apply_ownership
from ..executors import Executor
from ..modes import parse_mode
from ..types import ActionResult, HostConfig


class FileOperation(Operation):
    """Ensure a path is a directory, an existing file, or absent."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_path = spec.get("path") or spec.get("dest")
        if not raw_path:
            raise ValueError("file operation requires a path")
        self.path = Path(str(raw_path))
        self.state = str(spec.get("state", "file"))
        if self.state not in {"file", "directory", "absent", "touch"}:
            raise ValueError("file operation state must be 'file', 'directory', 'absent', or 'touch'")
        self.raw_mode = spec.get("mode")
        parse_mode(self.raw_mode)
        self.owner_uid = self.parse_uid(spec.get("owner"))
        self.group_gid = self.parse_gid(spec.get("group"))

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        if self.state == "absent":
            removed = executor.remove_path(self.path)
            detail = "removed" if removed else "noop"
            return ActionResult(
                host=host.name, action="file", changed=removed, details=detail, resource=str(self.path)
            )

        mode = self._mode(executor)
        if self.state == "directory":
            changed, detail = executor.ensure_directory(self.path, mode=mode)
        elif self.state == "touch":
            if executor.exists(self.path):
                changed, detail = False, "noop"
                if mode is not None and executor.set_mode(self.path, mode):
                    changed, detail = True, f"mode->{mode:04o}"
            else:
                changed, detail = executor.write_file(self.path, content="", mode=mode)
        else:
            if not executor.exists(self.path):
                raise FileNotFoundError(f"{self.path} does not exist (use state=touch to create it)")
            changed, detail = False, "noop"
            if mode is not None and executor.set_mode(self.path, mode):
                changed, detail = True, f"mode->{mode:04o}"

        changed, detail = apply_ownership(
            executor, self.path, self.owner_uid, self.group_gid, changed, detail
        )
        return ActionResult(
            host=host.name, action="file", changed=changed, details=detail, resource=str(self.path)
        )

    def _mode(self, executor: Executor) -> Optional[int]:
        return parse_mode(self.raw_mode, executor.file_mode(self.path))
