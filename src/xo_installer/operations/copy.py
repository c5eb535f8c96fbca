from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from .base import Operation, apply_ownership
from ..executors import Executor
from ..modes import parse_mode
from ..types import ActionResult, HostConfig


class CopyOperation(Operation):
    """Copy a file (or inline ``content``) to ``dest``."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_dest = spec.get("dest")
        if not raw_dest:
            raise ValueError("copy operation requires a dest")
        self.dest = Path(str(raw_dest))
        self.src = Path(str(spec["src"])) if spec.get("src") else None
        self.content = spec.get("content")
        if self.src is None and self.content is None:
            raise ValueError("copy operation requires src or content")
        if self.src is not None and self.content is not None:
            raise ValueError("copy operation accepts src or content, not both")
        self.remote_src = bool(self.coerce_bool(spec.get("remote_src", False)))
        self.force = bool(self.coerce_bool(spec.get("force", True)))
        self.raw_mode = spec.get("mode")
        parse_mode(self.raw_mode)
        self.owner_uid = self.parse_uid(spec.get("owner"))
        self.group_gid = self.parse_gid(spec.get("group"))

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        dest = self._destination()
        mode = parse_mode(self.raw_mode, executor.file_mode(dest))
        if not self.force and executor.exists(dest):
            # Only attributes are managed once the destination exists.
            changed, detail = False, "noop"
            if mode is not None and executor.set_mode(dest, mode):
                changed, detail = True, f"mode->{mode:04o}"
        else:
            content = self._source_content(executor)
            changed, detail = executor.write_file(dest, content=content, mode=mode)
        changed, detail = apply_ownership(executor, dest, self.owner_uid, self.group_gid, changed, detail)
        return ActionResult(host=host.name, action="copy", changed=changed, details=detail, resource=str(dest))

    def _destination(self) -> Path:
        if self.src is not None and self.dest.is_dir():
            return self.dest / self.src.name
        return self.dest

    def _source_content(self, executor: Executor) -> str:
        if self.content is not None:
            return str(self.content)
        assert self.src is not None
        if self.remote_src:
            text: Optional[str] = executor.read_file(self.src)
        else:
            source = self.src
            base_dir = self.base_dir()
            if not source.is_absolute() and base_dir is not None:
                source = base_dir / source
            text = source.read_text() if source.exists() else None
        if text is None:
            raise FileNotFoundError(f"Source {self.src} not found")
        return text
