from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

from .base import Operation
from ..executors import Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)


class LineInFileOperation(Operation):
    """Ensure a single line is present in (or absent from) a text file.

    With ``regexp`` the last matching line is replaced by ``line``; when
    nothing matches and ``line`` is not already in the file it is appended.
    The regexp should match ``line`` itself so that a second run is a no-op.
    """

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_path = spec.get("path") or spec.get("dest")
        if not raw_path:
            raise ValueError("lineinfile operation requires a path")
        self.path = Path(str(raw_path))
        self.state = str(spec.get("state", "present"))
        if self.state not in {"present", "absent"}:
            raise ValueError("lineinfile state must be 'present' or 'absent'")
        raw_regexp = spec.get("regexp")
        try:
            self.regexp: Optional[re.Pattern[str]] = re.compile(str(raw_regexp)) if raw_regexp else None
        except re.error as exc:
            raise ValueError(f"invalid lineinfile regexp '{raw_regexp}': {exc}") from exc
        raw_line = spec.get("line")
        self.line = None if raw_line is None else str(raw_line)
        if self.state == "present" and self.line is None:
            raise ValueError("lineinfile requires a line when state=present")
        if self.state == "absent" and self.line is None and self.regexp is None:
            raise ValueError("lineinfile requires a line or regexp when state=absent")
        if self.line is not None and "\n" in self.line:
            raise ValueError("lineinfile line must not contain a newline")
        self.create = bool(self.coerce_bool(spec.get("create", False)))

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        current = executor.read_file(self.path)
        if current is None:
            if self.state == "absent":
                return ActionResult(
                    host=host.name, action="lineinfile", changed=False, details="noop", resource=str(self.path)
                )
            if not self.create:
                raise FileNotFoundError(f"{self.path} does not exist")
            current = ""

        lines = current.splitlines(keepends=True)
        if self.state == "present":
            new_lines, detail = self._ensure_present(lines)
        else:
            new_lines, detail = self._ensure_absent(lines)

        content = "".join(new_lines)
        if content == current and executor.exists(self.path):
            return ActionResult(
                host=host.name, action="lineinfile", changed=False, details="noop", resource=str(self.path)
            )
        logger.debug("lineinfile path=%s %s", self.path, detail)
        executor.write_file(self.path, content=content, mode=None)
        return ActionResult(
            host=host.name, action="lineinfile", changed=True, details=detail, resource=str(self.path)
        )

    def _matches(self, text: str) -> bool:
        if self.regexp is not None:
            return self.regexp.search(text) is not None
        return text == self.line

    def _ensure_present(self, lines: list[str]) -> tuple[list[str], str]:
        assert self.line is not None
        stripped = [entry.rstrip("\r\n") for entry in lines]
        matches = [idx for idx, text in enumerate(stripped) if self._matches(text)]
        if matches:
            idx = matches[-1]
            if stripped[idx] == self.line:
                return lines, "noop"
            ending = lines[idx][len(stripped[idx]):] or "\n"
            updated = list(lines)
            updated[idx] = self.line + ending
            return updated, "line replaced"
        if self.line in stripped:
            return lines, "noop"
        updated = list(lines)
        if updated and not updated[-1].endswith("\n"):
            updated[-1] = updated[-1] + "\n"
        updated.append(self.line + "\n")
        return updated, "line added"

    def _ensure_absent(self, lines: list[str]) -> tuple[list[str], str]:
        kept = [entry for entry in lines if not self._matches(entry.rstrip("\r\n"))]
        removed = len(lines) - len(kept)
        if not removed:
            return lines, "noop"
        return kept, f"{removed} line(s) removed"
