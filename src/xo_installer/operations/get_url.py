from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, Optional

from .base import Operation, merge_detail
from ..executors import Executor
from ..modes import parse_mode
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)


class GetUrlOperation(Operation):
    """Download a URL to a path on the host with ``curl``."""

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        self.url = spec.get("url")
        if not self.url:
            raise ValueError("get_url requires a url")
        self.url = str(self.url)
        if not self.url.startswith(("http://", "https://", "ftp://", "file://")):
            raise ValueError(f"get_url does not understand url '{self.url}'")
        raw_dest = spec.get("dest")
        if not raw_dest:
            raise ValueError("get_url requires a dest")
        self.dest = Path(str(raw_dest))
        self.raw_mode = spec.get("mode")
        # Validate early; symbolic modes are resolved against the file later.
        parse_mode(self.raw_mode)
        self.force = bool(self.coerce_bool(spec.get("force", False)))
        self.timeout = spec.get("timeout")
        self.checksum_algo: Optional[str] = None
        self.checksum_value: Optional[str] = None
        checksum = spec.get("checksum")
        if checksum:
            text = str(checksum)
            if ":" in text:
                algo, value = text.split(":", 1)
                self.checksum_algo = algo.lower()
                self.checksum_value = value.strip().lower()
            else:
                self.checksum_algo = "sha256"
                self.checksum_value = text.strip().lower()
            if self.checksum_algo not in hashlib.algorithms_available:
                raise ValueError(f"unsupported checksum algorithm '{self.checksum_algo}'")

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        if executor.exists(self.dest) and not self.force:
            changed, detail = self._apply_mode(executor)
            return ActionResult(
                host=host.name,
                action="get_url",
                changed=changed,
                details=merge_detail("exists", detail) if changed else "noop",
                resource=str(self.dest),
            )

        partial = self.dest.with_name(self.dest.name + ".part")
        command = ["curl", "-fsSL", "--create-dirs", "-o", str(partial)]
        if self.timeout is not None:
            command.extend(["--max-time", str(self.timeout)])
        command.append(self.url)
        logger.debug("downloading %s -> %s", self.url, self.dest)
        try:
            executor.run(command)
            if executor.dry_run:
                return ActionResult(
                    host=host.name, action="get_url", changed=True, details="dry-run", resource=str(self.dest)
                )
            payload = partial.read_bytes()
            if self.checksum_algo and self.checksum_value:
                digest = hashlib.new(self.checksum_algo)
                digest.update(payload)
                if digest.hexdigest().lower() != self.checksum_value:
                    raise ValueError(f"Checksum mismatch for {self.url}")
            changed = True
            if self.dest.exists():
                changed = self.dest.read_bytes() != payload
            if changed:
                partial.replace(self.dest)
        finally:
            executor.remove_path(partial)

        detail = "downloaded" if changed else "noop"
        mode_changed, mode_detail = self._apply_mode(executor)
        if mode_changed:
            changed = True
            detail = merge_detail(detail, mode_detail)
        return ActionResult(
            host=host.name, action="get_url", changed=changed, details=detail, resource=str(self.dest)
        )

    def _apply_mode(self, executor: Executor) -> tuple[bool, str]:
        if self.raw_mode is None:
            return False, "noop"
        mode = parse_mode(self.raw_mode, executor.file_mode(self.dest))
        if mode is None or not executor.set_mode(self.dest, mode):
            return False, "noop"
        return True, f"mode->{mode:04o}"
