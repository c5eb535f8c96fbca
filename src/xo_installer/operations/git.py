from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

from .base import Operation
from ..executors import Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)

_SHA_RE = re.compile(r"^[0-9a-f]{7,40}$")


class GitOperation(Operation):
    """Clone a repository into ``dest``.

    An existing checkout is left alone unless ``update`` is set, in which case
    it is fetched and hard-reset to ``version``.
    """

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        repo = spec.get("repo")
        if not repo:
            raise ValueError("git operation requires a repo")
        self.repo = str(repo)
        raw_dest = spec.get("dest")
        if not raw_dest:
            raise ValueError("git operation requires a dest")
        self.dest = Path(str(raw_dest))
        self.version = str(spec.get("version") or "HEAD")
        self.single_branch = bool(self.coerce_bool(spec.get("single_branch", False)))
        depth = spec.get("depth")
        self.depth: Optional[int] = int(depth) if depth is not None else None
        if self.depth is not None and self.depth < 1:
            raise ValueError("git depth must be a positive integer")
        self.update = bool(self.coerce_bool(spec.get("update", False)))

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        if executor.exists(self.dest / ".git"):
            if not self.update:
                return ActionResult(
                    host=host.name, action="git", changed=False, details="noop", resource=str(self.dest)
                )
            return self._update(host, executor)

        if self.dest.is_dir() and any(self.dest.iterdir()):
            raise RuntimeError(f"{self.dest} exists, is not empty and is not a git checkout")

        logger.info("Cloning %s into %s", self.repo, self.dest)
        executor.run(self._clone_command())
        if self._is_commit():
            executor.run(["git", "-C", str(self.dest), "checkout", "--force", self.version])
        detail = "dry-run" if executor.dry_run else f"cloned {self.version}"
        return ActionResult(host=host.name, action="git", changed=True, details=detail, resource=str(self.dest))

    def _clone_command(self) -> list[str]:
        command = ["git", "clone"]
        if self.single_branch:
            command.append("--single-branch")
        if self.depth is not None:
            command.extend(["--depth", str(self.depth)])
        if self.version != "HEAD" and not self._is_commit():
            command.extend(["--branch", self.version])
        command.extend([self.repo, str(self.dest)])
        return command

    def _update(self, host: HostConfig, executor: Executor) -> ActionResult:
        before = self._rev_parse(executor, "HEAD")
        refspec = [] if self.version == "HEAD" else [self.version]
        executor.run(["git", "-C", str(self.dest), "fetch", "--prune", "origin", *refspec], mutable=False)
        target = self.version if self._is_commit() else "FETCH_HEAD"
        after = self._rev_parse(executor, target)
        if before and before == after:
            return ActionResult(host=host.name, action="git", changed=False, details="noop", resource=str(self.dest))
        logger.info("Resetting %s to %s", self.dest, self.version)
        executor.run(["git", "-C", str(self.dest), "reset", "--hard", target])
        detail = f"{(before or '?')[:8]}->{(after or '?')[:8]}"
        return ActionResult(host=host.name, action="git", changed=True, details=detail, resource=str(self.dest))

    def _rev_parse(self, executor: Executor, ref: str) -> Optional[str]:
        result = executor.run(
            ["git", "-C", str(self.dest), "rev-parse", ref], check=False, mutable=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _is_commit(self) -> bool:
        return bool(_SHA_RE.match(self.version))
