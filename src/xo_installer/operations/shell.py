from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, Sequence
import logging
import shlex

from .base import Operation
from ..executors import CommandResult, Executor
from ..types import ActionResult, HostConfig

logger = logging.getLogger(__name__)


class CommandOperation(Operation):
    """Run a program directly, without a shell.

    Raw commands cannot tell whether they changed anything, so a run that
    happens always reports ``changed``; playbooks refine that with
    ``changed_when``/``failed_when``. ``creates``/``removes`` are the only
    built-in guards.
    """

    action = "command"

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_command = spec.get("cmd") or spec.get("command")
        if not raw_command:
            raise ValueError(f"{self.action} operation requires a cmd")
        self.raw_command = raw_command

        self.chdir = Path(str(spec["chdir"])) if spec.get("chdir") else None
        self.creates = Path(str(spec["creates"])) if spec.get("creates") else None
        self.removes = Path(str(spec["removes"])) if spec.get("removes") else None
        self.env = self._normalize_env(spec.get("env") or spec.get("environment"))
        self.timeout = self._normalize_timeout(spec.get("timeout"))

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        command = self.build_command()

        if self.creates:
            creates_path = self._resolve_path(self.creates)
            if executor.exists(creates_path):
                detail = f"skipped (creates {creates_path})"
                return ActionResult(host=host.name, action=self.action, changed=False, details=detail)

        if self.removes:
            removes_path = self._resolve_path(self.removes)
            if not executor.exists(removes_path):
                detail = f"skipped (removes {removes_path})"
                return ActionResult(host=host.name, action=self.action, changed=False, details=detail)

        result = executor.run(
            command,
            check=False,
            mutable=True,
            env=self.env,
            cwd=self.chdir,
            timeout=self.timeout,
        )

        failed = result.returncode != 0
        if failed:
            logger.debug(
                "%s failed rc=%s cmd=%s", self.action, result.returncode, self._format_command(command)
            )
            detail = self._error_detail(result)
        else:
            detail = "dry-run" if executor.dry_run else f"ran (rc={result.returncode})"
        return ActionResult(
            host=host.name,
            action=self.action,
            changed=not failed,
            details=detail,
            failed=failed,
            rc=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def build_command(self) -> list[str]:
        if isinstance(self.raw_command, str):
            return shlex.split(self.raw_command)
        if isinstance(self.raw_command, Sequence):
            return [str(v) for v in self.raw_command]
        raise ValueError(f"{self.action} cmd must be a string or list")

    def _resolve_path(self, path: Path) -> Path:
        if path.is_absolute() or self.chdir is None:
            return path
        return self.chdir / path

    @staticmethod
    def _format_command(command: Sequence[str]) -> str:
        return " ".join(command)

    @staticmethod
    def _normalize_env(value: Any) -> Optional[dict[str, str]]:
        if value is None:
            return None
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            env: dict[str, str] = {}
            for item in value:
                key, sep, val = str(item).partition("=")
                if not sep:
                    raise ValueError("env list entries must be KEY=VALUE")
                env[key] = val
            return env
        raise ValueError("env must be a mapping or list of KEY=VALUE strings")

    @staticmethod
    def _normalize_timeout(value: Any) -> Optional[float]:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be numeric") from exc

    @staticmethod
    def _error_detail(result: CommandResult) -> str:
        message = CommandOperation._summarize_output(result)
        prefix = f"rc={result.returncode}"
        if message:
            return f"{prefix}: {message}"
        return prefix

    @staticmethod
    def _summarize_output(result: CommandResult) -> Optional[str]:
        for text in (result.stderr, result.stdout):
            if not text:
                continue
            stripped = text.strip()
            if not stripped:
                continue
            line = stripped.splitlines()[0]
            return (line[:157] + "...") if len(line) > 160 else line
        return None


class ShellOperation(CommandOperation):
    """Run a command string through ``executable`` (``/bin/sh`` by default)."""

    action = "shell"

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        if not isinstance(self.raw_command, str):
            raise ValueError("shell cmd must be a string")
        self.executable = str(spec.get("executable") or "/bin/sh")

    def build_command(self) -> list[str]:
        return [self.executable, "-c", self.raw_command]
