from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union
import os
import shutil
import stat
import subprocess

from .types import HostConfig


@dataclass
class CommandResult:
    command: list[str]
    stdout: str
    stderr: str
    returncode: int


class Executor:
    """Capability interface over the target host's live state.

    Operations never touch the host directly: every query (is this binary on
    PATH, what does this file contain) and every mutation goes through here so
    a fake executor can stand in for the real host.
    """

    def __init__(self, host: HostConfig, *, dry_run: bool = False):
        self.host = host
        self.dry_run = dry_run

    def run(
        self,
        command: Sequence[str],
        *,
        check: bool = True,
        mutable: bool = True,
        env: Optional[dict[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``command`` and optionally skip it during dry-runs."""

        cmd_list = list(command)
        if self.dry_run and mutable:
            return CommandResult(cmd_list, "", "skipped (dry-run)", 0)

        exec_env = None
        if env:
            exec_env = os.environ.copy()
            exec_env.update(env)

        proc = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            check=False,
            env=exec_env,
            cwd=str(cwd) if cwd is not None else None,
            timeout=timeout,
        )
        if check and proc.returncode != 0:
            raise subprocess.CalledProcessError(
                proc.returncode,
                cmd_list,
                proc.stdout,
                proc.stderr,
            )
        return CommandResult(cmd_list, proc.stdout, proc.stderr, proc.returncode)

    def which(self, binary: str) -> Optional[str]:
        return shutil.which(binary)

    # File primitives -----------------------------------------------------
    def exists(self, path: Path) -> bool:
        raise NotImplementedError

    def read_file(self, path: Path) -> Optional[str]:
        raise NotImplementedError

    def write_file(self, path: Path, *, content: str, mode: Optional[int]) -> tuple[bool, str]:
        raise NotImplementedError

    def ensure_directory(self, path: Path, *, mode: Optional[int]) -> tuple[bool, str]:
        raise NotImplementedError

    def set_mode(self, path: Path, mode: int) -> bool:
        raise NotImplementedError

    def set_ownership(
        self, path: Path, *, uid: Optional[int], gid: Optional[int]
    ) -> tuple[bool, str]:
        raise NotImplementedError

    def remove_path(self, path: Path) -> bool:
        raise NotImplementedError

    def file_mode(self, path: Path) -> Optional[int]:
        raise NotImplementedError


class LocalExecutor(Executor):
    """Executor that acts directly on the local host."""

    def exists(self, path: Path) -> bool:
        return path.exists() or path.is_symlink()

    def read_file(self, path: Path) -> Optional[str]:
        try:
            return path.read_text()
        except FileNotFoundError:
            return None

    def write_file(self, path: Path, *, content: str, mode: Optional[int]) -> tuple[bool, str]:
        current = self.read_file(path)
        changed = False
        reasons: list[str] = []

        if current != content:
            changed = True
            reasons.append("content" if current is not None else "created")
            if not self.dry_run:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content)

        if mode is not None and self.set_mode(path, mode):
            changed = True
            reasons.append(f"mode->{mode:04o}")
        detail = ", ".join(reasons) if reasons else "noop"
        return changed, detail

    def ensure_directory(self, path: Path, *, mode: Optional[int]) -> tuple[bool, str]:
        changed = False
        reasons: list[str] = []

        if not path.exists():
            changed = True
            reasons.append("created")
            if not self.dry_run:
                path.mkdir(parents=True, exist_ok=True)
        elif not path.is_dir():
            changed = True
            reasons.append("replaced-non-dir")
            if not self.dry_run:
                self.remove_path(path)
                path.mkdir(parents=True, exist_ok=True)

        if mode is not None and self.set_mode(path, mode):
            changed = True
            reasons.append(f"mode->{mode:04o}")
        detail = ", ".join(reasons) if reasons else "noop"
        return changed, detail

    def set_mode(self, path: Path, mode: int) -> bool:
        existing_mode = self.file_mode(path)
        if existing_mode == mode:
            return False
        # ``chmod`` fails if the path is absent (dry-run), so guard it.
        if not self.dry_run and path.exists():
            os.chmod(path, mode)
        return True

    def set_ownership(
        self, path: Path, *, uid: Optional[int], gid: Optional[int]
    ) -> tuple[bool, str]:
        try:
            current = path.stat()
        except FileNotFoundError:
            if self.dry_run:
                return False, "noop"
            raise
        reasons: list[str] = []
        new_uid = -1
        new_gid = -1
        if uid is not None and current.st_uid != uid:
            new_uid = uid
            reasons.append(f"owner->{uid}")
        if gid is not None and current.st_gid != gid:
            new_gid = gid
            reasons.append(f"group->{gid}")
        if not reasons:
            return False, "noop"
        if not self.dry_run:
            os.chown(path, new_uid, new_gid)
        return True, ", ".join(reasons)

    def remove_path(self, path: Path) -> bool:
        if not self.exists(path):
            return False
        if self.dry_run:
            return True
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        return True

    def file_mode(self, path: Path) -> Optional[int]:
        try:
            return stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            return None
