from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
import grp
import pwd

from ..executors import Executor
from ..types import ActionResult, HostConfig


class Operation(ABC):
    """Shared surface for runnable provisioning actions."""

    def __init__(self, spec: dict[str, Any]):
        self.spec = spec

    @abstractmethod
    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        """Perform the operation against ``host`` using ``executor``."""

    def base_dir(self) -> Optional[Path]:
        raw = self.spec.get("_base_dir")
        return Path(str(raw)) if raw else None

    @staticmethod
    def coerce_bool(value: Any | None) -> bool | None:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"true", "yes", "on", "1"}:
                return True
            if lowered in {"false", "no", "off", "0"}:
                return False
            raise ValueError(f"Unable to interpret boolean value '{value}'")
        return bool(value)

    @staticmethod
    def parse_uid(value: Optional[object]) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, int):
            return value
        text = str(value).strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            try:
                return pwd.getpwnam(text).pw_uid
            except KeyError:
                raise ValueError(f"unknown user '{text}'") from None

    @staticmethod
    def parse_gid(value: Optional[object]) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, int):
            return value
        text = str(value).strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            try:
                return grp.getgrnam(text).gr_gid
            except KeyError:
                raise ValueError(f"unknown group '{text}'") from None


def merge_detail(detail: str, extra: str) -> str:
    if not detail or detail == "noop":
        return extra
    return f"{detail}, {extra}"


def apply_ownership(
    executor: Executor,
    path: Path,
    uid: Optional[int],
    gid: Optional[int],
    changed: bool,
    detail: str,
) -> tuple[bool, str]:
    if uid is None and gid is None:
        return changed, detail
    chown_changed, chown_detail = executor.set_ownership(path, uid=uid, gid=gid)
    if chown_changed:
        changed = True
        detail = merge_detail(detail, chown_detail)
    return changed, detail
