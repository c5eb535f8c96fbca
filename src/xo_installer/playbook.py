from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .types import ActionSpec, HostConfig, Playbook

BUNDLED_PLAYBOOK = Path(__file__).parent / "data" / "xo-server.toml"

_ACTION_KEYS = {
    "name",
    "type",
    "args",
    "tags",
    "when",
    "register",
    "ignore_errors",
    "changed_when",
    "failed_when",
    "loop",
    "become",
    "block",
}


class PlaybookLoader:
    """Loads playbook definitions from TOML files."""

    def load(self, path: Path) -> Playbook:
        path = Path(path)
        try:
            data = tomllib.loads(path.read_text())
        except tomllib.TOMLDecodeError as exc:
            line = getattr(exc, "lineno", "?")
            col = getattr(exc, "colno", "?")
            raise ValueError(f"{path}:{line}:{col} {getattr(exc, 'msg', exc)}") from None
        playbook = self.parse(data, default_name=path.stem)
        playbook.base_dir = str(path.parent)
        self._attach_base_dir(playbook.actions, playbook.base_dir)
        return playbook

    def parse(self, data: dict[str, Any], *, default_name: str = "playbook") -> Playbook:
        host = self._parse_host(data.get("host", {}))
        variables = data.get("vars", {})
        if not isinstance(variables, dict):
            raise ValueError("vars must be a table")
        raw_tasks = data.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise ValueError("tasks must be an array of tables")
        actions = [
            self._parse_action(task, str(index)) for index, task in enumerate(raw_tasks, start=1)
        ]
        return Playbook(
            name=str(data.get("name", default_name)),
            host=host,
            actions=actions,
            variables=dict(variables),
        )

    @staticmethod
    def _parse_host(payload: Any) -> HostConfig:
        if not isinstance(payload, dict):
            raise ValueError("host must be a table")
        return HostConfig(
            name=str(payload.get("name", "localhost")),
            connection=str(payload.get("connection", "local")),
            variables=dict(payload.get("variables", {})),
        )

    def _parse_action(self, task: Any, action_index: str) -> ActionSpec:
        if not isinstance(task, dict):
            raise ValueError(f"Action {action_index} must be a table")
        unknown = set(task) - _ACTION_KEYS
        if unknown:
            raise ValueError(f"Action {action_index} has unknown keys: {', '.join(sorted(unknown))}")

        name = str(task.get("name", f"action-{action_index}"))
        raw_block = task.get("block")
        action_type = task.get("type")
        if raw_block is None and not action_type:
            raise ValueError(f"Action {action_index} ({name}) is missing a type")
        if raw_block is not None and action_type:
            raise ValueError(f"Action {action_index} ({name}) cannot have both a type and a block")

        args = task.get("args", {})
        if not isinstance(args, dict):
            raise ValueError(f"Action {action_index} ({name}) args must be a table")
        if raw_block is not None and args:
            raise ValueError(f"Action {action_index} ({name}) is a block and takes no args")

        tags = task.get("tags", [])
        if isinstance(tags, str):
            tags = [tags]
        block: list[ActionSpec] = []
        if raw_block is not None:
            if not isinstance(raw_block, list) or not raw_block:
                raise ValueError(f"Action {action_index} ({name}) block must be a non-empty array")
            block = [
                self._parse_action(child, f"{action_index}.{pos}")
                for pos, child in enumerate(raw_block, start=1)
            ]

        return ActionSpec(
            name=name,
            type=str(action_type) if action_type else None,
            data=dict(args),
            tags=[str(tag) for tag in tags],
            when=task.get("when"),
            register=str(task["register"]) if task.get("register") else None,
            ignore_errors=bool(task.get("ignore_errors", False)),
            changed_when=task.get("changed_when"),
            failed_when=task.get("failed_when"),
            loop=task.get("loop"),
            become=bool(task.get("become", False)),
            block=block,
        )

    @staticmethod
    def _attach_base_dir(actions: list[ActionSpec], base_dir: str) -> None:
        for action in actions:
            if action.block:
                PlaybookLoader._attach_base_dir(action.block, base_dir)
            else:
                action.data.setdefault("_base_dir", base_dir)
