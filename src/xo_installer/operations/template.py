from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2

from .base import Operation, apply_ownership
from ..executors import Executor
from ..modes import parse_mode
from ..templating import TemplateError, build_environment
from ..types import ActionResult, HostConfig


class TemplateOperation(Operation):
    """Render a Jinja2 template to ``dest``.

    Relative ``src`` paths are looked up in ``templates/`` next to the
    playbook, then next to the playbook itself.
    """

    def __init__(self, spec: dict[str, Any]):
        super().__init__(spec)
        raw_src = spec.get("src")
        if not raw_src:
            raise ValueError("template operation requires a src")
        self.src = Path(str(raw_src)).expanduser()
        raw_dest = spec.get("dest")
        if not raw_dest:
            raise ValueError("template operation requires a dest")
        self.dest = Path(str(raw_dest))
        self.raw_mode = spec.get("mode")
        parse_mode(self.raw_mode)
        self.owner_uid = self.parse_uid(spec.get("owner"))
        self.group_gid = self.parse_gid(spec.get("group"))
        self.variables = spec.get("variables", {})
        if not isinstance(self.variables, dict):
            raise ValueError("template operation variables must be a mapping")

    def apply(self, host: HostConfig, executor: Executor) -> ActionResult:
        content = self.render(host)
        mode = parse_mode(self.raw_mode, executor.file_mode(self.dest))
        changed, detail = executor.write_file(self.dest, content=content, mode=mode)
        changed, detail = apply_ownership(
            executor, self.dest, self.owner_uid, self.group_gid, changed, detail
        )
        return ActionResult(
            host=host.name, action="template", changed=changed, details=detail, resource=str(self.dest)
        )

    def render(self, host: HostConfig) -> str:
        context: dict[str, Any] = dict(self.spec.get("_context") or host.variables)
        context.update(self.variables)
        env = build_environment(jinja2.FileSystemLoader(self._search_path()))
        name = self.src.name if self.src.is_absolute() else str(self.src)
        try:
            return env.get_template(name).render(**context)
        except jinja2.TemplateNotFound:
            raise FileNotFoundError(f"Template {self.src} not found") from None
        except jinja2.TemplateError as exc:
            raise TemplateError(f"failed to render {self.src}: {exc}") from exc

    def _search_path(self) -> list[str]:
        if self.src.is_absolute():
            return [str(self.src.parent)]
        base_dir = self.base_dir()
        if base_dir is None:
            return [str(Path.cwd())]
        return [str(base_dir / "templates"), str(base_dir)]
