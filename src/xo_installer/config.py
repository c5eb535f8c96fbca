from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


DEFAULT_CONFIG = Path("/etc/xo-installer/main.conf")


@dataclass
class XoInstallerConfig:
    playbook: Optional[Path] = None
    vars_file: Optional[Path] = None
    log_level: Optional[str] = None
    variables: dict[str, Any] = field(default_factory=dict)


def load_config(path: Path) -> XoInstallerConfig:
    if not path.exists():
        return XoInstallerConfig()
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path}: {exc}") from None
    defaults = data.get("defaults", {})
    playbook = defaults.get("playbook")
    vars_file = defaults.get("vars_file")
    log_level = defaults.get("log_level")
    variables = data.get("vars", {})
    if not isinstance(variables, dict):
        raise ValueError(f"{path}: [vars] must be a table")
    return XoInstallerConfig(
        playbook=Path(playbook) if playbook else None,
        vars_file=Path(vars_file) if vars_file else None,
        log_level=str(log_level) if log_level else None,
        variables=dict(variables),
    )


def load_vars_file(path: Path) -> dict[str, Any]:
    """Read a flat TOML mapping of playbook variables."""

    try:
        return dict(tomllib.loads(path.read_text()))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path}: {exc}") from None
