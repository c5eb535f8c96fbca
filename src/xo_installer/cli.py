from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG, load_config, load_vars_file
from .playbook import BUNDLED_PLAYBOOK, PlaybookLoader
from .runner import TaskRunner
from .types import ActionResult, ActionSpec, HostConfig

logger = logging.getLogger(__name__)


class Ansi:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    ORANGE = "\033[38;5;208m"
    RESET = "\033[0m"


def colorize(text: str, color: Optional[str]) -> str:
    if not color:
        return text
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{color}{text}{Ansi.RESET}"


_last_progress_len = 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision a host to run XO-Server")
    parser.add_argument(
        "playbook",
        nargs="?",
        default=None,
        type=Path,
        help="Path to a playbook (default from config or the bundled xo-server playbook)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to xo-installer config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument("--vars-file", type=Path, help="TOML file with playbook variables")
    parser.add_argument(
        "-e",
        "--extra-vars",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set a playbook variable; may be repeated",
    )
    parser.add_argument(
        "-t",
        "--tags",
        action="append",
        default=[],
        help="Only run actions with these tags (comma separated, may be repeated)",
    )
    parser.add_argument(
        "--skip-tags",
        action="append",
        default=[],
        help="Skip actions with these tags (comma separated, may be repeated)",
    )
    parser.add_argument(
        "--check", action="store_true", help="Calculate changes without executing them"
    )
    parser.add_argument("--list-tasks", action="store_true", help="List selected actions and exit")
    parser.add_argument("--list-tags", action="store_true", help="List known tags and exit")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: config log_level or INFO)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s - %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (ValueError, OSError) as exc:
        print(colorize(f"Config load failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1
    configure_logging(args.log_level or cfg.log_level or "INFO")

    playbook_path = args.playbook or cfg.playbook or BUNDLED_PLAYBOOK
    try:
        playbook = PlaybookLoader().load(playbook_path)
        variables = dict(cfg.variables)
        vars_file = args.vars_file or cfg.vars_file
        if vars_file is not None:
            variables.update(load_vars_file(vars_file))
        variables.update(parse_extra_vars(args.extra_vars))
    except (ValueError, OSError) as exc:
        print(colorize(f"Playbook validation failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    if "inventory_hostname" in variables:
        playbook.host.name = str(variables["inventory_hostname"])

    runner = TaskRunner(
        playbook,
        variables=variables,
        tags=split_tags(args.tags),
        skip_tags=split_tags(args.skip_tags),
        dry_run=args.check,
        progress_callback=print_progress,
    )

    if args.list_tags:
        tags = sorted({tag for _, action_tags in runner.selected_actions() for tag in action_tags})
        print(", ".join(tags))
        return 0
    if args.list_tasks:
        for action, action_tags in runner.selected_actions():
            print(f"{action.name}\tTAGS: [{', '.join(action_tags)}]")
        return 0

    _warn_if_unprivileged(runner)

    try:
        results = runner.run()
    except KeyboardInterrupt:
        _clear_progress()
        print(colorize("Interrupted", Ansi.RED), file=sys.stderr)
        return 130
    except Exception as exc:  # noqa: BLE001
        _clear_progress()
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            raise
        print(colorize(f"Execution failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    effective_level = logging.getLogger().getEffectiveLevel()
    summary = Summary()
    for result in results:
        _clear_progress()
        summary.add(result)
        if not should_display_result(result, effective_level):
            continue
        print(format_result(result))

    _clear_progress()
    print(summary.render())

    if runner.halted is not None:
        print(
            colorize(f"Run halted at '{runner.halted.name}': {runner.halted.details}", Ansi.RED),
            file=sys.stderr,
        )
        return 1
    return 0


def split_tags(values: Sequence[str]) -> list[str]:
    tags: list[str] = []
    for value in values:
        tags.extend(part.strip() for part in value.split(",") if part.strip())
    return tags


def parse_extra_vars(values: Sequence[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` pairs. Values stay strings; use ``--vars-file`` for typed values."""

    parsed: dict[str, str] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"extra var '{item}' must be KEY=VALUE")
        parsed[key] = raw
    return parsed


def format_result(result: ActionResult) -> str:
    status = "changed" if result.changed else "ok"
    color: Optional[str] = Ansi.BLUE
    if result.failed:
        if result.ignored:
            status = "failed (ignored)"
            color = Ansi.ORANGE
        else:
            status = "failed"
            color = Ansi.RED
    elif result.skipped:
        status = "skipped"
    elif result.changed:
        color = Ansi.GREEN
    resource = f"[{result.resource}]" if result.resource else ""
    line = f"{result.host}::{result.action}{resource} {status} - {result.details}"
    if result.name:
        line = f"{line} ({result.name})"
    return colorize(line, color)


def should_display_result(result: ActionResult, log_level: int) -> bool:
    if result.failed or result.changed:
        return True
    return log_level <= logging.DEBUG


def print_progress(host: HostConfig, action: ActionSpec) -> None:
    global _last_progress_len
    line = f"{host.name}::{action.type} {action.name} pending..."
    _last_progress_len = len(line)
    print(colorize(line, Ansi.YELLOW), end="\r", flush=True)


def _clear_progress() -> None:
    global _last_progress_len
    if _last_progress_len:
        print(" " * _last_progress_len, end="\r", flush=True)
        _last_progress_len = 0


def _warn_if_unprivileged(runner: TaskRunner) -> None:
    if not hasattr(os, "geteuid") or os.geteuid() == 0:
        return
    needs_root = [action.name for action, _ in runner.selected_actions() if action.become]
    if needs_root:
        logger.warning(
            "Not running as root; %d action(s) expect elevated privileges (first: %s)",
            len(needs_root),
            needs_root[0],
        )


class Summary:
    def __init__(self) -> None:
        self.ok = 0
        self.changed = 0
        self.skipped = 0
        self.failed = 0
        self.ignored = 0

    def add(self, result: ActionResult) -> None:
        if result.failed:
            if result.ignored:
                self.ignored += 1
            else:
                self.failed += 1
            return
        if result.skipped:
            self.skipped += 1
        elif result.changed:
            self.changed += 1
        else:
            self.ok += 1

    def render(self) -> str:
        parts = [
            f"Ok: {self.ok}",
            f"Changed: {self.changed}",
            f"Skipped: {self.skipped}",
            f"Failed: {self.failed}",
            f"Ignored: {self.ignored}",
        ]
        text = " | ".join(parts)
        color = Ansi.GREEN if self.failed == 0 else Ansi.RED
        return colorize(text, color)


if __name__ == "__main__":
    raise SystemExit(main())
