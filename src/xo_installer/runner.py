from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, Optional

from .executors import Executor, LocalExecutor
from .operations import OPERATION_REGISTRY, Operation
from .templating import TemplateError, evaluate_condition, render_value
from .types import ActionResult, ActionSpec, HostConfig, Playbook

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[HostConfig, ActionSpec], None]


class TaskRunner:
    """Runs a playbook's actions in order against its single host.

    Actions are filtered by tag, guarded by ``when``, classified by
    ``changed_when``/``failed_when`` and recorded under ``register``. The first
    failure without ``ignore_errors`` stops the run and is kept in ``halted``.
    """

    def __init__(
        self,
        playbook: Playbook,
        *,
        variables: Optional[dict[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
        skip_tags: Optional[Iterable[str]] = None,
        dry_run: bool = False,
        executor: Optional[Executor] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.playbook = playbook
        self.variables = dict(variables or {})
        self.tags = set(tags or ())
        self.skip_tags = set(skip_tags or ())
        self.dry_run = dry_run
        self.executor = executor
        self.progress_callback = progress_callback
        self.registered: dict[str, dict[str, Any]] = {}
        self.halted: Optional[ActionResult] = None

    def run(self) -> list[ActionResult]:
        host = self.playbook.host
        executor = self.executor or self._executor_for(host)
        results: list[ActionResult] = []
        self.registered = {}
        self.halted = None
        logger.debug("playbook=%s host=%s tags=%s", self.playbook.name, host.name, sorted(self.tags))
        self._run_actions(host, executor, self.playbook.actions, [], results)
        return results

    def selected_actions(self) -> Iterator[tuple[ActionSpec, list[str]]]:
        """Yield the leaf actions a run would consider, with effective tags."""

        yield from self._walk(self.playbook.actions, [])

    def _walk(
        self, actions: list[ActionSpec], inherited: list[str]
    ) -> Iterator[tuple[ActionSpec, list[str]]]:
        for action in actions:
            tags = _merge_tags(inherited, action.tags)
            if action.block:
                yield from self._walk(action.block, tags)
            elif self._selected(action, inherited):
                yield action, tags

    def _selected(self, action: ActionSpec, inherited: list[str]) -> bool:
        tags = set(_merge_tags(inherited, action.tags))
        if action.block:
            return any(self._selected(child, list(tags)) for child in action.block)
        if self.tags and "all" not in self.tags and not tags & self.tags:
            return False
        if self.skip_tags and tags & self.skip_tags:
            return False
        return True

    def _run_actions(
        self,
        host: HostConfig,
        executor: Executor,
        actions: list[ActionSpec],
        inherited: list[str],
        results: list[ActionResult],
    ) -> None:
        for action in actions:
            if self.halted is not None:
                return
            if not self._selected(action, inherited):
                continue
            self._run_action(host, executor, action, inherited, results)

    def _run_action(
        self,
        host: HostConfig,
        executor: Executor,
        action: ActionSpec,
        inherited: list[str],
        results: list[ActionResult],
    ) -> None:
        tags = _merge_tags(inherited, action.tags)
        context = self._context(host)

        if action.when is not None:
            try:
                proceed = evaluate_condition(action.when, context)
            except TemplateError as exc:
                result = self._failure(host, action, f"when: {exc}")
                self._finish(action, result, results)
                return
            if not proceed:
                logger.debug("action=%s skipped when=%s", action.name, action.when)
                self._skip(host, action, inherited, results)
                return

        if action.block:
            self._run_actions(host, executor, action.block, tags, results)
            return

        if self.progress_callback:
            self.progress_callback(host, action)
        result = self._execute(host, executor, action, context)
        logger.debug(
            "action=%s host=%s changed=%s failed=%s",
            action.type,
            host.name,
            result.changed,
            result.failed,
        )
        self._finish(action, result, results)

    def _skip(
        self,
        host: HostConfig,
        action: ActionSpec,
        inherited: list[str],
        results: list[ActionResult],
    ) -> None:
        if action.block:
            tags = _merge_tags(inherited, action.tags)
            for child in action.block:
                if self._selected(child, tags):
                    self._skip(host, child, tags, results)
            return
        result = ActionResult(
            host=host.name,
            action=action.type or "block",
            changed=False,
            details="skipped (when)",
            skipped=True,
            name=action.name,
            resource=self._resource_name(action.data),
        )
        self._finish(action, result, results)

    def _finish(self, action: ActionSpec, result: ActionResult, results: list[ActionResult]) -> None:
        if result.name is None:
            result.name = action.name
        if action.register:
            self.registered[action.register] = result.as_registered()
        if result.failed:
            if action.ignore_errors:
                result.ignored = True
                logger.warning("action=%r failed, ignoring: %s", action.name, result.details)
            else:
                self.halted = result
                logger.error("action=%r failed, halting run: %s", action.name, result.details)
        results.append(result)

    def _execute(
        self,
        host: HostConfig,
        executor: Executor,
        action: ActionSpec,
        context: dict[str, Any],
    ) -> ActionResult:
        operation_cls = OPERATION_REGISTRY.get(action.type or "")
        if not operation_cls:
            detail = f"unknown operation '{action.type}'"
            logger.warning(detail)
            return self._failure(host, action, detail)

        try:
            if action.loop is None:
                return self._apply_once(operation_cls, host, executor, action, context)
            items = render_value(action.loop, context)
            if not isinstance(items, list):
                raise ValueError(f"loop must be a list, got {type(items).__name__}")
            return self._apply_loop(operation_cls, host, executor, action, context, items)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "action=%s host=%s failed: %s", action.type, host.name, exc, exc_info=True
            )
            return self._failure(host, action, str(exc))

    def _apply_loop(
        self,
        operation_cls: type[Operation],
        host: HostConfig,
        executor: Executor,
        action: ActionSpec,
        context: dict[str, Any],
        items: list[Any],
    ) -> ActionResult:
        item_results: list[ActionResult] = []
        for item in items:
            item_context = {**context, "item": item}
            item_result = self._apply_once(operation_cls, host, executor, action, item_context)
            item_results.append(item_result)
            if item_result.failed:
                break

        last = item_results[-1] if item_results else None
        changed = any(r.changed for r in item_results)
        failed = any(r.failed for r in item_results)
        notable = [
            f"{_item_label(item)}: {r.details}"
            for item, r in zip(items, item_results)
            if r.changed or r.failed
        ]
        return ActionResult(
            host=host.name,
            action=action.type or "",
            changed=changed,
            details="; ".join(notable) if notable else "noop",
            failed=failed,
            name=action.name,
            resource=f"{len(items)} items",
            rc=last.rc if last else None,
            stdout=last.stdout if last else "",
            stderr=last.stderr if last else "",
        )

    def _apply_once(
        self,
        operation_cls: type[Operation],
        host: HostConfig,
        executor: Executor,
        action: ActionSpec,
        context: dict[str, Any],
    ) -> ActionResult:
        data = render_value(action.data, context)
        data["_context"] = context
        operation = operation_cls(data)
        result = operation.apply(host, executor)
        if result.resource is None:
            result.resource = self._resource_name(data)
        self._classify(action, result, context)
        return result

    def _classify(self, action: ActionSpec, result: ActionResult, context: dict[str, Any]) -> None:
        if action.changed_when is None and action.failed_when is None:
            return
        if action.changed_when is not None:
            result.changed = evaluate_condition(action.changed_when, self._outcome_scope(action, result, context))
        if action.failed_when is not None:
            result.failed = evaluate_condition(action.failed_when, self._outcome_scope(action, result, context))

    @staticmethod
    def _outcome_scope(action: ActionSpec, result: ActionResult, context: dict[str, Any]) -> dict[str, Any]:
        outcome = result.as_registered()
        scope = {**context, **outcome}
        if action.register:
            scope[action.register] = outcome
        return scope

    def _context(self, host: HostConfig) -> dict[str, Any]:
        context: dict[str, Any] = {"inventory_hostname": host.name}
        context.update(host.variables)
        context.update(self.playbook.variables)
        context.update(self.variables)
        context.update(self.registered)
        context["check_mode"] = self.dry_run
        return context

    def _failure(self, host: HostConfig, action: ActionSpec, detail: str) -> ActionResult:
        return ActionResult(
            host=host.name,
            action=action.type or "block",
            changed=False,
            details=detail,
            failed=True,
            name=action.name,
            resource=self._resource_name(action.data),
        )

    def _executor_for(self, host: HostConfig) -> Executor:
        if host.connection == "local":
            return LocalExecutor(host, dry_run=self.dry_run)
        raise ValueError(f"Unknown connection type '{host.connection}'")

    @staticmethod
    def _resource_name(data: dict[str, Any]) -> Optional[str]:
        for key in ("name", "path", "dest", "service", "chdir"):
            value = data.get(key)
            if value and isinstance(value, (str, int)):
                return str(value)
        return None


def _merge_tags(inherited: list[str], own: list[str]) -> list[str]:
    merged = list(inherited)
    merged.extend(tag for tag in own if tag not in merged)
    return merged


def _item_label(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("name", "line", "regexp"):
            if key in item:
                return str(item[key])
    return str(item)
