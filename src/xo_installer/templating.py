from __future__ import annotations

import re
from typing import Any, Mapping

import jinja2

_JINJA_RE = re.compile(r"{[{%]")
_SINGLE_EXPRESSION_RE = re.compile(r"^\s*\{\{(?P<expr>.*?)\}\}\s*$", re.S)


class TemplateError(ValueError):
    """Raised when a playbook expression or template cannot be rendered."""


def _search(value: Any, pattern: str) -> bool:
    return re.search(pattern, str(value)) is not None


def _match(value: Any, pattern: str) -> bool:
    return re.match(pattern, str(value)) is not None


def build_environment(loader: jinja2.BaseLoader | None = None) -> jinja2.Environment:
    env = jinja2.Environment(
        loader=loader,
        undefined=jinja2.StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.tests["search"] = _search
    env.tests["match"] = _match
    return env


_ENV = build_environment()


def looks_like_jinja(text: str) -> bool:
    return bool(_JINJA_RE.search(text))


def render_string(text: str, context: Mapping[str, Any]) -> str:
    try:
        return _ENV.from_string(text).render(**context)
    except jinja2.TemplateError as exc:
        raise TemplateError(f"failed to render '{text}': {exc}") from exc


def evaluate(expression: str, context: Mapping[str, Any]) -> Any:
    """Evaluate a bare Jinja expression such as ``nvm_version.rc != 0``."""

    try:
        compiled = _ENV.compile_expression(expression, undefined_to_none=False)
        value = compiled(**context)
    except jinja2.TemplateError as exc:
        raise TemplateError(f"failed to evaluate '{expression}': {exc}") from exc
    if isinstance(value, jinja2.Undefined):
        raise TemplateError(f"'{expression}' is undefined")
    return value


def evaluate_condition(condition: Any, context: Mapping[str, Any]) -> bool:
    if isinstance(condition, bool):
        return condition
    if isinstance(condition, (list, tuple)):
        return all(evaluate_condition(item, context) for item in condition)
    text = str(condition).strip()
    match = _SINGLE_EXPRESSION_RE.match(text)
    if match:
        text = match.group("expr")
    return bool(evaluate(text, context))


def render_value(value: Any, context: Mapping[str, Any]) -> Any:
    """Render strings inside ``value`` recursively.

    A string that is exactly one ``{{ expression }}`` keeps the native type of
    the expression, so ``loop = "{{ packages }}"`` yields a list.
    """

    if isinstance(value, str):
        if not looks_like_jinja(value):
            return value
        match = _SINGLE_EXPRESSION_RE.match(value)
        if match and "{{" not in match.group("expr") and "}}" not in match.group("expr"):
            return evaluate(match.group("expr"), context)
        return render_string(value, context)
    if isinstance(value, dict):
        return {key: render_value(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [render_value(item, context) for item in value]
    return value
