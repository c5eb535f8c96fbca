import pytest

from xo_installer.modes import parse_mode
from xo_installer.templating import TemplateError, evaluate_condition, render_value


def test_render_value_keeps_native_types():
    context = {"xo_packages": ["redis", "git"], "port": 443}

    assert render_value("{{ xo_packages }}", context) == ["redis", "git"]
    assert render_value("{{ port }}", context) == 443
    assert render_value("port = {{ port }}", context) == "port = 443"


def test_render_value_recurses_into_tables():
    context = {"item": {"regexp": r"^#?\s*key\s*=", "line": "key = 'x'"}}
    rendered = render_value({"regexp": "{{ item.regexp }}", "opts": ["{{ item.line }}", 3]}, context)

    assert rendered == {"regexp": r"^#?\s*key\s*=", "opts": ["key = 'x'", 3]}


def test_render_value_leaves_plain_strings():
    assert render_value(r"^#?\s*port\s*=\s*443", {}) == r"^#?\s*port\s*=\s*443"


def test_render_value_undefined_raises():
    with pytest.raises(TemplateError):
        render_value("{{ nope }}", {})


def test_evaluate_condition_forms():
    context = {"nvm_version": {"rc": 127, "failed": True, "stderr": "v20 is already installed"}}

    assert evaluate_condition("nvm_version.failed", context) is True
    assert evaluate_condition("{{ nvm_version.rc != 0 }}", context) is True
    assert evaluate_condition("nvm_version.stderr is search('already installed')", context) is True
    assert evaluate_condition(["nvm_version.failed", "nvm_version.rc == 0"], context) is False
    assert evaluate_condition(False, context) is False


def test_evaluate_condition_undefined_raises():
    with pytest.raises(TemplateError):
        evaluate_condition("probe.failed", {})


@pytest.mark.parametrize(
    ("value", "current", "expected"),
    [
        ("0644", None, 0o644),
        ("644", None, 0o644),
        ("0o600", None, 0o600),
        (0o755, None, 0o755),
        ("u+x", 0o644, 0o744),
        ("go-w", 0o666, 0o644),
        ("a=r", 0o777, 0o444),
        ("u+x,g+x", 0o600, 0o710),
        ("u+x", None, 0o100),
    ],
)
def test_parse_mode(value, current, expected):
    assert parse_mode(value, current) == expected


@pytest.mark.parametrize("value", ["0999", "u+q", "z+x", True])
def test_parse_mode_rejects(value):
    with pytest.raises(ValueError):
        parse_mode(value)
