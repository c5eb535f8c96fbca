from pathlib import Path

import pytest

from xo_installer.executors import LocalExecutor
from xo_installer.operations.lineinfile import LineInFileOperation
from xo_installer.types import HostConfig


def _apply(spec: dict):
    host = HostConfig("local")
    return LineInFileOperation(spec).apply(host, LocalExecutor(host))


def test_lineinfile_uncomments_matching_line(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[http]\n# redirectToHttps = true\n")
    spec = {"path": str(path), "regexp": r"^#?\s*redirectToHttps\s*=", "line": "redirectToHttps = true"}

    result = _apply(spec)

    assert result.changed is True
    assert result.details == "line replaced"
    assert path.read_text() == "[http]\nredirectToHttps = true\n"

    again = _apply(spec)
    assert again.changed is False


def test_lineinfile_replaces_only_last_match(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("# port = 443\nport = 80\n# port = 443\n")

    _apply({"path": str(path), "regexp": r"^#?\s*port\s*=\s*443", "line": "port = 443"})

    assert path.read_text() == "# port = 443\nport = 80\nport = 443\n"


def test_lineinfile_appends_when_nothing_matches(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[http]")

    result = _apply({"path": str(path), "regexp": r"^key\s*=", "line": "key = '/etc/ssl/key.pem'"})

    assert result.details == "line added"
    assert path.read_text() == "[http]\nkey = '/etc/ssl/key.pem'\n"


def test_lineinfile_absent_removes_matches(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("a\n# debug = true\nb\n# debug = false\n")

    result = _apply({"path": str(path), "regexp": r"^# debug", "state": "absent"})

    assert result.details == "2 line(s) removed"
    assert path.read_text() == "a\nb\n"


def test_lineinfile_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "new.conf"

    with pytest.raises(FileNotFoundError):
        _apply({"path": str(path), "line": "x = 1"})

    result = _apply({"path": str(path), "line": "x = 1", "create": True})
    assert result.changed is True
    assert path.read_text() == "x = 1\n"


def test_lineinfile_validates_arguments(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        LineInFileOperation({"path": str(tmp_path / "f")})
    with pytest.raises(ValueError):
        LineInFileOperation({"path": str(tmp_path / "f"), "line": "x", "regexp": "("})
