from pathlib import Path

import pytest

from xo_installer.executors import LocalExecutor
from xo_installer.operations.copy import CopyOperation
from xo_installer.types import HostConfig


def test_copy_remote_src_sets_mode(tmp_path: Path) -> None:
    host = HostConfig("local")
    src = tmp_path / "sample.config.toml"
    src.write_text("[http]\n")
    dest = tmp_path / "etc" / "config.toml"
    op = CopyOperation({"src": str(src), "remote_src": True, "dest": str(dest), "mode": "0600"})

    result = op.apply(host, LocalExecutor(host))

    assert dest.read_text() == "[http]\n"
    assert dest.stat().st_mode & 0o777 == 0o600
    assert result.changed is True
    assert result.details.startswith("created")

    again = op.apply(host, LocalExecutor(host))
    assert again.changed is False


def test_copy_overwrites_changed_destination_by_default(tmp_path: Path) -> None:
    host = HostConfig("local")
    src = tmp_path / "sample"
    src.write_text("fresh\n")
    dest = tmp_path / "dest"
    dest.write_text("edited\n")

    result = CopyOperation({"src": str(src), "remote_src": True, "dest": str(dest)}).apply(
        host, LocalExecutor(host)
    )

    assert result.details == "content"
    assert dest.read_text() == "fresh\n"


def test_copy_without_force_keeps_existing_content(tmp_path: Path) -> None:
    host = HostConfig("local")
    src = tmp_path / "sample"
    src.write_text("fresh\n")
    dest = tmp_path / "dest"
    dest.write_text("edited\n")
    dest.chmod(0o644)
    op = CopyOperation({"src": str(src), "remote_src": True, "dest": str(dest), "force": False, "mode": "0600"})

    result = op.apply(host, LocalExecutor(host))

    assert dest.read_text() == "edited\n"
    assert result.details == "mode->0600"


def test_copy_relative_src_resolves_against_playbook_dir(tmp_path: Path) -> None:
    host = HostConfig("local")
    (tmp_path / "files").mkdir()
    (tmp_path / "files" / "motd").write_text("hello\n")
    dest_dir = tmp_path / "out"
    dest_dir.mkdir()
    op = CopyOperation({"src": "files/motd", "dest": str(dest_dir), "_base_dir": str(tmp_path)})

    result = op.apply(host, LocalExecutor(host))

    assert (dest_dir / "motd").read_text() == "hello\n"
    assert result.resource == str(dest_dir / "motd")


def test_copy_inline_content(tmp_path: Path) -> None:
    host = HostConfig("local")
    dest = tmp_path / "inline"

    CopyOperation({"content": "x = 1\n", "dest": str(dest)}).apply(host, LocalExecutor(host))

    assert dest.read_text() == "x = 1\n"


def test_copy_missing_source_raises(tmp_path: Path) -> None:
    host = HostConfig("local")
    op = CopyOperation({"src": str(tmp_path / "nope"), "remote_src": True, "dest": str(tmp_path / "d")})

    with pytest.raises(FileNotFoundError):
        op.apply(host, LocalExecutor(host))


def test_copy_validates_arguments(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        CopyOperation({"dest": str(tmp_path / "d")})
    with pytest.raises(ValueError):
        CopyOperation({"src": "a", "content": "b", "dest": str(tmp_path / "d")})
