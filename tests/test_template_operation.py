from pathlib import Path

import pytest

from xo_installer.executors import LocalExecutor
from xo_installer.operations.template import TemplateOperation
from xo_installer.playbook import BUNDLED_PLAYBOOK
from xo_installer.templating import TemplateError
from xo_installer.types import HostConfig


def test_template_renders_unit_from_bundled_templates(tmp_path: Path) -> None:
    host = HostConfig("local")
    dest = tmp_path / "xo-server.service"
    op = TemplateOperation(
        {
            "src": "xo-server.service.j2",
            "dest": str(dest),
            "mode": "0644",
            "_base_dir": str(BUNDLED_PLAYBOOK.parent),
            "_context": {
                "install_xo_location": "/opt/xen-orchestra",
                "find_root_path": {"stdout": "/usr/local/bin:/usr/bin\n"},
            },
        }
    )

    result = op.apply(host, LocalExecutor(host))

    text = dest.read_text()
    assert 'Environment="PATH=/usr/local/bin:/usr/bin"' in text
    assert "WorkingDirectory=/opt/xen-orchestra/packages/xo-server\n" in text
    assert "ExecStart=/opt/xen-orchestra/packages/xo-server/dist/cli.mjs" in text
    assert text.endswith("WantedBy=multi-user.target\n")
    assert dest.stat().st_mode & 0o777 == 0o644
    assert result.changed is True

    again = op.apply(host, LocalExecutor(host))
    assert again.changed is False


def test_template_absolute_src_and_extra_variables(tmp_path: Path) -> None:
    host = HostConfig("local", variables={"greeting": "hello"})
    src = tmp_path / "motd.j2"
    src.write_text("{{ greeting }} {{ name }}\n")
    dest = tmp_path / "motd"

    TemplateOperation({"src": str(src), "dest": str(dest), "variables": {"name": "xo"}}).apply(
        host, LocalExecutor(host)
    )

    assert dest.read_text() == "hello xo\n"


def test_template_undefined_variable_raises(tmp_path: Path) -> None:
    host = HostConfig("local")
    src = tmp_path / "broken.j2"
    src.write_text("{{ missing }}\n")
    op = TemplateOperation({"src": str(src), "dest": str(tmp_path / "out")})

    with pytest.raises(TemplateError, match="missing"):
        op.apply(host, LocalExecutor(host))
    assert not (tmp_path / "out").exists()


def test_template_missing_src_raises(tmp_path: Path) -> None:
    host = HostConfig("local")
    op = TemplateOperation({"src": "nope.j2", "dest": str(tmp_path / "out"), "_base_dir": str(tmp_path)})

    with pytest.raises(FileNotFoundError):
        op.apply(host, LocalExecutor(host))
