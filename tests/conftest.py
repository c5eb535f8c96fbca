import os
import subprocess
from pathlib import Path
from typing import Optional

import pytest

from xo_installer.executors import CommandResult, LocalExecutor
from xo_installer.types import HostConfig

SAMPLE_CONFIG = """\
# Example XO-Server configuration.
[http]
# redirectToHttps = true

# publicUrl = 'https://xoa.company.lan'

[[http.listen]]
port = 80

# [[http.listen]]
# port = 443
# cert = './certificate.pem'
# key = './key.pem'
"""

NODE_PATH = "/root/.nvm/versions/node/v20.11.0/bin:/usr/local/bin:/usr/bin"


class FakeHost(LocalExecutor):
    """Local executor whose external tools are scripted in memory.

    File primitives still act on the real filesystem, so tests point every
    path into ``tmp_path``.
    """

    def __init__(
        self,
        *,
        hostname: str = "localhost.localdomain",
        installed=(),
        enabled=(),
        active=(),
        firewall=(),
        nvm_installed: bool = False,
        node_installed: bool = False,
        fail_build: bool = False,
        missing=(),
        dry_run: bool = False,
    ):
        super().__init__(HostConfig(name="localhost"), dry_run=dry_run)
        self.hostname = hostname
        self.installed = set(installed)
        self.enabled = set(enabled)
        self.active = set(active)
        self.firewall_permanent = set(firewall)
        self.firewall_runtime = set(firewall)
        self.nvm_installed = nvm_installed
        self.node_installed = node_installed
        self.fail_build = fail_build
        self.missing = set(missing)
        self.commands: list[list[str]] = []

    def which(self, binary: str) -> Optional[str]:
        if binary in self.missing:
            return None
        return f"/usr/bin/{binary}"

    def run(self, command, *, check=True, mutable=True, env=None, cwd=None, timeout=None):
        cmd = [str(part) for part in command]
        if self.dry_run and mutable:
            return CommandResult(cmd, "", "skipped (dry-run)", 0)
        self.commands.append(cmd)
        result = self._dispatch(cmd)
        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(result.returncode, cmd, result.stdout, result.stderr)
        return result

    def ran(self, *prefix: str) -> bool:
        return any(cmd[: len(prefix)] == list(prefix) for cmd in self.commands)

    def _dispatch(self, cmd: list[str]) -> CommandResult:
        program = cmd[0]
        if program == "hostnamectl":
            if cmd[1:] == ["--static"]:
                return CommandResult(cmd, self.hostname + "\n", "", 0)
            self.hostname = cmd[2]
            return CommandResult(cmd, "", "", 0)
        if program == "rpm":
            found = cmd[-1] in self.installed
            return CommandResult(cmd, "", "" if found else f"no package provides {cmd[-1]}", 0 if found else 1)
        if program in {"dnf", "yum"}:
            if cmd[1] == "install":
                self.installed.update(cmd[3:])
            else:
                self.installed.difference_update(cmd[3:])
            return CommandResult(cmd, "", "", 0)
        if program == "systemctl":
            return self._systemctl(cmd)
        if program == "firewall-cmd":
            return self._firewall(cmd)
        if program == "curl":
            target = Path(cmd[cmd.index("-o") + 1])
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("#!/bin/sh\necho installing nvm\n")
            return CommandResult(cmd, "", "", 0)
        if program.endswith("install.sh"):
            self.nvm_installed = True
            return CommandResult(cmd, "=> nvm installed\n", "", 0)
        if program == "git" and cmd[1] == "clone":
            dest = Path(cmd[-1])
            (dest / ".git").mkdir(parents=True)
            sample = dest / "packages" / "xo-server" / "sample.config.toml"
            sample.parent.mkdir(parents=True)
            sample.write_text(SAMPLE_CONFIG)
            return CommandResult(cmd, "", "Cloning into...\n", 0)
        if program == "git" and cmd[1] == "-C":
            return CommandResult(cmd, "", "", 0)
        if program == "/bin/bash" and cmd[1] == "-c":
            return self._bash(cmd, cmd[2])
        return CommandResult(cmd, "", f"{program}: command not found", 127)

    def _systemctl(self, cmd: list[str]) -> CommandResult:
        verb = cmd[1]
        unit = cmd[2] if len(cmd) > 2 else ""
        if verb == "is-enabled":
            return CommandResult(cmd, "", "", 0 if unit in self.enabled else 1)
        if verb == "is-active":
            return CommandResult(cmd, "", "", 0 if unit in self.active else 3)
        if verb == "enable":
            self.enabled.add(unit)
        elif verb == "disable":
            self.enabled.discard(unit)
        elif verb in {"start", "restart"}:
            self.active.add(unit)
        elif verb == "stop":
            self.active.discard(unit)
        return CommandResult(cmd, "", "", 0)

    def _firewall(self, cmd: list[str]) -> CommandResult:
        permanent = "--permanent" in cmd
        zone = self.firewall_permanent if permanent else self.firewall_runtime
        flag, _, service = cmd[-1].partition("=")
        if flag == "--query-service":
            return CommandResult(cmd, "", "", 0 if service in zone else 1)
        if flag == "--add-service":
            zone.add(service)
        elif flag == "--remove-service":
            zone.discard(service)
        return CommandResult(cmd, "success\n", "", 0)

    def _bash(self, cmd: list[str], script: str) -> CommandResult:
        if "nvm --version" in script:
            if self.nvm_installed:
                return CommandResult(cmd, "0.40.1\n", "", 0)
            return CommandResult(cmd, "", "bash: nvm: command not found\n", 127)
        if "nvm install --lts" in script:
            if not self.nvm_installed:
                return CommandResult(cmd, "", "bash: nvm: command not found\n", 127)
            if self.node_installed:
                return CommandResult(cmd, "", "v20.11.0 is already installed.\n", 0)
            self.node_installed = True
            return CommandResult(cmd, "", "Downloading and installing node v20.11.0...\n", 0)
        if "yarn build" in script:
            if self.fail_build:
                return CommandResult(cmd, "", "error Command failed with exit code 1.\n", 1)
            return CommandResult(cmd, "Done\n", "", 0)
        if "echo $PATH" in script:
            return CommandResult(cmd, NODE_PATH + "\n", "", 0)
        if "corepack enable" in script or script.endswith("yarn"):
            return CommandResult(cmd, "", "", 0)
        return CommandResult(cmd, "", "bash: unexpected script\n", 127)


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def sandbox_vars(tmp_path):
    """Playbook variables that keep every path and owner inside ``tmp_path``."""

    return {
        "inventory_hostname": "xo.example.com",
        "install_nvm_script_location": str(tmp_path / "tmp"),
        "install_xo_location": str(tmp_path / "opt" / "xen-orchestra"),
        "xo_config_dir": str(tmp_path / "etc" / "xo-server"),
        "systemd_unit_dir": str(tmp_path / "systemd"),
        "xo_file_owner": str(os.getuid()),
        "xo_file_group": str(os.getgid()),
    }
