import pytest

from conftest import FakeHost

from xo_installer.executors import CommandResult
from xo_installer.operations.hostname import HostnameOperation
from xo_installer.types import HostConfig


def test_hostname_sets_with_hostnamectl():
    host = FakeHost(hostname="localhost.localdomain")
    result = HostnameOperation({"name": "xo.example.com"}).apply(HostConfig("local"), host)

    assert result.changed is True
    assert result.details == "localhost.localdomain->xo.example.com"
    assert host.hostname == "xo.example.com"


def test_hostname_matching_is_noop():
    host = FakeHost(hostname="xo.example.com")
    result = HostnameOperation({"name": "xo.example.com"}).apply(HostConfig("local"), host)

    assert result.changed is False
    assert not host.ran("hostnamectl", "set-hostname")


def test_hostname_falls_back_to_hostname_binary():
    class PlainHost(FakeHost):
        def _dispatch(self, cmd):
            if cmd[0] == "hostname":
                if len(cmd) == 1:
                    return CommandResult(cmd, "old\n", "", 0)
                return CommandResult(cmd, "", "", 0)
            return super()._dispatch(cmd)

    host = PlainHost(missing={"hostnamectl"})
    result = HostnameOperation({"name": "xo"}).apply(HostConfig("local"), host)

    assert result.details == "old->xo"
    assert ["hostname", "xo"] in host.commands


def test_hostname_requires_name():
    with pytest.raises(ValueError):
        HostnameOperation({"name": ""})
