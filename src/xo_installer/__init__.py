"""Provision a host to run XO-Server."""

from .runner import TaskRunner
from .playbook import PlaybookLoader

__all__ = ["TaskRunner", "PlaybookLoader"]
