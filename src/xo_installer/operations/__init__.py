from .base import Operation
from .copy import CopyOperation
from .file import FileOperation
from .firewalld import FirewalldOperation
from .get_url import GetUrlOperation
from .git import GitOperation
from .hostname import HostnameOperation
from .lineinfile import LineInFileOperation
from .package import PackageOperation
from .service import ServiceOperation
from .shell import CommandOperation, ShellOperation
from .template import TemplateOperation

OPERATION_REGISTRY = {
    "hostname": HostnameOperation,
    "package": PackageOperation,
    "service": ServiceOperation,
    "firewalld": FirewalldOperation,
    "shell": ShellOperation,
    "command": CommandOperation,
    "get_url": GetUrlOperation,
    "file": FileOperation,
    "copy": CopyOperation,
    "lineinfile": LineInFileOperation,
    "git": GitOperation,
    "template": TemplateOperation,
}

__all__ = [
    "Operation",
    "HostnameOperation",
    "PackageOperation",
    "ServiceOperation",
    "FirewalldOperation",
    "ShellOperation",
    "CommandOperation",
    "GetUrlOperation",
    "FileOperation",
    "CopyOperation",
    "LineInFileOperation",
    "GitOperation",
    "TemplateOperation",
    "OPERATION_REGISTRY",
]
