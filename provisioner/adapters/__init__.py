"""Adapters — bindings to the host tools the provisioner drives."""

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.containers.docker import DockerAdapter
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.network.ufw import UfwAdapter
from provisioner.adapters.packages.apt import AptAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.filesystem import FilesystemAdapter
from provisioner.adapters.shell.system import SystemAdapter


def default_registry(workdir: str = ".") -> AdapterRegistry:
    """Registry wired to the real host tools."""
    registry = AdapterRegistry(workdir=workdir)
    for adapter in (
        AptAdapter(),
        UfwAdapter(),
        DockerAdapter(),
        SystemAdapter(),
        FilesystemAdapter(),
    ):
        registry.register(adapter)
    return registry


__all__ = [
    "Adapter",
    "AdapterRegistry",
    "AptAdapter",
    "DockerAdapter",
    "ExecutionContext",
    "FilesystemAdapter",
    "MockAdapter",
    "SystemAdapter",
    "UfwAdapter",
    "default_registry",
]
