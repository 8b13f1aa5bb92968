"""Provisioning services — one per stage of a run."""

from provisioner.core.services.filesystem import FilesystemProvisioner
from provisioner.core.services.firewall import FirewallConfigurator
from provisioner.core.services.orchestrator import GRACE_PERIOD_SECONDS, StackOrchestrator
from provisioner.core.services.packages import PackageInstaller
from provisioner.core.services.preflight import PreflightChecker

__all__ = [
    "GRACE_PERIOD_SECONDS",
    "FilesystemProvisioner",
    "FirewallConfigurator",
    "PackageInstaller",
    "PreflightChecker",
    "StackOrchestrator",
]
