"""
Domain models — pydantic types for the provisioner.

    from provisioner.core.models import Action, Receipt, HostProfile, RunReport
"""

from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.environment import EnvironmentDescription
from provisioner.core.models.profile import (
    DirectoryEntry,
    Endpoint,
    FirewallRule,
    HostProfile,
    RuntimeRepository,
    RuntimeSpec,
)
from provisioner.core.models.run import (
    HostIdentity,
    InstallReport,
    ProvisioningState,
    RunReport,
    ServiceStatus,
    StageResult,
    StageStatus,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # environment.py
    "EnvironmentDescription",
    # profile.py
    "DirectoryEntry",
    "Endpoint",
    "FirewallRule",
    "HostProfile",
    "RuntimeRepository",
    "RuntimeSpec",
    # run.py
    "HostIdentity",
    "InstallReport",
    "ProvisioningState",
    "RunReport",
    "ServiceStatus",
    "StageResult",
    "StageStatus",
]
