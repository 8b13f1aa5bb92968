"""
Run models — what a provisioning run produces.

Stage results are appended by the driver as it advances; the run report
is only used to print the final summary and is never persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ProvisioningState(str, Enum):
    """Driver states, in the order a successful run visits them."""

    INIT = "Init"
    CONFIG_LOADED = "ConfigLoaded"
    PREFLIGHT_OK = "PreflightOk"
    PACKAGES_READY = "PackagesReady"
    FILESYSTEM_READY = "FilesystemReady"
    FIREWALL_READY = "FirewallReady"
    STACK_UP = "StackUp"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def terminal(self) -> bool:
        return self in (ProvisioningState.DONE, ProvisioningState.FAILED)


class StageStatus(str, Enum):
    SUCCESS = "Success"
    SKIPPED = "Skipped"
    FAILED = "Failed"


class StageResult(BaseModel):
    """Outcome of one stage of the run."""

    stage: str
    status: StageStatus = StageStatus.SUCCESS
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != StageStatus.FAILED


class HostIdentity(BaseModel):
    """The unprivileged operator behind ``sudo``."""

    user: str
    home: str = ""
    uid: int | None = None
    gid: int | None = None


class InstallReport(BaseModel):
    """What the package stage found and changed."""

    already_present: list[str] = Field(default_factory=list)
    installed: list[str] = Field(default_factory=list)
    runtime_installed: bool = False
    runtime_present: bool = False
    group_added: bool = False
    service_enabled: bool = False
    compose_version: str = ""

    @property
    def changed(self) -> bool:
        return bool(self.installed or self.runtime_installed or self.group_added or self.service_enabled)


class ServiceStatus(BaseModel):
    """One compose service as reported after launch."""

    name: str
    state: str = "unknown"
    health: str = ""
    status: str = ""

    @property
    def running(self) -> bool:
        return self.state == "running"


class RunReport(BaseModel):
    """Everything the summary needs once the run is over."""

    state: ProvisioningState = ProvisioningState.INIT
    history: list[ProvisioningState] = Field(default_factory=lambda: [ProvisioningState.INIT])
    stages: list[StageResult] = Field(default_factory=list)
    install: InstallReport | None = None
    services: list[ServiceStatus] = Field(default_factory=list)
    identity: HostIdentity | None = None
    base_dir: str = ""
    firewall_configured: bool = False
    endpoints: dict[str, str] = Field(default_factory=dict)
    error: str | None = None
    missing_keys: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == ProvisioningState.DONE

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def failed_stage(self) -> StageResult | None:
        for result in self.stages:
            if result.status == StageStatus.FAILED:
                return result
        return None

    def stage(self, name: str) -> StageResult | None:
        for result in self.stages:
            if result.stage == name:
                return result
        return None
