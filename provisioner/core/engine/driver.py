"""
Provisioning driver — the state machine that sequences a run.

    Init → ConfigLoaded → PreflightOk → PackagesReady → FilesystemReady
         → FirewallReady → StackUp → Done

``Failed`` is reachable from every non-terminal state. The driver only
advances when the stage for the next state succeeds; the first
ProvisioningError moves it to ``Failed`` and nothing after that runs.
There is no retry and no rollback: installed packages and created
directories stay as the last completed stage left them.

One run per host at a time. No lock is taken, so two concurrent runs
against the same base directory or environment file are unsupported,
not serialised.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config import env_loader
from provisioner.core.data import default_profile
from provisioner.core.errors import ConfigError, ProvisioningError
from provisioner.core.models.environment import EnvironmentDescription
from provisioner.core.models.profile import HostProfile
from provisioner.core.models.run import (
    ProvisioningState,
    RunReport,
    StageResult,
    StageStatus,
)
from provisioner.core.services.filesystem import FilesystemProvisioner
from provisioner.core.services.firewall import FirewallConfigurator
from provisioner.core.services.orchestrator import StackOrchestrator
from provisioner.core.services.packages import OS_RELEASE, PackageInstaller
from provisioner.core.services.preflight import PreflightChecker

logger = logging.getLogger(__name__)

CONCURRENT_RUNS_SUPPORTED = False

_SEQUENCE = [
    ProvisioningState.INIT,
    ProvisioningState.CONFIG_LOADED,
    ProvisioningState.PREFLIGHT_OK,
    ProvisioningState.PACKAGES_READY,
    ProvisioningState.FILESYSTEM_READY,
    ProvisioningState.FIREWALL_READY,
    ProvisioningState.STACK_UP,
    ProvisioningState.DONE,
]

# stage name that leads into each state
STAGE_FOR_STATE = {
    ProvisioningState.CONFIG_LOADED: "config",
    ProvisioningState.PREFLIGHT_OK: "preflight",
    ProvisioningState.PACKAGES_READY: "packages",
    ProvisioningState.FILESYSTEM_READY: "filesystem",
    ProvisioningState.FIREWALL_READY: "firewall",
    ProvisioningState.STACK_UP: "stack",
}

HOST_IP_PLACEHOLDER = "<host-ip>"


class _Placeholders(dict):
    """format_map helper leaving unknown fields visible instead of raising."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class ProvisioningDriver:
    """Run every provisioning stage in order, stopping at the first failure."""

    def __init__(
        self,
        registry: AdapterRegistry,
        workdir: Path,
        profile: HostProfile | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        os_release: str = OS_RELEASE,
        on_stage: Callable[[StageResult], None] | None = None,
    ):
        self._registry = registry
        self._workdir = workdir
        self._profile = profile or default_profile()
        self._on_stage = on_stage

        self.preflight = PreflightChecker(registry, self.manifest, environ=environ)
        self.installer = PackageInstaller(registry, self._profile.runtime, os_release=os_release)
        self.filesystem = FilesystemProvisioner(registry)
        self.firewall = FirewallConfigurator(registry, admin_rule=self._profile.admin_rule)
        self.orchestrator = StackOrchestrator(registry, sleep=sleep)

        self._report = RunReport()

    # ── Properties ──────────────────────────────────────────────

    @property
    def env_file(self) -> Path:
        return self._workdir / self._profile.env_file

    @property
    def manifest(self) -> Path:
        return self._workdir / self._profile.manifest

    @property
    def profile(self) -> HostProfile:
        return self._profile

    @property
    def state(self) -> ProvisioningState:
        return self._report.state

    @property
    def report(self) -> RunReport:
        return self._report

    # ── State machine ───────────────────────────────────────────

    def _transition(self, new_state: ProvisioningState) -> None:
        current = self._report.state
        if current.terminal:
            raise RuntimeError(f"Run already finished in state {current.value}")
        if new_state != ProvisioningState.FAILED:
            expected = _SEQUENCE[_SEQUENCE.index(current) + 1]
            if new_state != expected:
                raise RuntimeError(
                    f"Illegal transition {current.value} → {new_state.value} "
                    f"(expected {expected.value})"
                )
        logger.debug("State %s → %s", current.value, new_state.value)
        self._report.state = new_state
        self._report.history.append(new_state)

    def _record(self, result: StageResult) -> None:
        self._report.stages.append(result)
        if self._on_stage is not None:
            self._on_stage(result)

    def _complete(
        self,
        new_state: ProvisioningState,
        detail: str | None = None,
        status: StageStatus = StageStatus.SUCCESS,
    ) -> None:
        self._record(StageResult(stage=STAGE_FOR_STATE[new_state], status=status, detail=detail))
        self._transition(new_state)

    def _fail(self, error: ProvisioningError) -> None:
        next_state = _SEQUENCE[_SEQUENCE.index(self._report.state) + 1]
        stage = STAGE_FOR_STATE.get(next_state, error.stage)
        # the CLI prints the one operator-facing message
        logger.debug("Run failed: %s", error.tagged())
        if error.detail and error.detail not in error.message:
            logger.debug("Failure detail: %s", error.detail)
        self._report.error = error.tagged()
        if isinstance(error, ConfigError):
            self._report.missing_keys = error.missing_keys
        self._record(StageResult(stage=stage, status=StageStatus.FAILED, detail=error.message))
        self._transition(ProvisioningState.FAILED)

    # ── Run ─────────────────────────────────────────────────────

    def run(self) -> RunReport:
        """Execute one provisioning run. Never raises ProvisioningError."""
        if self._report.state != ProvisioningState.INIT:
            raise RuntimeError("A ProvisioningDriver instance runs once")

        try:
            self._run_stages()
        except ProvisioningError as e:
            self._fail(e)
        return self._report

    def _run_stages(self) -> None:
        profile = self._profile
        report = self._report

        env = self.load_environment()
        base_dir = env.base_dir(profile.base_dir_key)
        owner = env.owner
        report.base_dir = str(base_dir)
        self._complete(ProvisioningState.CONFIG_LOADED, f"{len(env.keys())} variables from {env.source}")

        identity = self.preflight.check(env)
        report.identity = identity
        self._complete(ProvisioningState.PREFLIGHT_OK, f"real user {identity.user}")

        install = self.installer.ensure_installed(profile.packages, identity.user)
        report.install = install
        self._complete(
            ProvisioningState.PACKAGES_READY,
            f"{len(install.installed)} installed, {len(install.already_present)} already present"
            + ("; runtime installed" if install.runtime_installed else ""),
        )

        created = self.filesystem.ensure(
            base_dir,
            profile.directories,
            owner,
            dir_mode=profile.dir_mode,
            file_mode=profile.file_mode,
        )
        self._complete(
            ProvisioningState.FILESYSTEM_READY,
            f"{len(created)} directories created under {base_dir}",
        )

        firewall = self.firewall.ensure_rules(profile.firewall)
        report.firewall_configured = firewall.status == StageStatus.SUCCESS
        self._complete(ProvisioningState.FIREWALL_READY, firewall.detail, status=firewall.status)

        self.orchestrator.validate(self.manifest)
        report.services = self.orchestrator.launch(self.manifest)
        running = sum(1 for s in report.services if s.running)
        self._complete(
            ProvisioningState.STACK_UP,
            f"{running}/{len(report.services)} services running",
        )

        report.endpoints = self.endpoints(env)
        self._transition(ProvisioningState.DONE)
        logger.info("Provisioning completed")

    def load_environment(self) -> EnvironmentDescription:
        env = env_loader.load(self.env_file)
        env_loader.validate(env, self._profile.required_keys)
        return env

    # ── Summary helpers ─────────────────────────────────────────

    def endpoints(self, env: EnvironmentDescription) -> dict[str, str]:
        """Published URLs with environment values and the host IP filled in."""
        receipt = self._registry.run("system", "host_ip")
        host_ip = receipt.output.strip() if receipt.ok and receipt.output.strip() else HOST_IP_PLACEHOLDER
        values = _Placeholders(env.as_dict())
        values["HOST_IP"] = host_ip
        return {ep.name: ep.url.format_map(values) for ep in self._profile.endpoints}
