"""
Package installer — OS packages and the container runtime.

Idempotency rules:
    - OS packages are queried first; only the missing ones are installed,
      so a fully provisioned host sees zero install calls.
    - If the runtime is already present its install sequence is skipped
      entirely; only group membership and the systemd unit are verified.

Any failing install step raises InstallError and ends the run: the stack
must never be brought up on a host with a half-installed runtime.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.env_loader import parse_env_lines
from provisioner.core.errors import InstallError
from provisioner.core.models.action import Receipt
from provisioner.core.models.profile import RuntimeSpec
from provisioner.core.models.run import InstallReport

logger = logging.getLogger(__name__)

OS_RELEASE = "/etc/os-release"
_SUPPORTED_DISTROS = ("ubuntu", "debian")


def _fail(message: str, receipt: Receipt) -> InstallError:
    detail = receipt.error or receipt.output or None
    return InstallError(f"{message}: {detail}" if detail else message, detail=detail)


class PackageInstaller:
    """Ensure OS packages and the container runtime are installed."""

    def __init__(
        self,
        registry: AdapterRegistry,
        runtime: RuntimeSpec,
        os_release: str = OS_RELEASE,
    ):
        self._registry = registry
        self._runtime = runtime
        self._os_release = os_release
        self._index_fresh = False

    # ── Entry point ─────────────────────────────────────────────

    def ensure_installed(self, packages: list[str], user: str) -> InstallReport:
        """Install what is missing and make the runtime usable by ``user``.

        Raises:
            InstallError: If any package or runtime step fails.
        """
        report = InstallReport()

        present, missing = self.query_packages(packages)
        report.already_present = present
        if missing:
            logger.info("Installing missing packages: %s", ", ".join(missing))
            self._install(missing)
            report.installed = missing
        else:
            logger.info("All %d required packages already installed", len(present))

        if self.runtime_present():
            report.runtime_present = True
            logger.info("%s is already installed", self._runtime.command)
            report.group_added = self.ensure_group(user)
            report.service_enabled = self.ensure_service()
        else:
            self.install_runtime(user)
            report.runtime_installed = True
            report.group_added = True
            report.service_enabled = True

        report.compose_version = self.compose_version()
        logger.info("Docker Compose version: %s", report.compose_version)
        return report

    # ── OS packages ─────────────────────────────────────────────

    def query_packages(self, packages: list[str]) -> tuple[list[str], list[str]]:
        """Split ``packages`` into (installed, missing)."""
        present: list[str] = []
        missing: list[str] = []
        for package in packages:
            receipt = self._registry.run("apt", "query", package)
            (present if receipt.ok else missing).append(package)
        return present, missing

    def _refresh_index(self) -> None:
        if self._index_fresh:
            return
        receipt = self._registry.run("apt", "update")
        if not receipt.ok:
            raise _fail("Updating the package index failed", receipt)
        self._index_fresh = True

    def _install(self, packages: list[str]) -> None:
        self._refresh_index()
        receipt = self._registry.run("apt", "install", packages=packages)
        if not receipt.ok:
            raise _fail(f"Installing {', '.join(packages)} failed", receipt)

    # ── Runtime ─────────────────────────────────────────────────

    def runtime_present(self) -> bool:
        return self._registry.run(self._runtime.command, "version").ok

    def install_runtime(self, user: str) -> None:
        """Fresh install from the runtime's own apt repository."""
        runtime = self._runtime
        repo = runtime.repository
        logger.info("Installing %s", runtime.command)

        if runtime.legacy_packages:
            receipt = self._registry.run("apt", "remove", packages=runtime.legacy_packages)
            if not receipt.ok:
                logger.debug("Ignoring legacy package removal failure: %s", receipt.error)

        distro, codename = self.detect_distro()

        keyring_dir = str(Path(repo.keyring).parent)
        receipt = self._registry.run("filesystem", "mkdir", keyring_dir, mode=0o755)
        if not receipt.ok:
            raise _fail(f"Creating {keyring_dir} failed", receipt)

        key_url = repo.key_url.format(distro=distro)
        receipt = self._registry.run("system", "fetch", key_url, dest=repo.keyring)
        if not receipt.ok:
            raise _fail(f"Downloading the repository key from {key_url} failed", receipt)

        receipt = self._registry.run("filesystem", "chmod", repo.keyring, mode=0o644)
        if not receipt.ok:
            raise _fail(f"Making {repo.keyring} readable failed", receipt)

        receipt = self._registry.run("system", "arch")
        if not receipt.ok or not receipt.output.strip():
            raise _fail("Detecting the package architecture failed", receipt)
        arch = receipt.output.strip()

        source_line = (
            f"deb [arch={arch} signed-by={repo.keyring}] "
            f"{repo.url.format(distro=distro)} {codename} {repo.channel}\n"
        )
        receipt = self._registry.run("filesystem", "write", repo.source_list, content=source_line)
        if not receipt.ok:
            raise _fail(f"Writing {repo.source_list} failed", receipt)

        self._index_fresh = False
        self._install(runtime.packages)

        receipt = self._registry.run("system", "add_to_group", user, group=runtime.group)
        if not receipt.ok:
            raise _fail(f"Adding {user} to the {runtime.group} group failed", receipt)

        for verb in ("start", "enable"):
            receipt = self._registry.run("system", verb, runtime.service)
            if not receipt.ok:
                raise _fail(f"systemctl {verb} {runtime.service} failed", receipt)

        logger.info("%s installed successfully", runtime.command)

    def detect_distro(self) -> tuple[str, str]:
        """``(distro id, codename)`` from os-release, e.g. ("ubuntu", "noble")."""
        receipt = self._registry.run("filesystem", "read", self._os_release)
        if not receipt.ok:
            raise _fail(f"Reading {self._os_release} failed", receipt)

        info = parse_env_lines(receipt.output)
        distro = info.get("ID", "").lower()
        if distro not in _SUPPORTED_DISTROS:
            like = info.get("ID_LIKE", "").lower().split()
            distro = next((d for d in _SUPPORTED_DISTROS if d in like), "")
        if not distro:
            raise InstallError(f"Unsupported distribution in {self._os_release}: {info.get('ID', '?')}")

        codename = ""
        if distro == "ubuntu":
            codename = info.get("UBUNTU_CODENAME", "")
        codename = codename or info.get("VERSION_CODENAME", "")
        if not codename:
            raise InstallError(f"No release codename in {self._os_release}")
        return distro, codename

    def ensure_group(self, user: str) -> bool:
        """Add ``user`` to the runtime group if needed. True when added."""
        group = self._runtime.group
        receipt = self._registry.run("system", "groups", user)
        if receipt.ok and group in receipt.output.split():
            logger.debug("%s is already in the %s group", user, group)
            return False

        receipt = self._registry.run("system", "add_to_group", user, group=group)
        if not receipt.ok:
            raise _fail(f"Adding {user} to the {group} group failed", receipt)
        logger.info("Added %s to %s group", user, group)
        return True

    def ensure_service(self) -> bool:
        """Start/enable the runtime unit only if needed. True when changed."""
        unit = self._runtime.service
        changed = False
        for check, fix in (("unit_active", "start"), ("unit_enabled", "enable")):
            if self._registry.run("system", check, unit).ok:
                continue
            receipt = self._registry.run("system", fix, unit)
            if not receipt.ok:
                raise _fail(f"systemctl {fix} {unit} failed", receipt)
            logger.info("systemctl %s %s", fix, unit)
            changed = True
        return changed

    def compose_version(self) -> str:
        receipt = self._registry.run(self._runtime.command, "compose_version")
        if not receipt.ok:
            raise _fail(
                "Docker Compose is not available. Please check your Docker installation",
                receipt,
            )
        return receipt.output.strip()
