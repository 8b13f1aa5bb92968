"""
Preflight — host prerequisites checked before anything is mutated.

Each check fails with its own PreflightError message; nothing is retried
because none of these conditions are transient.
"""

from __future__ import annotations

import logging
import os
import pwd
from collections.abc import Mapping
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import PreflightError
from provisioner.core.models.environment import EnvironmentDescription
from provisioner.core.models.run import HostIdentity

logger = logging.getLogger(__name__)


class PreflightChecker:
    """Verify privilege, real user, package manager and manifest."""

    def __init__(
        self,
        registry: AdapterRegistry,
        manifest: Path,
        environ: Mapping[str, str] | None = None,
    ):
        self._registry = registry
        self._manifest = manifest
        self._environ = os.environ if environ is None else environ

    def check(self, env: EnvironmentDescription) -> HostIdentity:
        """Run every check in order and return the resolved operator.

        Raises:
            PreflightError: On the first unmet prerequisite.
        """
        self.check_privilege()
        identity = self.resolve_real_user()
        logger.info("Real user: %s (home %s)", identity.user, identity.home)
        self.check_package_manager()
        self.check_manifest()
        logger.debug("Preflight passed for %s", env.source or "environment")
        return identity

    def check_privilege(self) -> None:
        if os.geteuid() != 0:
            raise PreflightError("This tool must be run with sudo privileges.")

    def resolve_real_user(self) -> HostIdentity:
        """The unprivileged user behind sudo: SUDO_USER, else the login name."""
        user = self._environ.get("SUDO_USER", "").strip()
        if not user:
            try:
                user = os.getlogin()
            except OSError:
                user = ""
        if not user:
            raise PreflightError(
                "Cannot determine the real user. Please run with sudo from a regular user account."
            )

        try:
            entry = pwd.getpwnam(user)
        except KeyError:
            raise PreflightError(f"Real user '{user}' does not exist on this host.") from None

        return HostIdentity(user=user, home=entry.pw_dir, uid=entry.pw_uid, gid=entry.pw_gid)

    def check_package_manager(self) -> None:
        if not self._registry.is_available("apt"):
            raise PreflightError("This tool requires Ubuntu or Debian (apt-get not found).")

    def check_manifest(self) -> None:
        if not self._manifest.is_file():
            raise PreflightError(f"{self._manifest.name} not found in {self._manifest.parent}.")
