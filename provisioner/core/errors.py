"""
Error taxonomy — one exception per provisioning stage.

Adapters never raise; they return failed receipts. Services turn those
receipts into one of the errors below, and the driver is the only place
that catches them. Every error carries the stage tag shown to the operator.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for every error that halts a provisioning run."""

    stage = "provisioning"

    def __init__(self, message: str, *, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def tagged(self) -> str:
        """Message prefixed with the failing stage, e.g. ``[firewall] ...``."""
        return f"[{self.stage}] {self.message}"


class ConfigError(ProvisioningError):
    """Environment file missing, unreadable, or incomplete.

    ``missing_keys`` holds every required key that was absent or empty,
    so the operator can fix the file in one edit.
    """

    stage = "config"

    def __init__(
        self,
        message: str,
        *,
        missing_keys: list[str] | None = None,
        detail: str | None = None,
    ):
        super().__init__(message, detail=detail)
        self.missing_keys = list(missing_keys or [])


class PreflightError(ProvisioningError):
    """Host prerequisites not met (privilege, user, package manager, manifest)."""

    stage = "preflight"


class InstallError(ProvisioningError):
    """A package manager or runtime installation step failed."""

    stage = "packages"


class FilesystemError(ProvisioningError):
    """Directories could not be created, chowned, or chmodded."""

    stage = "filesystem"


class FirewallError(ProvisioningError):
    """Firewall rules could not be queried or changed."""

    stage = "firewall"


class OrchestrationError(ProvisioningError):
    """The service manifest is invalid or the stack failed to come up."""

    stage = "stack"
