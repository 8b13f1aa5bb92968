"""
Docker adapter — runtime presence and compose operations.

Uses the docker CLI only. Every compose call is pinned to the manifest
with ``-f`` so the project is the same whatever the caller's cwd.
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


class DockerAdapter(Adapter):
    """Docker engine and Docker Compose operations.

    Operations:
        version: ``docker --version`` (ok means the runtime is installed).
        compose_version: ``docker compose version --short``.
        config (target=manifest): validate the manifest, output discarded.
        services (target=manifest): declared service names, one per line.
        up (target=manifest): ``docker compose up -d``.
        down (target=manifest): ``docker compose down``.
        ps (target=manifest): ``docker compose ps --all --format json``.
    """

    operations = frozenset({"version", "compose_version", "config", "services", "up", "down", "ps"})
    _needs_manifest = frozenset({"config", "services", "up", "down", "ps"})

    @property
    def name(self) -> str:
        return "docker"

    def is_available(self) -> bool:
        return shutil.which("docker") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, msg = super().validate(context)
        if not valid:
            return valid, msg
        if context.action.operation in self._needs_manifest and not context.action.target:
            return False, f"{context.action.operation} needs the manifest path as target"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        if not self.is_available():
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error="docker CLI not found on PATH",
            )

        operation = context.action.operation
        manifest = context.action.target

        if operation == "version":
            return self._run(context, ["docker", "--version"], timeout=15)
        if operation == "compose_version":
            return self._run(context, ["docker", "compose", "version", "--short"], timeout=15)
        if operation == "config":
            return self._compose(context, manifest, ["config", "--quiet"], timeout=60)
        if operation == "services":
            return self._compose(context, manifest, ["config", "--services"], timeout=60)
        if operation == "up":
            return self._compose(context, manifest, ["up", "-d"], timeout=1800)
        if operation == "down":
            return self._compose(context, manifest, ["down"], timeout=600)
        if operation == "ps":
            return self._compose(context, manifest, ["ps", "--all", "--format", "json"], timeout=60)
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=f"Unknown operation: {operation}",
        )

    def _compose(self, ctx: ExecutionContext, manifest: str, args: list[str], timeout: int) -> Receipt:
        return self._run(ctx, ["docker", "compose", "-f", manifest, *args], timeout=timeout)
