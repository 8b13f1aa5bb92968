"""
APT adapter — the host's native package manager.

Query goes through ``dpkg-query``; everything that mutates goes through
``apt-get`` with a non-interactive frontend.
"""

from __future__ import annotations

import logging
import os
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

_INSTALLED_MARKER = "install ok installed"


class AptAdapter(Adapter):
    """Debian/Ubuntu package management.

    Operations:
        query (target=package): ok if installed, failed otherwise.
        update: refresh the package index.
        install (packages=[...]): install a list of packages.
        remove (packages=[...]): remove packages; absent ones are not an error.
    """

    operations = frozenset({"query", "update", "install", "remove"})

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        return shutil.which("apt-get") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, msg = super().validate(context)
        if not valid:
            return valid, msg
        operation = context.action.operation
        if operation == "query" and not context.action.target:
            return False, "query needs a package name"
        if operation in ("install", "remove") and not context.action.params.get("packages"):
            return False, f"{operation} needs a non-empty 'packages' list"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.operation
        if operation == "query":
            return self._query(context)
        if operation == "update":
            return self._run(context, ["apt-get", "update"], env=self._env(), timeout=600)
        if operation == "install":
            packages = list(context.action.params["packages"])
            return self._run(
                context,
                ["apt-get", "install", "-y", *packages],
                env=self._env(),
                timeout=1800,
            )
        if operation == "remove":
            packages = list(context.action.params["packages"])
            # apt-get exits 100 when a listed package is unknown
            return self._run(
                context,
                ["apt-get", "remove", "-y", *packages],
                env=self._env(),
                ok_codes=(0, 100),
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=f"Unknown operation: {operation}",
        )

    def _query(self, ctx: ExecutionContext) -> Receipt:
        package = ctx.action.target
        receipt = self._run(ctx, ["dpkg-query", "-W", "-f=${Status}", package], timeout=10)
        if receipt.ok and _INSTALLED_MARKER in receipt.output:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output="installed",
                metadata={"package": package, "installed": True},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=f"{package} is not installed",
            metadata={"package": package, "installed": False},
        )

    @staticmethod
    def _env() -> dict[str, str]:
        env = os.environ.copy()
        env["DEBIAN_FRONTEND"] = "noninteractive"
        return env
