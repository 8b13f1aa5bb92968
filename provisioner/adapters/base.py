"""
Adapter base — the contract between provisioning services and host tools.

Services never call ``apt-get``, ``ufw``, ``docker`` or the filesystem
directly. They build an Action and hand it to the registry, which
dispatches it to the adapter with the matching name. That seam is what
lets the test suite swap every host tool for a MockAdapter.
"""

from __future__ import annotations

import logging
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class ExecutionContext(BaseModel):
    """The action to perform and where to perform it."""

    action: Action
    workdir: str = "."
    params: dict[str, Any] = Field(default_factory=dict)


class Adapter(ABC):
    """Abstract base class for host tool adapters.

    Adapters perform side effects and return receipts.
    They NEVER raise — failures are captured in the Receipt.

    Subclasses declare ``operations``; ``validate`` rejects anything else
    before ``execute`` runs.
    """

    operations: frozenset[str] = frozenset()

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter identifier (e.g. 'apt', 'ufw', 'docker')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool exists on this host. Never raises."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Run the action. MUST never raise."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.operation
        if not operation:
            return False, "Missing operation"
        if self.operations and operation not in self.operations:
            return False, (
                f"Unknown operation '{operation}'. "
                f"Valid: {', '.join(sorted(self.operations))}"
            )
        return True, ""

    # ── Helpers ─────────────────────────────────────────────────

    def _run(
        self,
        ctx: ExecutionContext,
        cmd: list[str],
        *,
        timeout: int = DEFAULT_TIMEOUT,
        env: dict[str, str] | None = None,
        ok_codes: tuple[int, ...] = (0,),
    ) -> Receipt:
        """Run a command and turn its outcome into a receipt."""
        timeout = ctx.action.params.get("timeout", timeout)
        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), ctx.workdir)
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                cwd=ctx.workdir,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": cmd, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": cmd},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode in ok_codes:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=stdout,
                duration_ms=elapsed_ms,
                metadata={"command": cmd, "return_code": result.returncode, "stderr": stderr},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=stderr or f"Command exited with code {result.returncode}",
            output=stdout,
            duration_ms=elapsed_ms,
            metadata={"command": cmd, "return_code": result.returncode},
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
