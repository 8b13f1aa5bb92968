"""
Action and Receipt models — the contract between services and adapters.

Services describe what they want done as an Action; adapters answer with
a Receipt. Adapters never raise, so a failed subprocess, a missing binary
or a timeout all come back as a Receipt with status ``failed``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single operation requested from an adapter.

    The id is deterministic (``adapter:operation[:target]``) so tests can
    script a mock adapter's answer for one specific call.
    """

    id: str
    adapter: str
    operation: str = ""
    target: str = ""
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def make(
        cls,
        adapter: str,
        operation: str,
        target: str = "",
        **params: Any,
    ) -> Action:
        """Build an action with its canonical id."""
        action_id = f"{adapter}:{operation}:{target}" if target else f"{adapter}:{operation}"
        return cls(
            id=action_id,
            adapter=adapter,
            operation=operation,
            target=target,
            params=params,
        )


class Receipt(BaseModel):
    """Outcome of one adapter call."""

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )
