"""
Adapter registry — central dispatch for every host tool call.

Services only ever talk to the registry. It resolves the adapter (or the
mock), validates the action, runs it and stamps the duration. It never
raises: an unknown adapter or a misbehaving one comes back as a failed
receipt.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry and dispatcher for adapters."""

    def __init__(self, workdir: str = ".", mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._workdir = workdir
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def workdir(self) -> str:
        return self._workdir

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Route every action to ``mock_adapter`` (or a canned success)."""
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def is_available(self, name: str) -> bool:
        """Whether the named adapter is registered and its tool exists."""
        adapter = self._adapters.get(name)
        if adapter is None:
            return False
        try:
            return adapter.is_available()
        except Exception:
            logger.debug("is_available() raised for %s", name, exc_info=True)
            return False

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        return {
            name: {
                "name": name,
                "available": self.is_available(name),
                "type": adapter.__class__.__name__,
            }
            for name, adapter in self._adapters.items()
        }

    def run(self, adapter: str, operation: str, target: str = "", **params: Any) -> Receipt:
        """Shorthand for ``execute_action(Action.make(...))``."""
        return self.execute_action(Action.make(adapter, operation, target, **params))

    def execute_action(self, action: Action) -> Receipt:
        """Dispatch one action. Returns a Receipt, never raises."""
        start_time = time.monotonic()
        context = ExecutionContext(action=action, workdir=self._workdir, params=action.params)

        adapter: Adapter | None
        if self._mock_mode and self._mock_adapter:
            adapter = self._mock_adapter
        elif self._mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.id} executed",
                metadata={"mock": True},
            )
        else:
            adapter = self._adapters.get(action.adapter)

        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {error_msg}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during %s: %s", action.adapter, action.id, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        if not receipt.duration_ms:
            receipt.duration_ms = int((time.monotonic() - start_time) * 1000)

        marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.debug("%s %s → %s", marker, action.id, receipt.status)
        return receipt
