"""
Mock adapter — scriptable stand-in for any host tool.

Returns success for every action unless told otherwise. Responses are
keyed by action id (``adapter:operation[:target]``), and every call is
logged so tests can assert what was — and was not — executed.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing."""

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def called_ids(self) -> list[str]:
        """Action ids in call order."""
        return [ctx.action.id for ctx in self._call_log]

    def calls(self, operation: str) -> list[ExecutionContext]:
        """Every logged call for one operation."""
        return [ctx for ctx in self._call_log if ctx.action.operation == operation]

    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._responses[action_id] = receipt

    def set_output(self, action_id: str, output: str) -> None:
        """Succeed with a specific stdout."""
        self._responses[action_id] = Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=output,
            metadata={"mock": True},
        )

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.action.id in self._responses:
            return self._responses[context.action.id].model_copy()

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
