"""
Mock adapter — universal test double for adapter operations.

Simulates adapter behavior without touching the system.  Configurable
to fail specific steps; records every call.
"""

from __future__ import annotations

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.core.models.plan import ExecutionResult


class MockAdapter(Adapter):
    """Mock adapter for testing.

    By default, succeeds for everything.  Can be configured with
    custom results per step ID.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        kinds: tuple[str, ...] = (),
        available: bool = True,
        default_message: str = "[mock] executed",
    ):
        self._name = adapter_name
        self.kinds = kinds
        self._available = available
        self._default_message = default_message
        self._responses: dict[str, ExecutionResult] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def called_step_ids(self) -> list[str]:
        return [ctx.step.id for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, step_id: str, result: ExecutionResult) -> None:
        """Set a custom result for a specific step ID."""
        self._responses[step_id] = result

    def set_failure(self, step_id: str, error: str = "Mock failure") -> None:
        """Configure a specific step to fail."""
        self._responses[step_id] = ExecutionResult.failure(
            adapter=self._name,
            step_id=step_id,
            error=error,
        )

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        self._call_log.append(context)

        if context.step.id in self._responses:
            return self._responses[context.step.id].model_copy(deep=True)

        return ExecutionResult.success(
            adapter=self._name,
            step_id=context.step.id,
            message=self._default_message,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
