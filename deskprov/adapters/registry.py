"""
Adapter registry — central dispatch for step execution.

The executor never talks to adapters directly — always through the
registry, which routes each step to the adapter for its kind,
validates, dry-runs, and times the call.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.core.models.plan import ExecutionResult, ProvisioningStep

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry and dispatcher for adapters.

    Features:
        - Register adapters; each claims one or more step kinds
        - Mock mode: every step succeeds without touching the system
        - Query adapter availability
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._by_kind: dict[str, str] = {}
        self._mock_mode = mock_mode

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def register(self, adapter: Adapter) -> None:
        """Register an adapter and route its step kinds to it."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        for kind in adapter.kinds:
            self._by_kind[kind] = name
        logger.debug("Registered adapter: %s (%s)", name, ", ".join(adapter.kinds))

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def for_kind(self, kind: str) -> Adapter | None:
        name = self._by_kind.get(kind)
        return self._adapters.get(name) if name else None

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "kinds": list(adapter.kinds),
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_step(
        self,
        step: ProvisioningStep,
        params: dict[str, Any] | None = None,
        dry_run: bool = False,
    ) -> ExecutionResult:
        """Execute a step through the adapter for its kind.

        Returns:
            ExecutionResult (never raises).
        """
        start_time = time.monotonic()
        context = ExecutionContext(
            step=step,
            dry_run=dry_run,
            params={**step.params, **(params or {})},
        )

        if self._mock_mode:
            return ExecutionResult.success(
                adapter="mock",
                step_id=step.id,
                message=f"[mock] {step.kind} {step.target}",
                metadata={"mock": True},
            )

        adapter = self.for_kind(step.kind)
        if adapter is None:
            return ExecutionResult.failure(
                adapter="",
                step_id=step.id,
                error=f"No adapter registered for step kind '{step.kind}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            is_valid, error_msg = False, f"validation error: {e}"
        if not is_valid:
            return ExecutionResult.failure(
                adapter=adapter.name,
                step_id=step.id,
                error=f"Validation failed: {error_msg}",
            )

        if dry_run:
            return ExecutionResult.skip(
                adapter=adapter.name,
                step_id=step.id,
                reason=f"[dry-run] would {step.kind} {step.target}",
                metadata={"dry_run": True},
            )

        try:
            result = adapter.execute(context)
        except Exception as e:
            # Adapters should never raise
            logger.error("Adapter %s raised during execution: %s", adapter.name, e)
            result = ExecutionResult.failure(
                adapter=adapter.name,
                step_id=step.id,
                error=f"Unexpected error: {e}",
            )

        result.duration_ms = int((time.monotonic() - start_time) * 1000)
        return result
