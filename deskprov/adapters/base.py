"""
Adapter base — the protocol contract between the executor and tools.

The executor only talks to external programs (apt-get, git, make, the
filesystem) through this protocol.  Each adapter declares the step
kinds it handles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from deskprov.core.models.plan import ExecutionResult, ProvisioningStep


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute a step.

    ``params`` starts as a copy of the step's params; the executor may
    add values resolved at run time (e.g. rendered dotfile content).
    """

    step: ProvisioningStep
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    def param(self, key: str, default: Any = None) -> Any:
        if key in self.params:
            return self.params[key]
        return self.step.params.get(key, default)


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return results.
    They NEVER raise exceptions — failures are captured in the result.
    """

    #: Step kinds this adapter executes.
    kinds: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'apt', 'git', 'make')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool exists.  Fast, never raises."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the step can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        return True, ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> ExecutionResult:
        """Execute the step and return a result.  MUST never raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
