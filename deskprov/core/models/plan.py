"""
Plan models — steps, the plan, and per-step results.

A ProvisioningStep is the unit of work.  The planner compiles the
configuration into an ordered, immutable ProvisioningPlan; the executor
dispatches each step to an adapter and gets an ExecutionResult back.
Adapters NEVER raise — failures are captured in the result.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from deskprov.core.errors import Severity
from deskprov.core.models.config import GpuVendor

StepKind = Literal[
    "install-packages",
    "clone-or-update",
    "build-install",
    "apply-patch",
    "write-file",
    "run-command",
]

# Report categories, one per section of the final summary
Category = Literal["packages", "gpu", "tools", "dotfiles", "services", "system"]

CheckKind = Literal["none", "path-exists", "command-succeeds", "files-equal"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class IdempotencyCheck(BaseModel):
    """How to tell that a step has nothing left to do.

    kinds:
        none              — always run the step
        path-exists       — skip when ``path`` exists
        command-succeeds  — skip when ``command`` exits 0
        files-equal       — skip when ``source`` is missing or
                            byte-identical to ``path``
    """

    model_config = ConfigDict(frozen=True)

    kind: CheckKind = "none"
    path: str | None = None
    source: str | None = None
    command: tuple[str, ...] = ()


class ProvisioningStep(BaseModel):
    """A single unit of provisioning work."""

    model_config = ConfigDict(frozen=True)

    id: str                          # unique within the plan, e.g. "tool:dwm:build"
    kind: StepKind
    target: str                      # what the step acts on (package set, path, tool)
    description: str = ""
    category: Category = "system"
    required: bool = False
    owner: str | None = None         # source tool this step belongs to
    privileged: bool = False         # needs root (sudo prefix unless already root)
    params: dict[str, Any] = Field(default_factory=dict)
    check: IdempotencyCheck = Field(default_factory=IdempotencyCheck)


class ProvisioningPlan(BaseModel):
    """Ordered steps derived once from configuration plus GPU detection."""

    model_config = ConfigDict(frozen=True)

    steps: tuple[ProvisioningStep, ...] = ()
    gpu_vendor: GpuVendor = "none"
    skipped_groups: tuple[str, ...] = ()
    created_at: str = Field(default_factory=_now_iso)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def requires_privilege(self) -> bool:
        """Whether any step needs root — checked once during preflight."""
        return any(s.privileged for s in self.steps)

    def get_step(self, step_id: str) -> ProvisioningStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def steps_for(self, owner: str) -> list[ProvisioningStep]:
        return [s for s in self.steps if s.owner == owner]

    def by_category(self, category: str) -> list[ProvisioningStep]:
        return [s for s in self.steps if s.category == category]


class ExecutionResult(BaseModel):
    """Outcome of one step.

    ``severity`` is only meaningful for failures and warnings:
    whether the failure stops the run (required), is recorded and
    skipped over (optional), or is informational (advisory).
    """

    step_id: str
    adapter: str = ""
    status: Literal["ok", "skipped", "failed"] = "ok"
    severity: Severity = "optional"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    message: str = ""
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """Whether the step did its work (or had none to do)."""
        return self.status in ("ok", "skipped")

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        step_id: str,
        message: str = "",
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a success result."""
        return cls(adapter=adapter, step_id=step_id, status="ok", message=message, **kwargs)

    @classmethod
    def failure(
        cls,
        adapter: str,
        step_id: str,
        error: str,
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a failure result."""
        return cls(adapter=adapter, step_id=step_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(
        cls,
        adapter: str,
        step_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a skip result."""
        return cls(adapter=adapter, step_id=step_id, status="skipped", message=reason, **kwargs)
