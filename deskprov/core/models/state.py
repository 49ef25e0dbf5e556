"""
ProvisionState — what the provisioner knows about the machine.

Serialized to <state_dir>/state.json after every run.  It is
disposable: delete it and the next run rediscovers everything from
the filesystem (a cloned tree is found by its .git directory).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ToolPhase = Literal[
    "absent", "cloned", "patched", "configured", "built", "installed", "failed",
]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ToolState(BaseModel):
    """Lifecycle of one source tool across runs."""

    name: str
    phase: ToolPhase = "absent"
    source_dir: str = ""
    patch_applied: str | None = None     # patch URL last applied
    last_error: str | None = None
    installed_at: str | None = None
    updated_at: str = Field(default_factory=_now_iso)
    history: list[ToolPhase] = Field(default_factory=list)   # transitions of the last run


class RunRecord(BaseModel):
    """Summary of the last provisioning run."""

    run_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    status: str = ""          # ok, partial, failed, aborted
    dry_run: bool = False
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    aborted_by: str | None = None


class ProvisionState(BaseModel):
    """Root state model — serialized to state.json."""

    schema_version: int = 1

    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    gpu_vendor: str | None = None
    installed_packages: list[str] = Field(default_factory=list)
    tools: dict[str, ToolState] = Field(default_factory=dict)
    last_run: RunRecord = Field(default_factory=RunRecord)

    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def set_tool_state(self, name: str, **kwargs: Any) -> None:
        """Update or create a tool state entry."""
        if name in self.tools:
            for key, value in kwargs.items():
                setattr(self.tools[name], key, value)
            self.tools[name].updated_at = _now_iso()
        else:
            self.tools[name] = ToolState(name=name, **kwargs)
