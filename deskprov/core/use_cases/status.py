"""
Status use case — what the provisioner knows about this machine.

Combines the saved state with a fresh look at the source directories,
so a deleted state file still shows which trees are cloned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from deskprov.core.models.config import DesktopConfig
from deskprov.core.models.state import ProvisionState
from deskprov.core.persistence.audit import RunEntry, RunLedger
from deskprov.core.persistence.state_file import default_state_path, load_state


@dataclass
class ToolStatus:
    name: str
    phase: str
    cloned: bool
    source_dir: str
    last_error: str | None = None
    installed_at: str | None = None


@dataclass
class StatusResult:
    """Aggregated provisioning status."""

    state: ProvisionState | None = None
    state_path: Path | None = None
    tools: list[ToolStatus] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict = {"state_path": str(self.state_path) if self.state_path else None}
        if self.state:
            result["gpu_vendor"] = self.state.gpu_vendor
            result["installed_packages"] = list(self.state.installed_packages)
            result["last_run"] = self.state.last_run.model_dump(mode="json")
        result["tools"] = [
            {
                "name": t.name,
                "phase": t.phase,
                "cloned": t.cloned,
                "source_dir": t.source_dir,
                "last_error": t.last_error,
                "installed_at": t.installed_at,
            }
            for t in self.tools
        ]
        return result


def get_status(config: DesktopConfig) -> StatusResult:
    """Get provisioning status for the configured tools."""
    state_path = default_state_path(config.paths.state_dir)
    state = load_state(state_path)
    result = StatusResult(state=state, state_path=state_path)

    for tool in config.build_order():
        source = config.paths.tool_source(tool.name)
        saved = state.tools.get(tool.name)
        cloned = (source / ".git").is_dir()
        phase = saved.phase if saved else ("cloned" if cloned else "absent")
        result.tools.append(ToolStatus(
            name=tool.name,
            phase=phase,
            cloned=cloned,
            source_dir=str(source),
            last_error=saved.last_error if saved else None,
            installed_at=saved.installed_at if saved else None,
        ))
    return result


def get_history(config: DesktopConfig, n: int = 20) -> list[RunEntry]:
    """The most recent runs from the ledger, oldest first."""
    return RunLedger.in_dir(config.paths.state_dir).read_recent(n)
