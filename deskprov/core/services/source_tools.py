"""
Source tool builder — per-tool steps and the tool lifecycle.

Each tool compiles to at most four steps::

    clone-or-update → apply-patch? → write-file (config.h overlay) → build-install

and moves through the phases::

    absent → cloned → patched? → configured? → built → installed
                          (any phase) → failed

:class:`ToolTracker` advances the phases from step results.  A failed
tool skips its remaining steps; other tools carry on.
"""

from __future__ import annotations

import logging
from pathlib import Path

from deskprov.core.models.config import DesktopConfig, SourceTool
from deskprov.core.models.plan import ExecutionResult, IdempotencyCheck, ProvisioningStep
from deskprov.core.models.state import ProvisionState, ToolPhase

logger = logging.getLogger(__name__)

CONFIG_HEADER = "config.h"


def override_source(tool: SourceTool, config: DesktopConfig) -> Path:
    """Where the user's config.h for a tool lives."""
    if tool.config_override:
        return Path(tool.config_override).expanduser()
    return config.paths.tool_config(tool.name) / CONFIG_HEADER


def tool_steps(tool: SourceTool, config: DesktopConfig, *, required: bool = False) -> list[ProvisioningStep]:
    """Compile one source tool into its ordered steps."""
    dest = str(config.paths.tool_source(tool.name))
    common = {"category": "tools", "owner": tool.name, "required": required}
    steps = [
        ProvisioningStep(
            id=f"tool:{tool.name}:clone",
            kind="clone-or-update",
            target=tool.repository,
            description=f"clone or update {tool.name}",
            params={"repository": tool.repository, "dest": dest},
            **common,
        ),
    ]

    if tool.patch_url:
        steps.append(ProvisioningStep(
            id=f"tool:{tool.name}:patch",
            kind="apply-patch",
            target=tool.patch_url,
            description=f"apply patch to {tool.name}",
            params={
                "patch_url": tool.patch_url,
                "dest": dest,
                "cache_dir": str(Path(config.paths.state_dir) / "patches" / tool.name),
            },
            **common,
        ))

    source = override_source(tool, config)
    if tool.config_override or source.is_file():
        target = str(Path(dest) / CONFIG_HEADER)
        steps.append(ProvisioningStep(
            id=f"tool:{tool.name}:config",
            kind="write-file",
            target=target,
            description=f"overlay custom {CONFIG_HEADER} for {tool.name}",
            params={"operation": "copy", "source": str(source), "path": target},
            check=IdempotencyCheck(kind="files-equal", path=target, source=str(source)),
            **common,
        ))

    steps.append(ProvisioningStep(
        id=f"tool:{tool.name}:build",
        kind="build-install",
        target=dest,
        description=f"build and install {tool.name}",
        privileged=True,
        params={"dest": dest, "targets": ["clean", "install"]},
        **common,
    ))
    return steps


def initial_phase(tool: SourceTool, config: DesktopConfig, state: ProvisionState | None = None) -> ToolPhase:
    """Where a tool stands before this run, from the filesystem and saved state."""
    if not (config.paths.tool_source(tool.name) / ".git").exists():
        return "absent"
    prior = state.tools.get(tool.name) if state else None
    if prior is not None and prior.phase == "installed":
        return "installed"
    return "cloned"


class ToolTracker:
    """Tracks each tool's phase during a run."""

    def __init__(self, initial: dict[str, ToolPhase] | None = None):
        self._phases: dict[str, ToolPhase] = dict(initial or {})
        self._history: dict[str, list[ToolPhase]] = {
            name: [phase] for name, phase in self._phases.items()
        }
        self._errors: dict[str, str] = {}
        self._patches: dict[str, str] = {}

    @classmethod
    def for_config(cls, config: DesktopConfig, state: ProvisionState | None = None) -> ToolTracker:
        return cls({t.name: initial_phase(t, config, state) for t in config.tools})

    # ── Queries ─────────────────────────────────────────────────

    @property
    def phases(self) -> dict[str, ToolPhase]:
        return dict(self._phases)

    def phase(self, name: str) -> ToolPhase:
        return self._phases.get(name, "absent")

    def history(self, name: str) -> list[ToolPhase]:
        return list(self._history.get(name, []))

    def error(self, name: str) -> str | None:
        return self._errors.get(name)

    def patch_applied(self, name: str) -> str | None:
        return self._patches.get(name)

    def is_failed(self, name: str) -> bool:
        return self._phases.get(name) == "failed"

    def installed_tools(self) -> set[str]:
        return {name for name, phase in self._phases.items() if phase == "installed"}

    def failed_tools(self) -> set[str]:
        return {name for name, phase in self._phases.items() if phase == "failed"}

    # ── Transitions ─────────────────────────────────────────────

    def _move(self, name: str, phase: ToolPhase) -> None:
        self._phases[name] = phase
        self._history.setdefault(name, []).append(phase)
        logger.debug("tool %s → %s", name, phase)

    def fail(self, name: str, error: str) -> None:
        self._errors[name] = error
        self._move(name, "failed")

    def observe(self, step: ProvisioningStep, result: ExecutionResult) -> None:
        """Advance the owning tool's phase from a step result."""
        name = step.owner
        if name is None or self.is_failed(name):
            return

        if result.failed:
            self.fail(name, result.error or "step failed")
            return

        # dry-run results say nothing about the machine
        if result.metadata.get("dry_run"):
            return

        if step.kind == "clone-or-update":
            self._move(name, "cloned")
        elif step.kind == "apply-patch":
            self._patches[name] = step.params.get("patch_url", "")
            self._move(name, "patched")
        elif step.kind == "write-file":
            # no override file means the tree keeps its stock config
            if result.status == "ok" or Path(step.params.get("source", "")).is_file():
                self._move(name, "configured")
        elif step.kind == "build-install":
            self._move(name, "built")
            self._move(name, "installed")
