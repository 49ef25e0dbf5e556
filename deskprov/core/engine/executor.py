"""
Engine executor — the central provisioning loop.

Takes a plan, runs each step through the adapter registry, collects
results, and keeps track of what actually got installed.

Flow per step:
    owner failed? → idempotency check → render run-time params →
    dispatch → record result → advance tool state → required failure?

A failed required step raises :class:`RequiredStepFailure` inside the
loop; the loop records it as ``aborted_by`` and stops.  Everything
already done stays done.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from deskprov.adapters.registry import AdapterRegistry
from deskprov.core.engine.checks import check_satisfied
from deskprov.core.errors import RequiredStepFailure
from deskprov.core.models.config import DesktopConfig
from deskprov.core.models.plan import ExecutionResult, ProvisioningPlan, ProvisioningStep
from deskprov.core.services.dotfiles import planned_components, render_dotfile
from deskprov.core.services.packages import flatten_groups
from deskprov.core.services.source_tools import ToolTracker

logger = logging.getLogger(__name__)


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    run_id: str = ""
    dry_run: bool = False
    results: list[ExecutionResult] = field(default_factory=list)
    installed_packages: list[str] = field(default_factory=list)
    tracker: ToolTracker = field(default_factory=ToolTracker)
    aborted_by: RequiredStepFailure | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == "ok")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def tolerated_failures(self) -> int:
        """Package groups that failed inside a step that still succeeded."""
        return sum(len(r.metadata.get("errors") or {}) for r in self.results if not r.failed)

    @property
    def warnings(self) -> list[str]:
        return [w for r in self.results for w in r.warnings]

    @property
    def status(self) -> str:
        if self.aborted_by is not None:
            return "aborted"
        if self.failed == 0 and self.tolerated_failures == 0:
            return "ok"
        if self.succeeded + self.skipped > 0:
            return "partial"
        return "failed"

    def result_for(self, step_id: str) -> ExecutionResult | None:
        for r in self.results:
            if r.step_id == step_id:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "tolerated_failures": self.tolerated_failures,
            "aborted_by": self.aborted_by.step_id if self.aborted_by else None,
            "installed_packages": list(self.installed_packages),
            "tools": self.tracker.phases,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


# ── Per-step helpers ────────────────────────────────────────────


def _installed_from(step: ProvisioningStep, result: ExecutionResult) -> list[str]:
    """Packages an install step actually put on the system."""
    if "installed" in result.metadata:
        return list(result.metadata["installed"])
    if result.status == "ok":
        # adapters without per-group metadata (mock mode)
        return flatten_groups(step.params.get("groups", {}).values())
    return []


def _components(report: ExecutionReport, config: DesktopConfig, dry_run: bool) -> set[str]:
    if dry_run:
        return planned_components(config)
    return set(report.installed_packages) | report.tracker.installed_tools()


def _runtime_params(
    step: ProvisioningStep,
    report: ExecutionReport,
    config: DesktopConfig,
    dry_run: bool,
) -> dict[str, Any]:
    """Params only known once earlier steps have run."""
    template = step.params.get("template")
    if step.kind == "write-file" and template:
        return {"content": render_dotfile(template, config, _components(report, config, dry_run))}
    return {}


def _severity(step: ProvisioningStep) -> str:
    return "required" if step.required else "optional"


def ensure_step_ok(step: ProvisioningStep, result: ExecutionResult) -> None:
    """Raise RequiredStepFailure when a required step failed."""
    if result.failed and step.required:
        raise RequiredStepFailure(step.id, result.error or "step failed")


# ── Public API ──────────────────────────────────────────────────


def execute_plan(
    plan: ProvisioningPlan,
    registry: AdapterRegistry,
    config: DesktopConfig,
    dry_run: bool = False,
    tracker: ToolTracker | None = None,
    run_id: str = "",
) -> ExecutionReport:
    """Execute all steps of a plan through the adapter registry.

    Args:
        plan: The provisioning plan.
        registry: Adapter registry for dispatch.
        config: Configuration the plan was built from.
        dry_run: If True, validate but don't execute.
        tracker: Tool lifecycle tracker seeded with the starting phases.
        run_id: Identifier recorded on the report.

    Returns:
        ExecutionReport with one result per attempted step.
    """
    report = ExecutionReport(
        run_id=run_id or generate_run_id(),
        dry_run=dry_run,
        tracker=tracker or ToolTracker.for_config(config),
    )

    for step in plan.steps:
        if step.owner and report.tracker.is_failed(step.owner):
            result = ExecutionResult.skip(
                adapter="",
                step_id=step.id,
                reason=f"{step.owner} failed earlier",
                metadata={"owner_failed": True},
            )
        elif check_satisfied(step.check):
            result = ExecutionResult.skip(
                adapter="",
                step_id=step.id,
                reason="already done",
                metadata={"check": step.check.kind},
            )
        else:
            params = _runtime_params(step, report, config, dry_run)
            result = registry.execute_step(step, params=params, dry_run=dry_run)

        result.severity = _severity(step)
        report.results.append(result)
        report.tracker.observe(step, result)
        if step.kind == "install-packages":
            report.installed_packages.extend(
                p for p in _installed_from(step, result) if p not in report.installed_packages
            )

        status_marker = "✓" if result.status == "ok" else "✗" if result.failed else "⊘"
        logger.info("%s %s → %s %s", status_marker, step.id, result.status, result.error or result.message)

        try:
            ensure_step_ok(step, result)
        except RequiredStepFailure as e:
            logger.error("Required step failed, stopping: %s", e)
            report.aborted_by = e
            break

    return report


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
