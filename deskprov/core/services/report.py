"""
Reporter — turn step results into the end-of-run summary.

The report is built only from what actually happened: a group is
"installed" because the package step said so, a tool is "installed"
because its build step succeeded.  Steps that never ran (the plan was
aborted first) show up as ``not run``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from deskprov.core.engine.executor import ExecutionReport
from deskprov.core.models.config import DesktopConfig
from deskprov.core.models.plan import ProvisioningPlan, ProvisioningStep

logger = logging.getLogger(__name__)

NOT_RUN = "not run"
SKIPPED_EMPTY = "skipped (empty)"


@dataclass
class ItemStatus:
    """One line of the summary."""

    name: str
    status: str
    detail: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "status": self.status, "detail": self.detail}


@dataclass
class ProvisioningReport:
    """What was installed, skipped, and failed — per category."""

    run_id: str = ""
    dry_run: bool = False
    status: str = ""
    gpu_vendor: str = "none"

    packages: list[ItemStatus] = field(default_factory=list)
    gpu: list[ItemStatus] = field(default_factory=list)
    tools: list[ItemStatus] = field(default_factory=list)
    dotfiles: list[ItemStatus] = field(default_factory=list)
    services: list[ItemStatus] = field(default_factory=list)

    warnings: list[str] = field(default_factory=list)
    aborted_by: str | None = None
    next_steps: list[str] = field(default_factory=list)

    def sections(self) -> dict[str, list[ItemStatus]]:
        return {
            "packages": self.packages,
            "gpu": self.gpu,
            "tools": self.tools,
            "dotfiles": self.dotfiles,
            "services": self.services,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "status": self.status,
            "gpu_vendor": self.gpu_vendor,
            **{name: [i.to_dict() for i in items] for name, items in self.sections().items()},
            "warnings": list(self.warnings),
            "aborted_by": self.aborted_by,
            "next_steps": list(self.next_steps),
        }


# ── Builders ────────────────────────────────────────────────────


def _step_status(step: ProvisioningStep, execution: ExecutionReport) -> ItemStatus:
    result = execution.result_for(step.id)
    if result is None:
        return ItemStatus(step.target, NOT_RUN)
    if result.failed:
        return ItemStatus(step.target, "failed", result.error or "")
    if result.skipped:
        return ItemStatus(step.target, "skipped", result.message)
    return ItemStatus(step.target, "ok", result.message)


def _package_items(plan: ProvisioningPlan, execution: ExecutionReport) -> list[ItemStatus]:
    items: list[ItemStatus] = []
    step = plan.get_step("packages:install")
    if step is not None:
        result = execution.result_for(step.id)
        groups: dict[str, list[str]] = step.params.get("groups", {})
        per_group: dict[str, str] = result.metadata.get("groups", {}) if result else {}
        errors: dict[str, str] = result.metadata.get("errors", {}) if result else {}
        for name, packages in groups.items():
            if result is None:
                status = NOT_RUN
            elif result.metadata.get("dry_run"):
                status = "planned"
            elif name in per_group:
                status = per_group[name]
            else:
                status = "installed" if result.status == "ok" else "failed"
            items.append(ItemStatus(name, status, errors.get(name) or " ".join(packages)))
    items.extend(ItemStatus(name, SKIPPED_EMPTY) for name in plan.skipped_groups)
    return items


def _gpu_items(plan: ProvisioningPlan, execution: ExecutionReport) -> list[ItemStatus]:
    steps = plan.by_category("gpu")
    if not steps:
        return [ItemStatus(plan.gpu_vendor, "skipped", "no driver packages for this GPU")]
    return [_step_status(s, execution) for s in steps]


def _tool_items(config: DesktopConfig, plan: ProvisioningPlan, execution: ExecutionReport) -> list[ItemStatus]:
    tracker = execution.tracker
    items = []
    for tool in config.build_order():
        steps = plan.steps_for(tool.name)
        ran = any(execution.result_for(s.id) for s in steps)
        if not ran:
            items.append(ItemStatus(tool.name, NOT_RUN))
            continue
        phase = tracker.phase(tool.name)
        if execution.dry_run and phase != "failed":
            items.append(ItemStatus(tool.name, "planned", f"currently {phase}"))
            continue
        detail = tracker.error(tool.name) or ""
        if not detail:
            clone = execution.result_for(f"tool:{tool.name}:clone")
            if clone is not None:
                detail = clone.metadata.get("action", "")
        items.append(ItemStatus(tool.name, phase, detail))
    return items


def _next_steps(config: DesktopConfig) -> list[str]:
    hints = ["Reboot or run 'source ~/.profile' to apply changes"]
    if config.defaults.auto_start_x:
        hints.append("X will start automatically on tty1")
    else:
        hints.append("Run 'startx' to start the desktop")
    hints.append(f"Edit tool configs in {config.paths.source_dir}/<tool>/config.h")
    hints.append(f"Or place custom configs in {config.paths.config_dir}/<tool>/config.h and re-run")
    return hints


def build_report(
    config: DesktopConfig,
    plan: ProvisioningPlan,
    execution: ExecutionReport,
    advisories: list[str] | None = None,
) -> ProvisioningReport:
    """Summarise an execution, category by category."""
    report = ProvisioningReport(
        run_id=execution.run_id,
        dry_run=execution.dry_run,
        status=execution.status,
        gpu_vendor=plan.gpu_vendor,
        packages=_package_items(plan, execution),
        gpu=_gpu_items(plan, execution),
        tools=_tool_items(config, plan, execution),
        dotfiles=[_step_status(s, execution) for s in plan.by_category("dotfiles")],
        services=[_step_status(s, execution) for s in plan.by_category("services")],
    )

    report.warnings.extend(advisories or [])
    report.warnings.extend(execution.warnings)
    for step in plan.steps:
        result = execution.result_for(step.id)
        if result is not None and result.failed and not step.required:
            report.warnings.append(f"{step.id}: {result.error}")

    if execution.aborted_by is not None:
        report.aborted_by = str(execution.aborted_by)
    elif not execution.dry_run:
        report.next_steps = _next_steps(config)

    logger.debug("Report built: %s, %d warnings", report.status, len(report.warnings))
    return report
