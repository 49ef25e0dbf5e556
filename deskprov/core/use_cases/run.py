"""
Run use case — provision the desktop.

This is the top-level orchestrator: it resolves the GPU, plans, checks
the host, executes, reports, and persists.  The full vertical slice
from configuration to an audited, summarised run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from deskprov.adapters.registry import AdapterRegistry
from deskprov.core.engine.executor import ExecutionReport, execute_plan, generate_run_id
from deskprov.core.engine.planner import build_plan
from deskprov.core.models.config import DesktopConfig, GpuVendor
from deskprov.core.models.plan import ProvisioningPlan
from deskprov.core.models.state import ProvisionState, RunRecord
from deskprov.core.persistence.audit import RunEntry, RunLedger
from deskprov.core.persistence.state_file import default_state_path, load_state, save_state
from deskprov.core.services.gpu import resolve_gpu_vendor
from deskprov.core.services.network import unreachable_hosts
from deskprov.core.services.report import ProvisioningReport, build_report
from deskprov.core.services.source_tools import ToolTracker
from deskprov.core.use_cases.preflight import run_preflight

logger = logging.getLogger(__name__)

# (advisories) -> continue?
ConfirmFn = Callable[[list[str]], bool]


@dataclass
class RunResult:
    """Result of a provisioning run."""

    plan: ProvisioningPlan | None = None
    execution: ExecutionReport | None = None
    report: ProvisioningReport | None = None
    advisories: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return 2
        if self.execution is not None and self.execution.aborted_by is not None:
            return self.execution.aborted_by.exit_code
        return 0

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code, "cancelled": self.cancelled}
        if self.report:
            result["report"] = self.report.to_dict()
        if self.execution:
            result["execution"] = self.execution.to_dict()
        if self.cancelled:
            result["advisories"] = list(self.advisories)
        return result


def build_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every production adapter registered."""
    from deskprov.adapters.build.make import MakeAdapter
    from deskprov.adapters.packages.apt import AptAdapter
    from deskprov.adapters.shell.command import ShellCommandAdapter
    from deskprov.adapters.shell.filesystem import FilesystemAdapter
    from deskprov.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(AptAdapter())
    registry.register(GitAdapter())
    registry.register(MakeAdapter())
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    return registry


def plan_for(
    config: DesktopConfig,
    gpu_override: str | None = None,
    listing: str | None = None,
) -> ProvisioningPlan:
    """Resolve the GPU vendor and build the plan."""
    vendor: GpuVendor = resolve_gpu_vendor(config.gpu, listing=listing, override=gpu_override)
    return build_plan(config, vendor)


def check_repositories(config: DesktopConfig, timeout: int = 5) -> list[str]:
    """Advisory warnings for repository hosts that can't be reached."""
    urls = [t.repository for t in config.tools] + [t.patch_url for t in config.tools if t.patch_url]
    return [
        f"repository host unreachable: {probe['url']} ({probe.get('error', 'unknown error')})"
        for probe in unreachable_hosts(urls, timeout=timeout)
    ]


# ── Persistence ─────────────────────────────────────────────────


def _record_state(
    state: ProvisionState,
    config: DesktopConfig,
    plan: ProvisioningPlan,
    execution: ExecutionReport,
    started_at: str,
) -> None:
    tracker = execution.tracker
    now = datetime.now(UTC).isoformat()

    state.gpu_vendor = plan.gpu_vendor
    for pkg in execution.installed_packages:
        if pkg not in state.installed_packages:
            state.installed_packages.append(pkg)

    for tool in config.tools:
        if not plan.steps_for(tool.name):
            continue
        phase = tracker.phase(tool.name)
        updates = {
            "phase": phase,
            "source_dir": str(config.paths.tool_source(tool.name)),
            "last_error": tracker.error(tool.name),
            "history": tracker.history(tool.name),
        }
        if tracker.patch_applied(tool.name):
            updates["patch_applied"] = tracker.patch_applied(tool.name)
        if phase == "installed" and "built" in tracker.history(tool.name):
            updates["installed_at"] = now
        state.set_tool_state(tool.name, **updates)

    state.last_run = RunRecord(
        run_id=execution.run_id,
        started_at=started_at,
        ended_at=now,
        status=execution.status,
        dry_run=execution.dry_run,
        steps_total=execution.total,
        steps_succeeded=execution.succeeded,
        steps_skipped=execution.skipped,
        steps_failed=execution.failed,
        aborted_by=execution.aborted_by.step_id if execution.aborted_by else None,
    )


def _ledger_entry(
    plan: ProvisioningPlan,
    execution: ExecutionReport,
    report: ProvisioningReport,
    duration_ms: int,
    mock_mode: bool,
) -> RunEntry:
    tracker = execution.tracker
    return RunEntry(
        run_id=execution.run_id,
        dry_run=execution.dry_run,
        status=execution.status,
        steps_total=execution.total,
        steps_succeeded=execution.succeeded,
        steps_skipped=execution.skipped,
        steps_failed=execution.failed,
        duration_ms=duration_ms,
        gpu_vendor=plan.gpu_vendor,
        tools_installed=sorted(tracker.installed_tools()),
        tools_failed=sorted(tracker.failed_tools()),
        errors=[f"{r.step_id}: {r.error}" for r in execution.results if r.failed],
        warnings=list(report.warnings),
        context={"mock": mock_mode},
    )


# ── Public API ──────────────────────────────────────────────────


def run_provisioning(
    config: DesktopConfig,
    *,
    dry_run: bool = False,
    mock_mode: bool = False,
    gpu_override: str | None = None,
    listing: str | None = None,
    registry: AdapterRegistry | None = None,
    confirm: ConfirmFn | None = None,
    check_network: bool = True,
    preflight: bool = True,
) -> RunResult:
    """Provision the desktop described by ``config``.

    Args:
        config: Validated desktop configuration.
        dry_run: Plan and validate but change nothing.
        mock_mode: Use mock adapter responses (no system access).
        gpu_override: Force a GPU vendor instead of detecting one.
        listing: Hardware listing to classify instead of running lspci.
        registry: Optional pre-configured adapter registry.
        confirm: Called with advisory warnings; returning False cancels
            the run before any change.  None means continue.
        check_network: Probe repository hosts before starting.
        preflight: Check the host first (skipped in mock mode).

    Returns:
        RunResult with the execution and the summary report.

    Raises:
        FatalPrecondition: If the host fails preflight.
    """
    result = RunResult()
    started_at = datetime.now(UTC).isoformat()
    start = time.monotonic()

    # ── Plan ─────────────────────────────────────────────────────
    plan = plan_for(config, gpu_override=gpu_override, listing=listing)
    result.plan = plan

    # ── Preflight ────────────────────────────────────────────────
    if preflight and not mock_mode:
        run_preflight(config, plan, dry_run=dry_run)

    # ── Advisory checks ──────────────────────────────────────────
    if check_network and not mock_mode:
        result.advisories = check_repositories(config)
        if result.advisories and confirm is not None and not confirm(result.advisories):
            logger.info("Run cancelled by user after %d advisories", len(result.advisories))
            result.cancelled = True
            return result

    # ── Execute ──────────────────────────────────────────────────
    if registry is None:
        registry = build_registry(mock_mode=mock_mode)

    state_dir = Path(config.paths.state_dir)
    state_path = default_state_path(state_dir)
    state = load_state(state_path)

    execution = execute_plan(
        plan=plan,
        registry=registry,
        config=config,
        dry_run=dry_run,
        tracker=ToolTracker.for_config(config, state),
        run_id=generate_run_id(),
    )
    result.execution = execution
    result.report = build_report(config, plan, execution, advisories=result.advisories)

    # ── Persist state ────────────────────────────────────────────
    # mock runs changed nothing on this machine
    if not dry_run and not mock_mode:
        _record_state(state, config, plan, execution, started_at)
        save_state(state, state_path)

    # ── Write run ledger ─────────────────────────────────────────
    duration_ms = int((time.monotonic() - start) * 1000)
    RunLedger.in_dir(state_dir).write(
        _ledger_entry(plan, execution, result.report, duration_ms, mock_mode),
    )

    return result
