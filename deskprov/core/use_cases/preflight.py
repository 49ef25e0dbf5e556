"""
Preflight use case — refuse to start on a host that can't be provisioned.

Runs after planning and before the first step.  Nothing is changed
until every check here has passed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from deskprov.adapters.shell.runner import is_root, prime_sudo, which
from deskprov.core.errors import FatalPrecondition
from deskprov.core.models.config import DesktopConfig
from deskprov.core.models.plan import ProvisioningPlan

logger = logging.getLogger(__name__)

# Executables needed before a run, and packages that provide them.
# A tool the plan installs itself doesn't have to exist yet.
REQUIRED_TOOLS: dict[str, tuple[str, ...]] = {
    "apt-get": (),
    "git": ("git",),
    "make": ("make", "build-essential"),
}


@dataclass
class PreflightResult:
    """Outcome of host checks."""

    problems: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict:
        return {"ok": self.ok, "problems": self.problems, "notes": self.notes}


def check_host(
    config: DesktopConfig,
    plan: ProvisioningPlan,
    *,
    which_fn: Callable[[str], bool] = which,
    root_fn: Callable[[], bool] = is_root,
) -> PreflightResult:
    """Check the host without changing anything."""
    result = PreflightResult()
    planned = config.all_packages

    for tool, providers in REQUIRED_TOOLS.items():
        if which_fn(tool):
            continue
        if any(p in planned for p in providers):
            result.notes.append(f"{tool} will be installed by the plan")
            continue
        result.problems.append(f"required tool not found: {tool}")

    if plan.requires_privilege and not root_fn() and not which_fn("sudo"):
        result.problems.append("root privileges needed: run as root or install sudo")

    if not plan.steps_for(config.window_manager):
        result.problems.append(f"window manager '{config.window_manager}' has no build steps")

    return result


def run_preflight(
    config: DesktopConfig,
    plan: ProvisioningPlan,
    *,
    dry_run: bool = False,
    which_fn: Callable[[str], bool] = which,
    root_fn: Callable[[], bool] = is_root,
    prime_fn: Callable[[], bool] = prime_sudo,
) -> PreflightResult:
    """Check the host and, for a real run, obtain sudo credentials once.

    Raises:
        FatalPrecondition: If any check fails.
    """
    result = check_host(config, plan, which_fn=which_fn, root_fn=root_fn)
    if not result.ok:
        raise FatalPrecondition(result.problems)

    if not dry_run and plan.requires_privilege and not root_fn():
        logger.info("Requesting sudo credentials")
        if not prime_fn():
            raise FatalPrecondition(["could not obtain sudo credentials"])

    for note in result.notes:
        logger.info(note)
    return result
