"""
Package installer — groups of packages onto package-manager invocations.

The planner turns every non-empty group into a single install step.
At execution time :func:`install_groups` issues one batched invocation
and, only when that fails, retries group by group so a broken optional
group cannot take the required ones down with it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

from deskprov.core.models.config import InstallPolicy, PackageGroup

logger = logging.getLogger(__name__)

GroupStatus = Literal["installed", "failed", "empty", "pending"]

# (packages) -> (ok, error)
InstallFn = Callable[[Sequence[str]], tuple[bool, str]]


def flatten_groups(groups: Iterable[PackageGroup | Sequence[str]]) -> list[str]:
    """Merge groups into one de-duplicated list, preserving first-seen order.

    >>> flatten_groups([["a", "b"], ["b", "c"], []])
    ['a', 'b', 'c']
    """
    seen: set[str] = set()
    flat: list[str] = []
    for group in groups:
        packages = group.packages if isinstance(group, PackageGroup) else group
        for pkg in packages:
            if pkg not in seen:
                seen.add(pkg)
                flat.append(pkg)
    return flat


def split_groups(groups: Iterable[PackageGroup]) -> tuple[list[PackageGroup], list[str]]:
    """Separate non-empty groups from the names of empty ones."""
    active: list[PackageGroup] = []
    empty: list[str] = []
    for group in groups:
        if group.empty:
            empty.append(group.name)
        else:
            active.append(group)
    return active, empty


@dataclass
class InstallOutcome:
    """Per-group result of an install step."""

    groups: dict[str, GroupStatus] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    invocations: int = 0

    def failed_groups(self) -> list[str]:
        return [name for name, status in self.groups.items() if status == "failed"]

    def installed_packages(self, groups: Mapping[str, Sequence[str]]) -> list[str]:
        return flatten_groups(
            pkgs for name, pkgs in groups.items() if self.groups.get(name) == "installed"
        )


def install_groups(
    groups: Mapping[str, Sequence[str]],
    install: InstallFn,
    policy: InstallPolicy | None = None,
) -> InstallOutcome:
    """Install package groups through ``install``.

    Args:
        groups: Group name → packages, in plan order.  Empty groups are
            recorded as ``empty`` and never passed to ``install``.
        install: Callable performing one package-manager invocation.
        policy: Batching behaviour (default: batch).

    Returns:
        InstallOutcome with a status per group.
    """
    policy = policy or InstallPolicy()
    outcome = InstallOutcome()

    active = {name: list(pkgs) for name, pkgs in groups.items() if pkgs}
    for name, pkgs in groups.items():
        outcome.groups[name] = "pending" if pkgs else "empty"

    if not active:
        return outcome

    if policy.batch:
        outcome.invocations += 1
        ok, error = install(flatten_groups(active.values()))
        if ok:
            for name in active:
                outcome.groups[name] = "installed"
            return outcome
        logger.warning("Batched install failed (%s) — retrying group by group", error)

    for name, pkgs in active.items():
        outcome.invocations += 1
        ok, error = install(pkgs)
        if ok:
            outcome.groups[name] = "installed"
        else:
            outcome.groups[name] = "failed"
            outcome.errors[name] = error
            logger.warning("Package group '%s' failed: %s", name, error)

    return outcome


def classify_failures(
    outcome: InstallOutcome,
    required_groups: Iterable[str],
    policy: InstallPolicy,
) -> tuple[list[str], list[str]]:
    """Split failed groups into (fatal, tolerated) under the policy."""
    required = set(required_groups)
    fatal: list[str] = []
    tolerated: list[str] = []
    for name in outcome.failed_groups():
        if name in required or policy.optional_failure == "abort":
            fatal.append(name)
        else:
            tolerated.append(name)
    return fatal, tolerated
