"""
APT adapter — install package groups with apt-get.

Step params:
    groups (dict[str, list[str]]): Group name → packages, in order.
    required_groups (list[str]): Groups whose failure fails the step.
    policy (dict): InstallPolicy fields (batch, optional_failure).
    timeout (int): Per-invocation timeout in seconds (default: 1800).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.adapters.shell.runner import run_subprocess, which
from deskprov.core.models.config import InstallPolicy
from deskprov.core.models.plan import ExecutionResult
from deskprov.core.services.packages import classify_failures, install_groups

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def build_install_cmd(packages: Sequence[str]) -> list[str]:
    return ["apt-get", "install", "-y", *packages]


class AptAdapter(Adapter):
    """Install system packages through apt-get."""

    kinds = ("install-packages",)

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        return which("apt-get")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        groups = context.param("groups")
        if not isinstance(groups, dict):
            return False, "Missing required param: 'groups'"
        return True, ""

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        step = context.step
        groups: dict[str, list[str]] = context.param("groups")
        policy = InstallPolicy.model_validate(context.param("policy", {}))
        timeout = context.param("timeout", 1800)

        def _install(packages: Sequence[str]) -> tuple[bool, str]:
            logger.info("apt-get install %s", " ".join(packages))
            result = run_subprocess(
                build_install_cmd(packages),
                privileged=step.privileged,
                timeout=timeout,
                env_overrides=_APT_ENV,
            )
            return result["ok"], result.get("error", "")

        outcome = install_groups(groups, _install, policy)
        fatal, tolerated = classify_failures(
            outcome, context.param("required_groups", []), policy,
        )

        metadata = {
            "groups": dict(outcome.groups),
            "installed": outcome.installed_packages(groups),
            "invocations": outcome.invocations,
            "errors": dict(outcome.errors),
        }
        warnings = [
            f"package group '{name}' failed: {outcome.errors.get(name, '')}"
            for name in tolerated
        ]

        if fatal:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=step.id,
                error="; ".join(
                    f"{name}: {outcome.errors.get(name, 'install failed')}" for name in fatal
                ),
                warnings=warnings,
                metadata=metadata,
            )

        installed = [n for n, s in outcome.groups.items() if s == "installed"]
        if tolerated and not installed:
            # nothing went in; the executor decides whether that stops the run
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=step.id,
                error="; ".join(
                    f"{name}: {outcome.errors.get(name, 'install failed')}" for name in tolerated
                ),
                metadata=metadata,
            )

        return ExecutionResult.success(
            adapter=self.name,
            step_id=step.id,
            message=f"installed groups: {', '.join(installed) or 'none'}",
            warnings=warnings,
            metadata=metadata,
        )
