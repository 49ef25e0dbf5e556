"""
Make adapter — build and install a source tree.

Step params:
    dest (str): Source directory containing a Makefile.
    targets (list[str]): Make targets (default: ["clean", "install"]).
    timeout (int): Seconds (default: 1800).
"""

from __future__ import annotations

import logging
from pathlib import Path

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.adapters.shell.runner import run_subprocess, which
from deskprov.core.models.plan import ExecutionResult

logger = logging.getLogger(__name__)


class MakeAdapter(Adapter):
    """Run ``make clean install`` in a tool's source tree."""

    kinds = ("build-install",)

    @property
    def name(self) -> str:
        return "make"

    def is_available(self) -> bool:
        return which("make")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        dest = context.param("dest")
        if not dest:
            return False, "Missing required param: 'dest'"
        # the tree may not exist yet at dry-run time; it is cloned by an earlier step
        if not context.dry_run and not (Path(dest) / "Makefile").is_file():
            return False, f"No Makefile in {dest}"
        return True, ""

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        dest = context.param("dest")
        targets = list(context.param("targets", ["clean", "install"]))

        result = run_subprocess(
            ["make", *targets],
            cwd=dest,
            privileged=context.step.privileged,
            timeout=context.param("timeout", 1800),
        )
        if not result["ok"]:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=context.step.id,
                error=f"make {' '.join(targets)} failed: {result.get('error', '')}",
                metadata={"dest": dest, "stderr": result.get("stderr", "")},
            )

        return ExecutionResult.success(
            adapter=self.name,
            step_id=context.step.id,
            message=f"built and installed {context.step.owner or dest}",
            metadata={"dest": dest, "elapsed_ms": result.get("elapsed_ms", 0)},
        )
