"""
Shell command adapter — run a command and capture its output.

Step params:
    command (list[str]): argv to execute (no shell).
    cwd (str): Working directory (default: inherit).
    timeout (int): Timeout in seconds (default: 600).
    requires (str): Executable that must exist; missing → step skipped.
"""

from __future__ import annotations

import logging

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.adapters.shell.runner import run_subprocess, which
from deskprov.core.models.plan import ExecutionResult

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output."""

    kinds = ("run-command",)

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return which("sh")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.param("command")
        if not command or not isinstance(command, (list, tuple)):
            return False, "Missing required param: 'command' (argv list)"
        return True, ""

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        command = [str(part) for part in context.param("command")]
        requires = context.param("requires")

        if requires and not which(requires):
            return ExecutionResult.skip(
                adapter=self.name,
                step_id=context.step.id,
                reason=f"{requires} not available",
                metadata={"command": command},
            )

        result = run_subprocess(
            command,
            privileged=context.step.privileged,
            cwd=context.param("cwd"),
            timeout=context.param("timeout", 600),
        )

        if result["ok"]:
            return ExecutionResult.success(
                adapter=self.name,
                step_id=context.step.id,
                message=result["stdout"].strip()[-200:],
                metadata={"command": command, "return_code": 0},
            )

        return ExecutionResult.failure(
            adapter=self.name,
            step_id=context.step.id,
            error=result.get("error", "command failed"),
            metadata={
                "command": command,
                "return_code": result.get("returncode"),
                "stdout": result.get("stdout", ""),
            },
        )
