"""
Filesystem adapter — write, copy, and mkdir with backups.

Step params:
    operation (str): One of 'write', 'copy', 'mkdir'.
    path (str): Target file (write, copy).
    paths (list[str]): Directories to create (mkdir).
    content (str): Content to write (write).  Dotfile steps get it
        rendered by the executor at run time.
    source (str): File to copy from (copy).  Missing → step skipped.
    mode (int): Optional permission bits for the written file.
"""

from __future__ import annotations

import logging
from pathlib import Path

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.core.models.plan import ExecutionResult
from deskprov.core.services.dotfiles import WriteOutcome, write_with_backup

logger = logging.getLogger(__name__)

_VALID_OPS = {"write", "copy", "mkdir"}


class FilesystemAdapter(Adapter):
    """File and directory operations with results."""

    kinds = ("write-file",)

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.param("operation", "")
        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        if operation == "mkdir":
            if not context.param("paths"):
                return False, "Missing required param: 'paths'"
            return True, ""

        if not context.param("path"):
            return False, "Missing required param: 'path'"
        if operation == "copy" and not context.param("source"):
            return False, "Missing required param: 'source' for copy operation"
        if operation == "write" and not context.dry_run and context.param("content") is None:
            return False, "Missing required param: 'content' for write operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        operation = context.param("operation")
        try:
            if operation == "mkdir":
                return self._mkdir(context)
            if operation == "copy":
                return self._copy(context)
            return self._write(context)
        except OSError as e:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=context.step.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": context.param("path")},
            )

    def _mkdir(self, ctx: ExecutionContext) -> ExecutionResult:
        created = []
        for raw in ctx.param("paths"):
            path = Path(raw)
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                created.append(str(path))
        if not created:
            return ExecutionResult.skip(
                adapter=self.name, step_id=ctx.step.id, reason="directories already exist",
            )
        return ExecutionResult.success(
            adapter=self.name,
            step_id=ctx.step.id,
            message=f"created {len(created)} directories",
            metadata={"created": created},
        )

    def _copy(self, ctx: ExecutionContext) -> ExecutionResult:
        source = Path(ctx.param("source"))
        if not source.is_file():
            return ExecutionResult.skip(
                adapter=self.name,
                step_id=ctx.step.id,
                reason=f"no override at {source}",
            )
        outcome = write_with_backup(Path(ctx.param("path")), source.read_bytes())
        return self._written(ctx, outcome, source=str(source))

    def _write(self, ctx: ExecutionContext) -> ExecutionResult:
        outcome = write_with_backup(
            Path(ctx.param("path")),
            ctx.param("content"),
            mode=ctx.param("mode"),
        )
        return self._written(ctx, outcome)

    def _written(self, ctx: ExecutionContext, outcome: WriteOutcome, **extra: str) -> ExecutionResult:
        metadata = {
            "path": str(outcome.path),
            "changed": outcome.changed,
            "backup": str(outcome.backup) if outcome.backup else None,
            **extra,
        }
        if not outcome.changed:
            return ExecutionResult.skip(
                adapter=self.name, step_id=ctx.step.id, reason="unchanged", metadata=metadata,
            )
        message = f"wrote {outcome.path}"
        if outcome.backup:
            message += f" (backup: {outcome.backup.name})"
        return ExecutionResult.success(
            adapter=self.name, step_id=ctx.step.id, message=message, metadata=metadata,
        )
