"""
Git adapter — clone/update source trees and apply patches.

Uses the git CLI.  An existing clone is always updated in place, never
deleted and recloned, so local edits survive (``--autostash``).

Step params (clone-or-update):
    repository (str): Clone URL.
    dest (str): Local source directory.
    timeout (int): Seconds (default: 600).

Step params (apply-patch):
    patch_url (str): URL of a unified diff.
    dest (str): Source tree to patch.
    cache_dir (str): Where downloaded patches are kept.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.adapters.shell.runner import run_subprocess, which
from deskprov.core.models.plan import ExecutionResult
from deskprov.core.services.network import fetch_text

logger = logging.getLogger(__name__)


def is_clone(path: Path) -> bool:
    return (path / ".git").exists()


def patch_cache_path(cache_dir: Path, url: str) -> Path:
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
    name = Path(url.rstrip("/")).name or "patch.diff"
    return cache_dir / f"{digest}-{name}"


class GitAdapter(Adapter):
    """Version control operations for source tools."""

    kinds = ("clone-or-update", "apply-patch")

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return which("git")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.param("dest"):
            return False, "Missing required param: 'dest'"
        if context.step.kind == "clone-or-update" and not context.param("repository"):
            return False, "Missing required param: 'repository'"
        if context.step.kind == "apply-patch" and not context.param("patch_url"):
            return False, "Missing required param: 'patch_url'"
        return True, ""

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        if context.step.kind == "apply-patch":
            return self._apply_patch(context)
        return self._clone_or_update(context)

    # ── Operations ──────────────────────────────────────────────

    def _clone_or_update(self, ctx: ExecutionContext) -> ExecutionResult:
        dest = Path(ctx.param("dest"))
        repository = ctx.param("repository")
        timeout = ctx.param("timeout", 600)

        if is_clone(dest):
            result = run_subprocess(
                ["git", "pull", "--rebase", "--autostash"],
                cwd=str(dest),
                timeout=timeout,
            )
            action = "update"
        elif dest.exists() and any(dest.iterdir()):
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=ctx.step.id,
                error=f"{dest} exists but is not a git clone — refusing to overwrite it",
            )
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            result = run_subprocess(
                ["git", "clone", repository, str(dest)],
                timeout=timeout,
            )
            action = "clone"

        if not result["ok"]:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=ctx.step.id,
                error=f"git {action} failed: {result.get('error', '')}",
                metadata={"action": action, "dest": str(dest)},
            )

        return ExecutionResult.success(
            adapter=self.name,
            step_id=ctx.step.id,
            message=f"{'cloned' if action == 'clone' else 'updated'} {dest}",
            metadata={"action": action, "dest": str(dest)},
        )

    def _apply_patch(self, ctx: ExecutionContext) -> ExecutionResult:
        dest = Path(ctx.param("dest"))
        url = ctx.param("patch_url")
        cache_dir = Path(ctx.param("cache_dir") or dest.parent / ".patches")

        patch_file = patch_cache_path(cache_dir, url)
        if not patch_file.is_file():
            try:
                text = fetch_text(url, timeout=ctx.param("timeout", 30))
            except (OSError, ValueError) as e:
                return ExecutionResult.failure(
                    adapter=self.name,
                    step_id=ctx.step.id,
                    error=f"cannot download patch {url}: {e}",
                    metadata={"patch_url": url},
                )
            cache_dir.mkdir(parents=True, exist_ok=True)
            patch_file.write_text(text, encoding="utf-8")

        meta = {"patch_url": url, "patch_file": str(patch_file)}

        already = run_subprocess(
            ["git", "apply", "--reverse", "--check", str(patch_file)], cwd=str(dest),
        )
        if already["ok"]:
            return ExecutionResult.skip(
                adapter=self.name,
                step_id=ctx.step.id,
                reason="patch already applied",
                metadata={**meta, "already_applied": True},
            )

        # --check first: git apply is all-or-nothing, but a failed check
        # gives a clearer error than a failed apply
        check = run_subprocess(["git", "apply", "--check", str(patch_file)], cwd=str(dest))
        if not check["ok"]:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=ctx.step.id,
                error=f"patch does not apply: {check.get('error', '')}",
                metadata=meta,
            )

        applied = run_subprocess(["git", "apply", str(patch_file)], cwd=str(dest))
        if not applied["ok"]:
            return ExecutionResult.failure(
                adapter=self.name,
                step_id=ctx.step.id,
                error=f"git apply failed: {applied.get('error', '')}",
                metadata=meta,
            )

        return ExecutionResult.success(
            adapter=self.name,
            step_id=ctx.step.id,
            message=f"applied {patch_file.name}",
            metadata=meta,
        )
