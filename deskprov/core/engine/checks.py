"""Idempotency checks — decide whether a step has anything left to do."""

from __future__ import annotations

import logging
from pathlib import Path

from deskprov.adapters.shell.runner import command_succeeds
from deskprov.core.models.plan import IdempotencyCheck

logger = logging.getLogger(__name__)


def _files_equal(path: str | None, source: str | None) -> bool:
    if not source or not Path(source).is_file():
        # nothing to copy
        return True
    if not path or not Path(path).is_file():
        return False
    return Path(path).read_bytes() == Path(source).read_bytes()


def check_satisfied(check: IdempotencyCheck) -> bool:
    """Whether the step guarded by ``check`` can be skipped."""
    if check.kind == "none":
        return False
    if check.kind == "path-exists":
        return bool(check.path) and Path(check.path).exists()
    if check.kind == "files-equal":
        return _files_equal(check.path, check.source)
    if check.kind == "command-succeeds":
        if not check.command:
            return False
        satisfied = command_succeeds(list(check.command))
        logger.debug("check %s → %s", " ".join(check.command), satisfied)
        return satisfied
    return False
