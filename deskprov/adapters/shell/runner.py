"""
Subprocess runner — the SINGLE PLACE where ``subprocess.run`` is called.

Privilege escalation is centralised here: a privileged command gets a
``sudo`` prefix unless the process already runs as root.  Credentials
are primed once during preflight (``sudo -v``), so individual calls
never prompt mid-run.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

# Output tail kept in results
_TAIL = 4000


def is_root() -> bool:
    return os.geteuid() == 0


def which(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def run_subprocess(
    cmd: list[str],
    *,
    privileged: bool = False,
    timeout: int | None = 600,
    cwd: str | None = None,
    env_overrides: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Run a command and capture its outcome.  Never raises.

    Args:
        cmd: Command list for ``subprocess.run()``.
        privileged: Whether the command requires root.
        timeout: Seconds before ``TimeoutExpired`` (None = no limit).
        cwd: Working directory for the command.
        env_overrides: Extra environment variables.

    Returns:
        ``{"ok": True, "stdout": "...", "elapsed_ms": N}`` on success,
        ``{"ok": False, "error": "...", ...}`` on failure.
    """
    if privileged and not is_root():
        cmd = ["sudo", *cmd]

    env = None
    if env_overrides:
        env = os.environ.copy()
        env.update(env_overrides)

    logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired:
        return {"ok": False, "error": f"Command timed out ({timeout}s)", "returncode": None}
    except FileNotFoundError:
        return {"ok": False, "error": f"Command not found: {cmd[0]}", "returncode": 127}
    except OSError as e:
        logger.exception("Subprocess error: %s", cmd)
        return {"ok": False, "error": str(e), "returncode": None}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout[-_TAIL:] if result.stdout else ""
    stderr = result.stderr[-_TAIL:] if result.stderr else ""

    if result.returncode == 0:
        return {
            "ok": True,
            "stdout": stdout,
            "stderr": stderr,
            "returncode": 0,
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "error": stderr.strip().splitlines()[-1] if stderr.strip()
        else f"Command failed (exit {result.returncode})",
        "stderr": stderr,
        "stdout": stdout,
        "returncode": result.returncode,
        "elapsed_ms": elapsed_ms,
    }


def command_succeeds(cmd: list[str], *, timeout: int = 30, cwd: str | None = None) -> bool:
    """Whether a read-only probe command exits 0."""
    return run_subprocess(cmd, timeout=timeout, cwd=cwd)["ok"]


def prime_sudo() -> bool:
    """Ask for sudo credentials once, interactively, before the run starts."""
    if is_root():
        return True
    try:
        return subprocess.run(["sudo", "-v"]).returncode == 0
    except (FileNotFoundError, OSError) as e:
        logger.error("Cannot run sudo: %s", e)
        return False
