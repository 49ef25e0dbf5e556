"""
Network probes and fetches.

Read-only reachability checks for the hosts serving tool repositories,
and the download used for patches.  Unreachable hosts are advisory:
the caller decides whether to continue.
"""

from __future__ import annotations

import logging
import time
import urllib.request
from collections.abc import Iterable
from urllib.parse import urlparse

from deskprov import __version__
from deskprov.core.reliability.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

_USER_AGENT = f"deskprov/{__version__}"


def check_reachable(url: str, timeout: int = 5) -> dict:
    """Probe a URL with a HEAD request.

    Returns::

        {"reachable": True, "url": "https://...", "latency_ms": 42}
        or
        {"reachable": False, "url": "https://...", "error": "timeout"}
    """
    start = time.monotonic()
    try:
        req = urllib.request.Request(url, method="HEAD", headers={"User-Agent": _USER_AGENT})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return {
                "reachable": True,
                "url": url,
                "status": resp.getcode(),
                "latency_ms": int((time.monotonic() - start) * 1000),
            }
    except (OSError, ValueError) as exc:
        return {
            "reachable": False,
            "url": url,
            "error": str(exc)[:200],
            "latency_ms": int((time.monotonic() - start) * 1000),
        }


def repository_hosts(urls: Iterable[str]) -> list[str]:
    """Unique ``scheme://host/`` roots of the given URLs, in first-seen order."""
    hosts: list[str] = []
    for url in urls:
        parsed = urlparse(url)
        if not parsed.scheme.startswith("http") or not parsed.netloc:
            continue
        root = f"{parsed.scheme}://{parsed.netloc}/"
        if root not in hosts:
            hosts.append(root)
    return hosts


def unreachable_hosts(urls: Iterable[str], timeout: int = 5) -> list[dict]:
    """Probe each repository host once; return the failures."""
    failures = []
    for host in repository_hosts(urls):
        probe = check_reachable(host, timeout=timeout)
        if not probe["reachable"]:
            logger.warning("Host unreachable: %s (%s)", host, probe.get("error"))
            failures.append(probe)
    return failures


def fetch_text(url: str, timeout: int = 30, policy: RetryPolicy | None = None) -> str:
    """Download a text resource with bounded retry.

    Raises:
        OSError: When every attempt fails (urllib errors are OSErrors).
    """

    def _fetch() -> str:
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read().decode("utf-8")

    return retry_call(_fetch, policy=policy)
