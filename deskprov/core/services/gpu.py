"""
GPU detection — classify the host's graphics vendor.

:func:`classify_gpu` is a pure function over ``lspci`` text so it can
be fed a captured listing; :func:`read_hardware_listing` is the only
part that touches the system.
"""

from __future__ import annotations

import logging

from deskprov.adapters.shell.runner import run_subprocess
from deskprov.core.models.config import GpuSettings, GpuVendor

logger = logging.getLogger(__name__)

# Checked in this order; the first vendor found anywhere in the listing wins
VENDOR_PRIORITY: tuple[GpuVendor, ...] = ("nvidia", "amd", "intel")


def classify_gpu(listing: str) -> GpuVendor:
    """Classify a hardware listing into one GPU vendor.

    >>> classify_gpu("00:02.0 VGA compatible controller: Intel Corporation HD Graphics")
    'intel'
    >>> classify_gpu("")
    'none'
    """
    text = listing.lower()
    for vendor in VENDOR_PRIORITY:
        if vendor in text:
            return vendor
    return "none"


def read_hardware_listing(timeout: int = 5) -> str:
    """Return ``lspci`` output, or an empty string when it can't be run."""
    r = run_subprocess(["lspci"], timeout=timeout)
    if not r["ok"]:
        logger.warning("Cannot enumerate PCI devices: %s", r["error"])
        return ""
    return r["stdout"]


def resolve_gpu_vendor(
    settings: GpuSettings,
    listing: str | None = None,
    override: str | None = None,
) -> GpuVendor:
    """Decide which vendor's driver packages to install.

    An explicit ``override`` (CLI) wins, then a configured driver other
    than ``auto``.  ``auto`` classifies ``listing`` — read from the
    system when not given.
    """
    choice = override or settings.driver
    if choice != "auto":
        logger.debug("GPU vendor fixed to %s", choice)
        return choice  # type: ignore[return-value]

    if listing is None:
        listing = read_hardware_listing()
    vendor = classify_gpu(listing)
    logger.info("Detected GPU vendor: %s", vendor)
    return vendor
