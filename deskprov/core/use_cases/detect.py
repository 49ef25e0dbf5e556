"""
Detect use case — which GPU is this, and what would be installed for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from deskprov.core.models.config import DesktopConfig
from deskprov.core.services.gpu import classify_gpu, read_hardware_listing, resolve_gpu_vendor


@dataclass
class DetectResult:
    vendor: str = "none"
    detected: str = "none"
    source: str = "lspci"
    packages: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "vendor": self.vendor,
            "detected": self.detected,
            "source": self.source,
            "packages": list(self.packages),
        }


def detect_gpu(config: DesktopConfig, listing_file: Path | None = None) -> DetectResult:
    """Classify the GPU from lspci (or a saved listing) and apply config.

    ``detected`` is what the hardware says; ``vendor`` is what a run
    would use once the configured driver is taken into account.
    """
    if listing_file is not None:
        listing = listing_file.read_text(encoding="utf-8", errors="replace")
        source = str(listing_file)
    else:
        listing = read_hardware_listing()
        source = "lspci"

    vendor = resolve_gpu_vendor(config.gpu, listing=listing)
    return DetectResult(
        vendor=vendor,
        detected=classify_gpu(listing),
        source=source,
        packages=config.gpu.packages_for(vendor),
    )
