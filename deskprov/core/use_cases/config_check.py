"""
Config check use case — validate desktop.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from deskprov.core.config.loader import ConfigError, find_config_file, load_config
from deskprov.core.models.config import DesktopConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: DesktopConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "window_manager": self.config.window_manager if self.config else None,
            "group_count": len(self.config.groups) if self.config else 0,
            "tool_count": len(self.config.tools) if self.config else 0,
        }


def _lint(config: DesktopConfig) -> list[str]:
    """Warnings for configurations that load but look like mistakes."""
    warnings: list[str] = []

    # Packages listed in more than one group
    owners: dict[str, list[str]] = {}
    for group in config.groups:
        for pkg in group.packages:
            owners.setdefault(pkg, []).append(group.name)
    for pkg, groups in owners.items():
        if len(groups) > 1:
            warnings.append(f"package '{pkg}' is listed in several groups: {', '.join(groups)}")

    # Autostart entries that can never be enabled
    known = config.all_packages | config.tool_names
    for entry in config.autostart:
        if entry.requires and entry.requires not in known:
            warnings.append(
                f"autostart '{entry.name}' requires '{entry.requires}', "
                "which no group or tool provides"
            )

    for group in config.groups:
        if group.empty:
            warnings.append(f"package group '{group.name}' is empty and will be skipped")

    return warnings


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate desktop configuration and report issues.

    Args:
        config_path: Optional explicit path to desktop.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    result.config_path = config_path

    try:
        config = load_config(config_path, search=False)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    if config_path is None:
        result.warnings.append("No desktop.yml found: using built-in defaults")

    result.config = config
    result.warnings.extend(_lint(config))
    result.valid = not result.errors
    return result
