"""
Planner — compile the configuration into an ordered, immutable plan.

Order of the plan::

    apt-get update → packages → gpu drivers → services →
    config directories → source tools (window manager first) →
    wallpaper → dotfiles

Nothing here touches the system except reading whether per-tool
config.h overrides exist.
"""

from __future__ import annotations

import getpass
import logging
import shlex

from deskprov.core.models.config import DesktopConfig, GpuVendor
from deskprov.core.models.plan import IdempotencyCheck, ProvisioningPlan, ProvisioningStep
from deskprov.core.services.dotfiles import DOTFILES, EXECUTABLE
from deskprov.core.services.packages import split_groups
from deskprov.core.services.source_tools import tool_steps

logger = logging.getLogger(__name__)


def _current_user() -> str:
    return getpass.getuser()


# ── Step groups ─────────────────────────────────────────────────


def _package_steps(config: DesktopConfig) -> tuple[list[ProvisioningStep], list[str]]:
    active_groups, empty = split_groups(config.groups)
    active = {g.name: list(g.packages) for g in active_groups}

    steps: list[ProvisioningStep] = []
    if config.install.update_index:
        steps.append(ProvisioningStep(
            id="system:apt-update",
            kind="run-command",
            target="apt-get update",
            description="refresh the package index",
            category="packages",
            required=True,
            privileged=True,
            params={"command": ["apt-get", "update"], "timeout": 300},
        ))

    steps.append(ProvisioningStep(
        id="packages:install",
        kind="install-packages",
        target=", ".join(active),
        description=f"install {len(active)} package groups",
        category="packages",
        required=True,
        privileged=True,
        params={
            "groups": active,
            "required_groups": [g.name for g in config.groups if g.required],
            "policy": config.install.model_dump(),
        },
    ))
    return steps, empty


def _gpu_step(config: DesktopConfig, vendor: GpuVendor) -> ProvisioningStep | None:
    packages = list(config.gpu.packages_for(vendor))
    if not packages:
        return None
    group = f"gpu-{vendor}"
    return ProvisioningStep(
        id=f"gpu:{vendor}",
        kind="install-packages",
        target=group,
        description=f"install {vendor} graphics drivers",
        category="gpu",
        privileged=True,
        params={
            "groups": {group: packages},
            "required_groups": [],
            "policy": {**config.install.model_dump(), "optional_failure": "warn"},
        },
    )


def _service_steps(config: DesktopConfig) -> list[ProvisioningStep]:
    steps = []
    if config.services.enable_network_manager and config.group_enabled("network"):
        steps.append(ProvisioningStep(
            id="service:network-manager",
            kind="run-command",
            target="NetworkManager",
            description="enable NetworkManager",
            category="services",
            privileged=True,
            params={"command": ["systemctl", "enable", "NetworkManager"], "requires": "systemctl"},
            check=IdempotencyCheck(
                kind="command-succeeds",
                command=("systemctl", "is-enabled", "--quiet", "NetworkManager"),
            ),
        ))

    if config.services.add_user_to_audio_group and config.group_enabled("audio"):
        user = _current_user()
        steps.append(ProvisioningStep(
            id="service:audio-group",
            kind="run-command",
            target=f"{user} → audio",
            description=f"add {user} to the audio group",
            category="services",
            privileged=True,
            params={"command": ["usermod", "-a", "-G", "audio", user]},
            check=IdempotencyCheck(
                kind="command-succeeds",
                command=("sh", "-c", f"id -nG {shlex.quote(user)} | grep -qw audio"),
            ),
        ))
    return steps


def _directory_step(config: DesktopConfig) -> ProvisioningStep:
    paths = [str(config.paths.tool_config(t.name)) for t in config.tools]
    paths += [config.paths.bin_dir, config.paths.source_dir]
    return ProvisioningStep(
        id="system:directories",
        kind="write-file",
        target=config.paths.config_dir,
        description="create configuration directories",
        category="dotfiles",
        params={"operation": "mkdir", "paths": paths},
    )


def _wallpaper_step(config: DesktopConfig) -> ProvisioningStep:
    wallpaper = config.paths.wallpaper
    return ProvisioningStep(
        id="dotfiles:wallpaper",
        kind="run-command",
        target=wallpaper,
        description="generate a plain wallpaper",
        category="dotfiles",
        params={
            "command": ["convert", "-size", config.defaults.wallpaper_size, "xc:black", wallpaper],
            "requires": "convert",
        },
        check=IdempotencyCheck(kind="path-exists", path=wallpaper),
    )


def _dotfile_steps(config: DesktopConfig) -> list[ProvisioningStep]:
    home = config.paths.home_path
    steps = []
    for template, filename in DOTFILES.items():
        path = str(home / filename)
        params = {"operation": "write", "path": path, "template": template}
        if template in EXECUTABLE:
            params["mode"] = 0o755
        steps.append(ProvisioningStep(
            id=f"dotfiles:{template}",
            kind="write-file",
            target=path,
            description=f"generate {filename}",
            category="dotfiles",
            params=params,
        ))
    return steps


# ── Public API ──────────────────────────────────────────────────


def build_plan(config: DesktopConfig, gpu_vendor: GpuVendor = "none") -> ProvisioningPlan:
    """Derive the provisioning plan from configuration and the GPU vendor.

    Args:
        config: Validated desktop configuration.
        gpu_vendor: Resolved vendor; ``none`` adds no driver step.

    Returns:
        Immutable ProvisioningPlan.
    """
    steps, empty = _package_steps(config)

    gpu = _gpu_step(config, gpu_vendor)
    if gpu is not None:
        steps.append(gpu)

    steps.extend(_service_steps(config))
    steps.append(_directory_step(config))

    for tool in config.build_order():
        steps.extend(tool_steps(tool, config, required=tool.name == config.window_manager))

    steps.append(_wallpaper_step(config))
    steps.extend(_dotfile_steps(config))

    plan = ProvisioningPlan(steps=tuple(steps), gpu_vendor=gpu_vendor, skipped_groups=tuple(empty))
    logger.info(
        "Planned %d steps (gpu=%s, empty groups: %s)",
        plan.total_steps, gpu_vendor, ", ".join(empty) or "none",
    )
    return plan


def describe_step(step: ProvisioningStep) -> str:
    """One-line human summary of a step, used by ``plan`` and dry runs."""
    flags = []
    if step.required:
        flags.append("required")
    if step.privileged:
        flags.append("root")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"{step.id}: {step.description or step.kind}{suffix}"

