"""
Desktop configuration — the declarative description of the machine.

Loaded from desktop.yml (or the built-in defaults), this is the single
source of truth for what should be installed and configured.  Every
model here is frozen: the configuration is built once at startup and
passed by reference into each component, never mutated.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

GpuVendor = Literal["nvidia", "amd", "intel", "none"]
GpuDriver = Literal["auto", "nvidia", "amd", "intel", "none"]

ESSENTIAL_GROUP = "essential"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PackageGroup(_Frozen):
    """A named, independently enable/disable-able set of packages.

    An empty ``packages`` list means "skip this feature".
    """

    name: str
    packages: tuple[str, ...] = ()
    required: bool = False
    description: str = ""

    @property
    def empty(self) -> bool:
        return not self.packages


class SourceTool(_Frozen):
    """A utility built from source rather than installed as a package."""

    name: str
    repository: str
    patch_url: str | None = None
    config_override: str | None = None   # path to a user config.h

    @field_validator("name")
    @classmethod
    def _name_is_a_directory_name(cls, v: str) -> str:
        if not v or "/" in v or v in (".", ".."):
            raise ValueError(f"invalid tool name: {v!r}")
        return v


class GpuSettings(_Frozen):
    """GPU driver selection and the packages installed per vendor."""

    driver: GpuDriver = "auto"
    nvidia: tuple[str, ...] = ("nvidia-driver", "firmware-misc-nonfree")
    amd: tuple[str, ...] = ("firmware-amd-graphics", "libgl1-mesa-dri")
    intel: tuple[str, ...] = ("intel-media-va-driver", "mesa-va-drivers")

    def packages_for(self, vendor: GpuVendor) -> tuple[str, ...]:
        if vendor == "none":
            return ()
        return getattr(self, vendor)


class Paths(_Frozen):
    """Filesystem locations used by the provisioner.

    ``~`` and ``$VARS`` are expanded when the config is loaded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    home: str = "~"
    source_dir: str = "~/.local/src"
    config_dir: str = "~/.config/suckless"
    bin_dir: str = "~/.local/bin"
    wallpaper: str = "~/.wallpaper"
    state_dir: str = "~/.local/state/deskprov"

    @field_validator("*")
    @classmethod
    def _expand(cls, v: str) -> str:
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def home_path(self) -> Path:
        return Path(self.home)

    def tool_source(self, tool: str) -> Path:
        return Path(self.source_dir) / tool

    def tool_config(self, tool: str) -> Path:
        return Path(self.config_dir) / tool


class Defaults(_Frozen):
    """Default applications and session behaviour."""

    editor: str = "nano"
    browser: str = "firefox"
    terminal: str = "st"
    auto_start_x: bool = True
    wallpaper_size: str = "1920x1080"

    @field_validator("wallpaper_size")
    @classmethod
    def _geometry(cls, v: str) -> str:
        w, sep, h = v.partition("x")
        if not sep or not w.isdigit() or not h.isdigit():
            raise ValueError(f"wallpaper_size must look like 1920x1080, got {v!r}")
        return v


class Autostart(_Frozen):
    """An optional line in the window-manager launch script.

    Enabled only when ``requires`` (a package or tool name) was
    actually installed.  Empty ``requires`` means always enabled.
    """

    name: str
    command: str
    requires: str = ""


class InstallPolicy(_Frozen):
    """How package installation failures are treated.

    batch:
        Install every non-empty group with a single package-manager
        invocation.  On failure, groups are retried one by one to find
        the failing ones.
    optional_failure:
        ``warn`` records a failing optional group and continues;
        ``abort`` treats it like a required failure.
    """

    batch: bool = True
    optional_failure: Literal["warn", "abort"] = "warn"
    update_index: bool = True


class Services(_Frozen):
    """System service tweaks tied to optional package groups."""

    enable_network_manager: bool = True
    add_user_to_audio_group: bool = True


def _default_groups() -> tuple[PackageGroup, ...]:
    return (
        PackageGroup(
            name=ESSENTIAL_GROUP,
            required=True,
            description="X11 and build essentials",
            packages=(
                "build-essential", "git", "libx11-dev", "libxft-dev",
                "libxinerama-dev", "libxrandr-dev", "libimlib2-dev",
                "xorg", "xinit", "pkg-config",
            ),
        ),
        PackageGroup(
            name="wm",
            description="Wallpaper setter, compositor, image tool",
            packages=("feh", "picom", "imagemagick"),
        ),
        PackageGroup(name="audio", packages=("pulseaudio", "alsa-utils")),
        PackageGroup(name="network", packages=("network-manager",)),
        PackageGroup(name="apps", packages=("firefox-esr", "nano")),
    )


def _default_tools() -> tuple[SourceTool, ...]:
    return tuple(
        SourceTool(name=name, repository=f"https://git.suckless.org/{name}")
        for name in ("dwm", "st", "dmenu", "slock", "slstatus")
    )


def _default_autostart() -> tuple[Autostart, ...]:
    return (
        Autostart(name="wallpaper", command="feh --bg-scale {wallpaper}", requires="feh"),
        Autostart(name="compositor", command="picom -b", requires="picom"),
        Autostart(name="statusbar", command="slstatus", requires="slstatus"),
    )


class DesktopConfig(_Frozen):
    """Root configuration — loaded from desktop.yml.

    If something isn't declared here, the provisioner doesn't touch it.
    """

    version: int = 1
    window_manager: str = "dwm"

    groups: tuple[PackageGroup, ...] = Field(default_factory=_default_groups)
    tools: tuple[SourceTool, ...] = Field(default_factory=_default_tools)
    autostart: tuple[Autostart, ...] = Field(default_factory=_default_autostart)

    gpu: GpuSettings = Field(default_factory=GpuSettings)
    paths: Paths = Field(default_factory=Paths)
    defaults: Defaults = Field(default_factory=Defaults)
    install: InstallPolicy = Field(default_factory=InstallPolicy)
    services: Services = Field(default_factory=Services)

    @field_validator("groups")
    @classmethod
    def _essential_is_required(cls, groups: tuple[PackageGroup, ...]) -> tuple[PackageGroup, ...]:
        return tuple(
            g.model_copy(update={"required": True}) if g.name == ESSENTIAL_GROUP and not g.required else g
            for g in groups
        )

    @model_validator(mode="after")
    def _check_invariants(self) -> DesktopConfig:
        essential = self.get_group(ESSENTIAL_GROUP)
        if essential is None or essential.empty:
            raise ValueError(f"the '{ESSENTIAL_GROUP}' package group must exist and be non-empty")

        group_names = [g.name for g in self.groups]
        dupes = sorted({n for n in group_names if group_names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate package group names: {', '.join(dupes)}")

        tool_names = [t.name for t in self.tools]
        dupes = sorted({n for n in tool_names if tool_names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate tool names: {', '.join(dupes)}")

        if self.window_manager not in tool_names:
            raise ValueError(
                f"window manager '{self.window_manager}' is not in the tool list"
            )
        return self

    # ── Lookups ─────────────────────────────────────────────────

    def get_group(self, name: str) -> PackageGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def get_tool(self, name: str) -> SourceTool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def group_enabled(self, name: str) -> bool:
        group = self.get_group(name)
        return group is not None and not group.empty

    @property
    def tool_names(self) -> frozenset[str]:
        return frozenset(t.name for t in self.tools)

    @property
    def all_packages(self) -> frozenset[str]:
        return frozenset(p for g in self.groups for p in g.packages)

    def build_order(self) -> list[SourceTool]:
        """Tools in build order: the window manager first, then the rest as declared."""
        wm = [t for t in self.tools if t.name == self.window_manager]
        rest = [t for t in self.tools if t.name != self.window_manager]
        return wm + rest
