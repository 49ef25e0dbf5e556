"""
Dotfile generator — .xinitrc, .profile and .bashrc.

Content is a pure function of (installed components, configuration).
Nothing here reads previous runs; the only contact with existing files
is :func:`write_with_backup`, which never overwrites a file without
first copying it aside.

Scripts are composed with :class:`ShellScript`: the generator decides
the list of lines once, then renders it.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from deskprov.core.models.config import Autostart, DesktopConfig

logger = logging.getLogger(__name__)

# Template names understood by render_dotfile(), with their file name under $HOME
DOTFILES: dict[str, str] = {
    "xinitrc": ".xinitrc",
    "profile": ".profile",
    "bashrc": ".bashrc",
}

# Executable dotfiles
EXECUTABLE = frozenset({"xinitrc"})

_BASHRC_BODY = """\
# Source system bashrc
[ -f /etc/bashrc ] && . /etc/bashrc

# Source profile
[ -f ~/.profile ] && . ~/.profile

# Prompt
PS1='\\u@\\h:\\w$ '

# History
HISTSIZE=1000
HISTCONTROL=ignoreboth

# Aliases
alias ls='ls --color=auto'
alias ll='ls -la'
alias la='ls -A'
alias l='ls -CF'
alias grep='grep --color=auto'
alias ..='cd ..'
alias ...='cd ../..'

# Custom aliases - add your own below
# alias open='xdg-open'"""


@dataclass
class ShellScript:
    """An ordered list of script lines with an optional shebang and header."""

    shebang: str | None = None
    header: list[str] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)

    def add(self, line: str) -> ShellScript:
        self.lines.append(line)
        return self

    def blank(self) -> ShellScript:
        self.lines.append("")
        return self

    def comment(self, text: str) -> ShellScript:
        self.lines.append(f"# {text}")
        return self

    def command_lines(self) -> list[str]:
        """Lines that execute something (not blank, not comments)."""
        return [ln for ln in self.lines if ln.strip() and not ln.lstrip().startswith("#")]

    def render(self) -> str:
        out: list[str] = []
        if self.shebang:
            out.append(self.shebang)
        out.extend(f"# {h}" for h in self.header)
        if out:
            out.append("")
        out.extend(self.lines)
        return "\n".join(out).rstrip("\n") + "\n"


# ── Component selection ─────────────────────────────────────────


def expand_placeholders(command: str, config: DesktopConfig) -> str:
    """Substitute ``{wallpaper}``, ``{terminal}``, ``{home}`` in a command."""
    values = {
        "wallpaper": shlex.quote(config.paths.wallpaper),
        "terminal": config.defaults.terminal,
        "home": shlex.quote(config.paths.home),
    }
    for key, value in values.items():
        command = command.replace(f"{{{key}}}", value)
    return command


def enabled_autostart(config: DesktopConfig, installed: Iterable[str]) -> list[Autostart]:
    """Autostart entries whose requirement was installed, in config order."""
    available = set(installed)
    return [a for a in config.autostart if not a.requires or a.requires in available]


def planned_components(config: DesktopConfig) -> set[str]:
    """Everything the configuration would install if every step succeeded."""
    return set(config.all_packages) | set(config.tool_names)


# ── Renderers ───────────────────────────────────────────────────


def render_xinitrc(config: DesktopConfig, installed: Iterable[str]) -> str:
    """Window-manager launch script.

    One backgrounded line per enabled autostart entry, then
    ``exec <window manager>``.  With nothing optional installed the
    script runs only the window manager.
    """
    script = ShellScript(shebang="#!/bin/sh", header=["Generated by deskprov"])
    for entry in enabled_autostart(config, installed):
        script.comment(entry.name)
        script.add(f"{expand_placeholders(entry.command, config)} 2>/dev/null &")
    script.comment("window manager")
    script.add(f"exec {config.window_manager}")
    return script.render()


def render_profile(config: DesktopConfig) -> str:
    d = config.defaults
    script = ShellScript(header=["Generated by deskprov"])
    script.comment("Local binaries")
    script.add('export PATH="$HOME/.local/bin:$PATH"')
    script.blank()
    script.comment("Default applications")
    script.add(f"export EDITOR={shlex.quote(d.editor)}")
    script.add(f"export BROWSER={shlex.quote(d.browser)}")
    script.add(f"export TERMINAL={shlex.quote(d.terminal)}")
    if d.auto_start_x:
        script.blank()
        script.comment("Start X on tty1")
        script.add('[ -z "$DISPLAY" ] && [ "$XDG_VTNR" = 1 ] && exec startx')
    return script.render()


def render_bashrc(config: DesktopConfig) -> str:
    script = ShellScript(header=["Generated by deskprov"])
    script.lines.extend(_BASHRC_BODY.splitlines())
    return script.render()


def render_dotfile(name: str, config: DesktopConfig, installed: Iterable[str]) -> str:
    """Render a dotfile by template name (see :data:`DOTFILES`)."""
    if name == "xinitrc":
        return render_xinitrc(config, installed)
    if name == "profile":
        return render_profile(config)
    if name == "bashrc":
        return render_bashrc(config)
    raise ValueError(f"Unknown dotfile template '{name}'")


# ── Writing ─────────────────────────────────────────────────────


@dataclass
class WriteOutcome:
    path: Path
    changed: bool
    backup: Path | None = None


def backup_path(path: Path, stamp: str | None = None) -> Path:
    """``PATH.bak.YYYYMMDD_HHMMSS``, with a counter if that name is taken."""
    stamp = stamp or time.strftime("%Y%m%d_%H%M%S")
    candidate = path.with_name(f"{path.name}.bak.{stamp}")
    n = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.bak.{stamp}.{n}")
        n += 1
    return candidate


def write_with_backup(
    path: Path,
    content: str | bytes,
    mode: int | None = None,
) -> WriteOutcome:
    """Write ``content`` to ``path``, backing up different prior content.

    Identical content is a no-op.  A prior version is copied
    byte-for-byte (metadata preserved) before being overwritten.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    backup: Path | None = None

    if path.exists():
        if path.is_file() and path.read_bytes() == data:
            if mode is not None:
                path.chmod(mode)
            return WriteOutcome(path=path, changed=False)
        backup = backup_path(path)
        shutil.copy2(path, backup)
        logger.info("Backed up %s → %s", path, backup)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if mode is not None:
        path.chmod(mode)
    return WriteOutcome(path=path, changed=True, backup=backup)
