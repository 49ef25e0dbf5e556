"""
Configuration loader — reads desktop.yml into the DesktopConfig model.

This is the primary entry point for loading configuration.  It reads
YAML, validates against the Pydantic models, and returns an immutable
DesktopConfig.  When no file exists anywhere, the built-in defaults
(the stock suckless desktop) are used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from deskprov.core.models.config import DesktopConfig, Paths

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "desktop.yml"
CONFIG_ENV_VAR = "DESKPROV_CONFIG"


class ConfigError(Exception):
    """Raised when the desktop configuration is invalid or unreadable."""


def user_config_path() -> Path:
    """Per-user config location: ~/.config/deskprov/desktop.yml."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "deskprov" / CONFIG_FILE


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Locate desktop.yml.

    Search order:
        1. ``$DESKPROV_CONFIG``
        2. ``desktop.yml`` in the start directory or any parent
        3. ``~/.config/deskprov/desktop.yml``

    Returns:
        Path to the config file, or None if none was found.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    current = (start_dir or Path.cwd()).resolve()
    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    user_path = user_config_path()
    if user_path.is_file():
        return user_path
    return None


def parse_config(data: Any, source: str = "<memory>") -> DesktopConfig:
    """Validate already-parsed YAML data into a DesktopConfig."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    # The YAML may wrap everything under a "desktop" key or be flat
    if "desktop" in data and isinstance(data["desktop"], dict):
        data = data["desktop"]

    try:
        return DesktopConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e


def load_config(path: Path | None = None, *, search: bool = True) -> DesktopConfig:
    """Load and validate the desktop configuration.

    Args:
        path: Explicit path to desktop.yml.  Must exist when given.
        search: When no path is given, look for one with
            :func:`find_config_file`.  Built-in defaults are used when
            nothing is found.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    if path is None and search:
        path = find_config_file()

    if path is None:
        logger.info("No %s found — using built-in defaults", CONFIG_FILE)
        return DesktopConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading desktop config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = parse_config(data, source=str(path))
    logger.info(
        "Loaded config from %s: %d groups, %d tools",
        path, len(config.groups), len(config.tools),
    )
    return config


def default_config_yaml() -> str:
    """The built-in defaults rendered as a desktop.yml document.

    Paths are written unexpanded (``~/...``) so the file is portable
    between users.
    """
    data = DesktopConfig().model_dump(mode="json")
    data["paths"] = {name: field.default for name, field in Paths.model_fields.items()}
    header = (
        "# deskprov desktop configuration\n"
        "# Empty package lists disable a feature; the 'essential' group is required.\n"
    )
    return header + yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
