"""
State file persistence — atomic read/write for ProvisionState.

State is stored as JSON in <state_dir>/state.json.  Writes are atomic
(write to temp file, then rename) so an interrupted run never leaves
a half-written file behind.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from deskprov.core.models.state import ProvisionState

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "state.json"


def default_state_path(state_dir: Path | str) -> Path:
    """Get the state file path inside a state directory."""
    return Path(state_dir) / DEFAULT_STATE_FILE


def load_state(path: Path) -> ProvisionState:
    """Load provisioning state from a JSON file.

    Returns:
        ProvisionState.  A missing or corrupt file yields a fresh state.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return ProvisionState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = ProvisionState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return ProvisionState()
    except (OSError, ValidationError) as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return ProvisionState()


def save_state(state: ProvisionState, path: Path) -> None:
    """Save provisioning state to a JSON file (atomic write)."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise
