"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from deskprov.adapters.base import ExecutionContext
from deskprov.adapters.mock import MockAdapter
from deskprov.adapters.registry import AdapterRegistry
from deskprov.adapters.shell.filesystem import FilesystemAdapter
from deskprov.core.models.config import DesktopConfig, Paths, Services
from deskprov.core.models.plan import ExecutionResult


class FakeGitAdapter(MockAdapter):
    """Git stand-in: 'clones' by creating a .git directory, records actions."""

    def __init__(self):
        super().__init__(adapter_name="git", kinds=("clone-or-update", "apply-patch"))
        self.actions: list[tuple[str, str]] = []

    def execute(self, context: ExecutionContext) -> ExecutionResult:
        if context.step.id in self._responses or context.step.kind != "clone-or-update":
            return super().execute(context)

        self._call_log.append(context)
        dest = Path(context.param("dest"))
        if (dest / ".git").exists():
            action = "update"
        else:
            (dest / ".git").mkdir(parents=True)
            (dest / "Makefile").write_text("all:\n")
            action = "clone"
        self.actions.append((context.step.owner or "", action))
        return ExecutionResult.success(
            adapter=self.name,
            step_id=context.step.id,
            metadata={"action": action, "dest": str(dest)},
        )


def make_paths(root: Path) -> Paths:
    home = root / "home"
    return Paths(
        home=str(home),
        source_dir=str(home / ".local" / "src"),
        config_dir=str(home / ".config" / "suckless"),
        bin_dir=str(home / ".local" / "bin"),
        wallpaper=str(home / ".wallpaper"),
        state_dir=str(root / "state"),
    )


@pytest.fixture
def paths(tmp_path: Path) -> Paths:
    """Filesystem locations confined to tmp_path."""
    return make_paths(tmp_path)


@pytest.fixture
def desktop_config(paths: Paths) -> DesktopConfig:
    """Default desktop with paths under tmp_path and service tweaks off."""
    return DesktopConfig(
        paths=paths,
        services=Services(enable_network_manager=False, add_user_to_audio_group=False),
    )


@pytest.fixture
def fake_git() -> FakeGitAdapter:
    return FakeGitAdapter()


@pytest.fixture
def registry(fake_git: FakeGitAdapter) -> AdapterRegistry:
    """Registry with no real system access except writes under tmp_path."""
    reg = AdapterRegistry()
    reg.register(MockAdapter(adapter_name="apt", kinds=("install-packages",)))
    reg.register(fake_git)
    reg.register(MockAdapter(adapter_name="make", kinds=("build-install",)))
    reg.register(MockAdapter(adapter_name="shell", kinds=("run-command",)))
    reg.register(FilesystemAdapter())
    return reg
