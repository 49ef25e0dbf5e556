"""
Tests for the source tool builder — step generation, lifecycle
tracking, idempotent re-runs, and failure isolation.
"""

from pathlib import Path

from deskprov.core.engine.executor import execute_plan
from deskprov.core.engine.planner import build_plan
from deskprov.core.models.config import DesktopConfig, SourceTool
from deskprov.core.models.plan import ExecutionResult
from deskprov.core.models.state import ProvisionState, ToolState
from deskprov.core.services.source_tools import ToolTracker, initial_phase, tool_steps

# ── Step generation ──────────────────────────────────────────────────


class TestToolSteps:
    def test_minimal_tool(self, desktop_config):
        steps = tool_steps(desktop_config.get_tool("st"), desktop_config)
        assert [s.kind for s in steps] == ["clone-or-update", "build-install"]
        assert all(s.owner == "st" for s in steps)
        assert steps[-1].privileged
        assert steps[0].params["dest"] == str(desktop_config.paths.tool_source("st"))

    def test_patch_and_override(self, paths, tmp_path: Path):
        override = tmp_path / "my-config.h"
        override.write_text("/* mine */\n")
        tool = SourceTool(
            name="dwm",
            repository="https://git.suckless.org/dwm",
            patch_url="https://dwm.suckless.org/patches/gaps.diff",
            config_override=str(override),
        )
        config = DesktopConfig(paths=paths, tools=(tool,))
        steps = tool_steps(tool, config, required=True)

        assert [s.id for s in steps] == [
            "tool:dwm:clone", "tool:dwm:patch", "tool:dwm:config", "tool:dwm:build",
        ]
        assert all(s.required for s in steps)
        config_step = steps[2]
        assert config_step.params["source"] == str(override)
        assert config_step.check.kind == "files-equal"

    def test_override_found_in_config_dir(self, desktop_config):
        override = desktop_config.paths.tool_config("st") / "config.h"
        override.parent.mkdir(parents=True)
        override.write_text("/* st */\n")
        kinds = [s.kind for s in tool_steps(desktop_config.get_tool("st"), desktop_config)]
        assert kinds == ["clone-or-update", "write-file", "build-install"]


# ── Lifecycle tracking ───────────────────────────────────────────────


class TestToolTracker:
    def test_initial_phase_absent(self, desktop_config):
        assert initial_phase(desktop_config.get_tool("dwm"), desktop_config) == "absent"

    def test_initial_phase_from_disk_and_state(self, desktop_config):
        (desktop_config.paths.tool_source("dwm") / ".git").mkdir(parents=True)
        tool = desktop_config.get_tool("dwm")
        assert initial_phase(tool, desktop_config) == "cloned"

        state = ProvisionState(tools={"dwm": ToolState(name="dwm", phase="installed")})
        assert initial_phase(tool, desktop_config, state) == "installed"

    def test_happy_path_transitions(self, desktop_config):
        tracker = ToolTracker({"st": "absent"})
        for step in tool_steps(desktop_config.get_tool("st"), desktop_config):
            tracker.observe(step, ExecutionResult.success(adapter="x", step_id=step.id))
        assert tracker.phase("st") == "installed"
        assert tracker.history("st") == ["absent", "cloned", "built", "installed"]

    def test_failure_is_terminal(self, desktop_config):
        tracker = ToolTracker({"st": "absent"})
        clone, build = tool_steps(desktop_config.get_tool("st"), desktop_config)
        tracker.observe(clone, ExecutionResult.failure(adapter="git", step_id=clone.id, error="boom"))
        tracker.observe(build, ExecutionResult.success(adapter="make", step_id=build.id))
        assert tracker.phase("st") == "failed"
        assert tracker.error("st") == "boom"
        assert tracker.failed_tools() == {"st"}

    def test_dry_run_results_do_not_advance(self, desktop_config):
        tracker = ToolTracker({"st": "absent"})
        clone = tool_steps(desktop_config.get_tool("st"), desktop_config)[0]
        tracker.observe(clone, ExecutionResult.skip(adapter="git", step_id=clone.id, metadata={"dry_run": True}))
        assert tracker.phase("st") == "absent"


# ── Building through the executor ────────────────────────────────────


class TestBuilderRuns:
    def _run(self, config, registry, state=None):
        plan = build_plan(config, "none")
        tracker = ToolTracker.for_config(config, state)
        return execute_plan(plan, registry, config, tracker=tracker)

    def test_run_twice_updates_without_reclone(self, desktop_config, registry, fake_git):
        first = self._run(desktop_config, registry)
        assert first.aborted_by is None
        assert first.tracker.installed_tools() == desktop_config.tool_names
        assert {action for _, action in fake_git.actions} == {"clone"}

        state = ProvisionState(tools={
            name: ToolState(name=name, phase=phase) for name, phase in first.tracker.phases.items()
        })
        fake_git.actions.clear()

        second = self._run(desktop_config, registry, state)
        assert {action for _, action in fake_git.actions} == {"update"}
        assert second.tracker.phase("dwm") == "installed"
        assert second.tracker.history("dwm")[0] == "installed"
        assert second.tracker.history("dwm")[-1] == "installed"

    def test_failed_build_does_not_stop_later_tools(self, desktop_config, registry):
        registry.get("make").set_failure("tool:st:build", error="st.c: error")
        report = self._run(desktop_config, registry)

        assert report.aborted_by is None
        assert report.tracker.phase("st") == "failed"
        for name in ("dwm", "dmenu", "slock", "slstatus"):
            assert report.tracker.phase(name) == "installed"
        assert report.result_for("dotfiles:xinitrc").status == "ok"
        assert report.status == "partial"

    def test_failed_clone_skips_rest_of_tool(self, desktop_config, registry):
        registry.get("git").set_failure("tool:dmenu:clone", error="connection reset")
        report = self._run(desktop_config, registry)

        build = report.result_for("tool:dmenu:build")
        assert build.skipped
        assert "dmenu failed earlier" in build.message
        assert "tool:dmenu:build" not in registry.get("make").called_step_ids

    def test_window_manager_failure_aborts(self, desktop_config, registry):
        registry.get("make").set_failure("tool:dwm:build", error="dwm.c: error")
        report = self._run(desktop_config, registry)

        assert report.aborted_by is not None
        assert report.aborted_by.step_id == "tool:dwm:build"
        assert report.status == "aborted"
        # nothing after the window manager ran
        assert report.result_for("tool:st:clone") is None
        assert report.result_for("dotfiles:xinitrc") is None

    def test_window_manager_builds_first(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        tool_ids = [s.id for s in plan.by_category("tools")]
        assert tool_ids[0] == "tool:dwm:clone"
