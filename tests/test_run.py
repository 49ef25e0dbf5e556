"""
Tests for the run use case — advisories, cancellation, persistence.
"""

from deskprov.core.persistence.audit import RunLedger
from deskprov.core.persistence.state_file import default_state_path, load_state
from deskprov.core.use_cases import run as run_mod
from deskprov.core.use_cases.run import run_provisioning


def _unreachable(config, timeout=5):
    return ["repository host unreachable: https://git.suckless.org/ (timed out)"]


class TestRunProvisioning:
    def test_declined_advisory_cancels_before_any_change(self, desktop_config, registry, monkeypatch):
        monkeypatch.setattr(run_mod, "check_repositories", _unreachable)
        seen = []

        result = run_provisioning(
            desktop_config,
            gpu_override="none",
            registry=registry,
            preflight=False,
            confirm=lambda advisories: seen.extend(advisories) or False,
        )

        assert result.cancelled
        assert result.exit_code == 2
        assert result.execution is None
        assert len(seen) == 1
        assert registry.get("apt").call_count == 0
        assert RunLedger.in_dir(desktop_config.paths.state_dir).read_all() == []

    def test_advisory_without_prompt_continues(self, desktop_config, registry, monkeypatch):
        monkeypatch.setattr(run_mod, "check_repositories", _unreachable)
        result = run_provisioning(desktop_config, gpu_override="none", registry=registry, preflight=False)

        assert not result.cancelled
        assert result.exit_code == 0
        assert result.report.warnings[0].startswith("repository host unreachable")

    def test_required_failure_exit_code(self, desktop_config, registry):
        registry.get("make").set_failure("tool:dwm:build", error="dwm.c: error")
        result = run_provisioning(
            desktop_config, gpu_override="none", registry=registry,
            preflight=False, check_network=False,
        )

        assert result.exit_code == 1
        state = load_state(default_state_path(desktop_config.paths.state_dir))
        assert state.last_run.status == "aborted"
        assert state.tools["dwm"].phase == "failed"

    def test_dry_run_saves_no_state(self, desktop_config, registry):
        run_provisioning(
            desktop_config, dry_run=True, gpu_override="none", registry=registry,
            preflight=False, check_network=False,
        )

        assert not default_state_path(desktop_config.paths.state_dir).exists()
        entries = RunLedger.in_dir(desktop_config.paths.state_dir).read_all()
        assert entries[0].dry_run is True
