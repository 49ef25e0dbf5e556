"""
Tests for the CLI — commands, options, JSON output, and exit codes.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from deskprov import __version__
from deskprov.core.persistence.audit import RunEntry, RunLedger
from deskprov.main import cli


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    path = tmp_path / "desktop.yml"
    path.write_text(textwrap.dedent(f"""\
        gpu:
          intel: [intel-media-va-driver]
        services:
          enable_network_manager: false
          add_user_to_audio_group: false
        paths:
          home: {home}
          source_dir: {home}/.local/src
          config_dir: {home}/.config/suckless
          bin_dir: {home}/.local/bin
          wallpaper: {home}/.wallpaper
          state_dir: {tmp_path}/state
    """))
    return path


def _invoke(*args: str):
    return CliRunner().invoke(cli, ["--quiet", *args])


# ── Basics ───────────────────────────────────────────────────────────


class TestBasics:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "plan", "gpu", "status", "history", "config"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_broken_config_exits_2(self, tmp_path: Path):
        path = tmp_path / "desktop.yml"
        path.write_text("window_manager: i3\n")
        result = _invoke("--config", str(path), "plan", "--gpu", "none")
        assert result.exit_code == 2

    def test_log_file_transcript(self, config_file: Path, tmp_path: Path):
        log = tmp_path / "logs" / "deskprov.log"
        result = CliRunner().invoke(
            cli,
            ["--config", str(config_file), "plan", "--gpu", "none"],
            env={"DESKPROV_LOG_FILE": str(log), "DESKPROV_LOG_FILE_LEVEL": "DEBUG"},
        )
        assert result.exit_code == 0
        assert "GPU vendor fixed to none" in log.read_text()


# ── config ───────────────────────────────────────────────────────────


class TestConfigCommands:
    def test_check_valid(self, config_file: Path):
        result = _invoke("--config", str(config_file), "config", "check")
        assert result.exit_code == 0
        assert "valid" in result.output

    def test_check_invalid_json(self, tmp_path: Path):
        path = tmp_path / "desktop.yml"
        path.write_text("tools: 3\n")
        result = _invoke("--config", str(path), "config", "check", "--json")
        assert result.exit_code == 2
        assert json.loads(result.output)["valid"] is False

    def test_init_writes_defaults(self, tmp_path: Path):
        target = tmp_path / "conf" / "desktop.yml"
        result = _invoke("--config", str(target), "config", "init")
        assert result.exit_code == 0
        assert "window_manager: dwm" in target.read_text()

    def test_init_refuses_to_overwrite(self, config_file: Path):
        before = config_file.read_text()
        result = _invoke("--config", str(config_file), "config", "init")
        assert result.exit_code == 1
        assert config_file.read_text() == before

        forced = _invoke("--config", str(config_file), "config", "init", "--force")
        assert forced.exit_code == 0
        assert config_file.read_text() != before


# ── plan / gpu ───────────────────────────────────────────────────────


class TestPlanAndGpu:
    def test_plan_json(self, config_file: Path):
        result = _invoke("--config", str(config_file), "plan", "--gpu", "intel", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["gpu_vendor"] == "intel"
        ids = [s["id"] for s in data["steps"]]
        assert "gpu:intel" in ids
        assert ids[-1] == "dotfiles:bashrc"

    def test_plan_text(self, config_file: Path):
        result = _invoke("--config", str(config_file), "plan", "--gpu", "none")
        assert result.exit_code == 0
        assert "tool:dwm:build" in result.output

    def test_gpu_from_file(self, config_file: Path, tmp_path: Path):
        listing = tmp_path / "lspci.txt"
        listing.write_text("01:00.0 VGA compatible controller: NVIDIA Corporation GA104\n")
        result = _invoke("--config", str(config_file), "gpu", "--from-file", str(listing), "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["vendor"] == "nvidia"
        assert data["source"] == str(listing)


# ── status / history ─────────────────────────────────────────────────


class TestStatusAndHistory:
    def test_status_fresh_machine(self, config_file: Path):
        result = _invoke("--config", str(config_file), "status", "--json")
        assert result.exit_code == 0
        tools = {t["name"]: t["phase"] for t in json.loads(result.output)["tools"]}
        assert tools["dwm"] == "absent"

    def test_history_empty(self, config_file: Path):
        result = _invoke("--config", str(config_file), "history")
        assert result.exit_code == 0
        assert "No runs recorded" in result.output

    def test_history_lists_runs(self, config_file: Path, tmp_path: Path):
        ledger = RunLedger.in_dir(tmp_path / "state")
        ledger.write(RunEntry(run_id="run-a", status="ok"))
        ledger.write(RunEntry(run_id="run-b", status="partial"))

        result = _invoke("--config", str(config_file), "history", "-n", "1", "--json")
        assert result.exit_code == 0
        assert [e["run_id"] for e in json.loads(result.output)] == ["run-b"]


# ── run ──────────────────────────────────────────────────────────────


class TestRunCommand:
    def test_dry_run_mock(self, config_file: Path):
        result = _invoke("--config", str(config_file), "run", "--mock", "--dry-run", "--gpu", "none")
        assert result.exit_code == 0, result.output
        assert "Provisioning summary" in result.output
