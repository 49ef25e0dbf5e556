"""
End-to-end: a full provisioning run through the real apt and filesystem
adapters, with every system command intercepted.
"""

import json
import textwrap
from pathlib import Path

from click.testing import CliRunner

from deskprov.adapters.mock import MockAdapter
from deskprov.adapters.packages import apt
from deskprov.adapters.packages.apt import AptAdapter
from deskprov.adapters.registry import AdapterRegistry
from deskprov.adapters.shell.filesystem import FilesystemAdapter
from deskprov.core.config.loader import load_config
from deskprov.core.persistence.audit import RunLedger
from deskprov.core.persistence.state_file import default_state_path, load_state
from deskprov.core.use_cases.run import run_provisioning
from deskprov.main import cli

LSPCI = "00:02.0 VGA compatible controller: Intel Corporation HD Graphics 620 (rev 02)\n"


def _write_config(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    content = textwrap.dedent(f"""\
        window_manager: dwm
        groups:
          - name: essential
            packages: [x11-dev, git]
          - name: wm
            packages: [feh, picom]
          - name: audio
            packages: []
          - name: network
            packages: [nm]
        tools:
          - name: dwm
            repository: https://git.suckless.org/dwm
          - name: st
            repository: https://git.suckless.org/st
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
    """)
    path = tmp_path / "desktop.yml"
    path.write_text(content)
    return path


class TestScenario:
    def _registry(self, fake_git):
        registry = AdapterRegistry()
        registry.register(AptAdapter())
        registry.register(fake_git)
        registry.register(MockAdapter(adapter_name="make", kinds=("build-install",)))
        registry.register(MockAdapter(adapter_name="shell", kinds=("run-command",)))
        registry.register(FilesystemAdapter())
        return registry

    def test_full_run(self, tmp_path: Path, monkeypatch, fake_git):
        invocations: list[list[str]] = []

        def fake_run(cmd, **kwargs):
            invocations.append(cmd)
            return {"ok": True, "stdout": "", "returncode": 0}

        monkeypatch.setattr(apt, "run_subprocess", fake_run)
        config = load_config(_write_config(tmp_path))

        result = run_provisioning(
            config,
            listing=LSPCI,
            registry=self._registry(fake_git),
            check_network=False,
            preflight=False,
        )

        # one batched install for every non-empty group, then the GPU driver
        assert invocations == [
            ["apt-get", "install", "-y", "x11-dev", "git", "feh", "picom", "nm"],
            ["apt-get", "install", "-y", "intel-media-va-driver"],
        ]
        assert result.exit_code == 0

        report = result.report
        packages = {i.name: i.status for i in report.packages}
        assert packages == {
            "essential": "installed",
            "wm": "installed",
            "network": "installed",
            "audio": "skipped (empty)",
        }
        assert report.gpu_vendor == "intel"
        assert [i.status for i in report.gpu] == ["ok"]
        assert {i.name: i.status for i in report.tools} == {"dwm": "installed", "st": "installed"}
        assert [owner for owner, _ in fake_git.actions] == ["dwm", "st"]

        xinitrc = (tmp_path / "home" / ".xinitrc").read_text()
        commands = [ln for ln in xinitrc.splitlines() if ln and not ln.startswith("#")]
        assert commands == [
            f"feh --bg-scale {tmp_path}/home/.wallpaper 2>/dev/null &",
            "picom -b 2>/dev/null &",
            "exec dwm",
        ]

        state = load_state(default_state_path(tmp_path / "state"))
        assert state.gpu_vendor == "intel"
        assert state.tools["dwm"].phase == "installed"
        assert state.last_run.status == "ok"
        assert "nm" in state.installed_packages

        entries = RunLedger.in_dir(tmp_path / "state").read_all()
        assert len(entries) == 1
        assert entries[0].tools_installed == ["dwm", "st"]

    def test_cli_mock_run(self, tmp_path: Path):
        config_path = _write_config(tmp_path)
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--quiet", "--config", str(config_path), "run", "--mock", "--gpu", "intel", "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["exit_code"] == 0
        assert data["report"]["gpu_vendor"] == "intel"
        # mock runs record history but no machine state
        assert not default_state_path(tmp_path / "state").exists()
        assert len(RunLedger.in_dir(tmp_path / "state").read_all()) == 1
