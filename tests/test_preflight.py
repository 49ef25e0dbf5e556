"""
Tests for host preflight checks.
"""

import pytest

from deskprov.core.engine.planner import build_plan
from deskprov.core.errors import FatalPrecondition
from deskprov.core.models.config import DesktopConfig, PackageGroup
from deskprov.core.use_cases.preflight import check_host, run_preflight


def _which(*present):
    return lambda cmd: cmd in present


class TestCheckHost:
    def test_all_present(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        result = check_host(
            desktop_config, plan,
            which_fn=_which("apt-get", "git", "make", "sudo"), root_fn=lambda: False,
        )
        assert result.ok
        assert result.notes == []

    def test_missing_apt_is_fatal(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        result = check_host(desktop_config, plan, which_fn=_which("git", "make"), root_fn=lambda: True)
        assert result.problems == ["required tool not found: apt-get"]

    def test_planned_tools_only_noted(self, desktop_config):
        # the default essential group installs git and make
        plan = build_plan(desktop_config, "none")
        result = check_host(desktop_config, plan, which_fn=_which("apt-get"), root_fn=lambda: True)
        assert result.ok
        assert len(result.notes) == 2

    def test_git_not_planned(self, paths):
        config = DesktopConfig(
            paths=paths,
            groups=(PackageGroup(name="essential", packages=("make",), required=True),),
        )
        result = check_host(
            config, build_plan(config, "none"), which_fn=_which("apt-get"), root_fn=lambda: True,
        )
        assert result.problems == ["required tool not found: git"]

    def test_no_root_no_sudo(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        result = check_host(
            desktop_config, plan, which_fn=_which("apt-get", "git", "make"), root_fn=lambda: False,
        )
        assert any("root privileges" in p for p in result.problems)


class TestRunPreflight:
    def test_raises_with_every_problem(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        with pytest.raises(FatalPrecondition) as exc_info:
            run_preflight(desktop_config, plan, which_fn=_which(), root_fn=lambda: False)
        assert exc_info.value.exit_code == 2
        assert len(exc_info.value.problems) == 2

    def test_primes_sudo_once(self, desktop_config):
        primed = []
        plan = build_plan(desktop_config, "none")
        run_preflight(
            desktop_config, plan,
            which_fn=_which("apt-get", "git", "make", "sudo"),
            root_fn=lambda: False,
            prime_fn=lambda: primed.append(1) or True,
        )
        assert primed == [1]

    def test_sudo_refused(self, desktop_config):
        plan = build_plan(desktop_config, "none")
        with pytest.raises(FatalPrecondition, match="sudo"):
            run_preflight(
                desktop_config, plan,
                which_fn=_which("apt-get", "git", "make", "sudo"),
                root_fn=lambda: False,
                prime_fn=lambda: False,
            )

    def test_dry_run_never_prompts(self, desktop_config):
        plan = build_plan(desktop_config, "none")

        def prime():
            raise AssertionError("should not prompt")

        result = run_preflight(
            desktop_config, plan, dry_run=True,
            which_fn=_which("apt-get", "git", "make", "sudo"),
            root_fn=lambda: False,
            prime_fn=prime,
        )
        assert result.ok
