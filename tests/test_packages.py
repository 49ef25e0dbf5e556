"""
Tests for the package installer — flattening, batching, failure policy,
and the apt adapter.
"""

from deskprov.adapters.base import ExecutionContext
from deskprov.adapters.packages import apt
from deskprov.adapters.packages.apt import AptAdapter, build_install_cmd
from deskprov.core.models.config import InstallPolicy, PackageGroup
from deskprov.core.models.plan import ProvisioningStep
from deskprov.core.services.packages import (
    classify_failures,
    flatten_groups,
    install_groups,
    split_groups,
)


class RecordingInstaller:
    """Install callable that records invocations and fails on chosen packages."""

    def __init__(self, broken: set[str] | None = None):
        self.calls: list[list[str]] = []
        self.broken = broken or set()

    def __call__(self, packages):
        self.calls.append(list(packages))
        bad = self.broken.intersection(packages)
        if bad:
            return False, f"Unable to locate package {sorted(bad)[0]}"
        return True, ""


# ── Flattening ───────────────────────────────────────────────────────


class TestFlattenGroups:
    def test_dedup_first_seen_order(self):
        assert flatten_groups([["a", "b"], ["b", "c"]]) == ["a", "b", "c"]

    def test_empty_groups_contribute_nothing(self):
        assert flatten_groups([[], ["x"], []]) == ["x"]

    def test_accepts_package_groups(self):
        groups = [PackageGroup(name="one", packages=("a", "b")), PackageGroup(name="two", packages=("b",))]
        assert flatten_groups(groups) == ["a", "b"]

    def test_split_groups(self):
        groups = [
            PackageGroup(name="essential", packages=("git",), required=True),
            PackageGroup(name="audio"),
        ]
        active, empty = split_groups(groups)
        assert [g.name for g in active] == ["essential"]
        assert empty == ["audio"]


# ── Installing ───────────────────────────────────────────────────────


class TestInstallGroups:
    def test_single_batched_invocation(self):
        install = RecordingInstaller()
        outcome = install_groups({"a": ["x", "y"], "b": ["y", "z"]}, install)
        assert install.calls == [["x", "y", "z"]]
        assert outcome.invocations == 1
        assert outcome.groups == {"a": "installed", "b": "installed"}

    def test_empty_group_causes_no_invocation(self):
        install = RecordingInstaller()
        outcome = install_groups({"audio": []}, install)
        assert install.calls == []
        assert outcome.groups == {"audio": "empty"}

    def test_empty_group_skipped_alongside_others(self):
        install = RecordingInstaller()
        outcome = install_groups({"essential": ["git"], "audio": []}, install)
        assert install.calls == [["git"]]
        assert outcome.groups["audio"] == "empty"

    def test_batch_failure_isolates_groups(self):
        install = RecordingInstaller(broken={"bad"})
        outcome = install_groups({"essential": ["git"], "apps": ["bad"]}, install)
        assert install.calls == [["git", "bad"], ["git"], ["bad"]]
        assert outcome.groups == {"essential": "installed", "apps": "failed"}
        assert "bad" in outcome.errors["apps"]
        assert outcome.installed_packages({"essential": ["git"], "apps": ["bad"]}) == ["git"]

    def test_unbatched_policy(self):
        install = RecordingInstaller()
        install_groups({"a": ["x"], "b": ["y"]}, install, InstallPolicy(batch=False))
        assert install.calls == [["x"], ["y"]]


class TestClassifyFailures:
    def _outcome(self):
        install = RecordingInstaller(broken={"bad1", "bad2"})
        return install_groups({"essential": ["bad1"], "apps": ["bad2"]}, install)

    def test_warn_policy_tolerates_optional(self):
        fatal, tolerated = classify_failures(self._outcome(), ["essential"], InstallPolicy())
        assert fatal == ["essential"]
        assert tolerated == ["apps"]

    def test_abort_policy_makes_optional_fatal(self):
        policy = InstallPolicy(optional_failure="abort")
        fatal, tolerated = classify_failures(self._outcome(), ["essential"], policy)
        assert fatal == ["essential", "apps"]
        assert tolerated == []


# ── Apt adapter ──────────────────────────────────────────────────────


def _apt_step(groups, required=("essential",), policy=None) -> ProvisioningStep:
    return ProvisioningStep(
        id="packages:install",
        kind="install-packages",
        target="packages",
        required=True,
        privileged=True,
        params={
            "groups": groups,
            "required_groups": list(required),
            "policy": policy or InstallPolicy().model_dump(),
        },
    )


class TestAptAdapter:
    def test_build_install_cmd(self):
        assert build_install_cmd(["git", "feh"]) == ["apt-get", "install", "-y", "git", "feh"]

    def test_validate_requires_groups(self):
        step = ProvisioningStep(id="p", kind="install-packages", target="")
        ok, msg = AptAdapter().validate(ExecutionContext(step=step))
        assert not ok
        assert "groups" in msg

    def test_success_records_installed(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            return {"ok": True, "stdout": "", "returncode": 0}

        monkeypatch.setattr(apt, "run_subprocess", fake_run)
        step = _apt_step({"essential": ["git"], "wm": ["feh"]})
        result = AptAdapter().execute(ExecutionContext(step=step))

        assert result.status == "ok"
        assert result.metadata["installed"] == ["git", "feh"]
        assert len(calls) == 1
        cmd, kwargs = calls[0]
        assert cmd == ["apt-get", "install", "-y", "git", "feh"]
        assert kwargs["privileged"] is True
        assert kwargs["env_overrides"]["DEBIAN_FRONTEND"] == "noninteractive"

    def test_optional_failure_is_a_warning(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            if "broken" in cmd:
                return {"ok": False, "error": "E: Unable to locate package broken", "returncode": 100}
            return {"ok": True, "stdout": "", "returncode": 0}

        monkeypatch.setattr(apt, "run_subprocess", fake_run)
        step = _apt_step({"essential": ["git"], "apps": ["broken"]})
        result = AptAdapter().execute(ExecutionContext(step=step))

        assert result.status == "ok"
        assert result.metadata["groups"] == {"essential": "installed", "apps": "failed"}
        assert any("apps" in w for w in result.warnings)

    def test_required_failure_fails_step(self, monkeypatch):
        monkeypatch.setattr(
            apt, "run_subprocess",
            lambda cmd, **kw: {"ok": False, "error": "E: dpkg was interrupted", "returncode": 100},
        )
        step = _apt_step({"essential": ["git"]})
        result = AptAdapter().execute(ExecutionContext(step=step))

        assert result.failed
        assert "essential" in result.error
        assert result.metadata["installed"] == []

    def test_optional_step_with_nothing_installed_fails(self, monkeypatch):
        monkeypatch.setattr(
            apt, "run_subprocess",
            lambda cmd, **kw: {"ok": False, "error": "E: Unable to locate package intel-media-va-driver",
                               "returncode": 100},
        )
        step = _apt_step({"gpu-intel": ["intel-media-va-driver"]}, required=())
        result = AptAdapter().execute(ExecutionContext(step=step))

        assert result.failed
        assert "gpu-intel" in result.error
        assert result.metadata["groups"] == {"gpu-intel": "failed"}
