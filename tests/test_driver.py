"""
End-to-end tests for ProvisioningDriver.

Every host tool except the filesystem is mocked; each test drives a whole
run and asserts on the state history, the report and which host calls
were (and were not) made.
"""

import os
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.core.engine import driver as driver_module
from provisioner.core.engine.driver import HOST_IP_PLACEHOLDER, ProvisioningDriver
from provisioner.core.models.run import ProvisioningState as S
from provisioner.core.models.run import StageStatus

from tests.conftest import SERVICES, write_env

FULL_HISTORY = [
    S.INIT, S.CONFIG_LOADED, S.PREFLIGHT_OK, S.PACKAGES_READY,
    S.FILESYSTEM_READY, S.FIREWALL_READY, S.STACK_UP, S.DONE,
]


def _mutating_calls(mocks: dict[str, MockAdapter]) -> list[str]:
    mutating = {"update", "install", "remove", "add_to_group", "start", "enable", "allow", "up", "down", "fetch"}
    return [
        ctx.action.id
        for mock in mocks.values()
        for ctx in mock.call_log
        if ctx.action.operation in mutating
    ]


# ── Fresh host ───────────────────────────────────────────────────────


class TestFreshHost:
    def test_reaches_done(self, make_driver, fresh_host, sleeps):
        report = make_driver().run()

        assert report.state == S.DONE
        assert report.ok
        assert report.exit_code == 0
        assert report.history == FULL_HISTORY
        assert [s.name for s in report.services] == SERVICES
        assert all(s.running for s in report.services)
        assert sleeps == [10]

    def test_every_stage_recorded(self, make_driver, fresh_host):
        report = make_driver().run()
        assert [r.stage for r in report.stages] == [
            "config", "preflight", "packages", "filesystem", "firewall", "stack",
        ]
        assert all(r.status == StageStatus.SUCCESS for r in report.stages)

    def test_host_changes(self, make_driver, fresh_host, mocks, profile, env_values):
        report = make_driver().run()

        assert report.install.runtime_installed
        assert report.install.installed == profile.packages
        assert report.firewall_configured
        assert mocks["ufw"].called_ids[-1] == "ufw:enable"
        base = Path(env_values["COMMUNE_DIR"])
        assert report.base_dir == str(base)
        for entry in profile.directories:
            assert (base / entry.path).is_dir()

    def test_endpoints(self, make_driver, fresh_host):
        report = make_driver().run()
        assert report.endpoints == {
            "Nextcloud": "https://example.duckdns.org/nextcloud",
            "Jellyfin": "https://example.duckdns.org/jellyfin",
            "Jellyfin (direct)": "http://192.168.1.20:8099",
        }

    def test_stage_callback(self, make_driver, fresh_host):
        seen = []
        make_driver(on_stage=seen.append).run()
        assert [r.stage for r in seen][-1] == "stack"
        assert len(seen) == 6


# ── Re-run on a provisioned host ─────────────────────────────────────


class TestRerun:
    def test_no_side_effects_except_up(self, make_driver, provisioned_host, mocks):
        report = make_driver().run()

        assert report.ok
        assert not report.install.changed
        workdir_manifest = mocks["docker"].calls("up")[0].action.target
        assert _mutating_calls(mocks) == [f"docker:up:{workdir_manifest}"]

    def test_twice_in_a_row(self, make_driver, provisioned_host, env_values):
        first = make_driver().run()
        marker = Path(env_values["COMMUNE_DIR"]) / "nextcloud" / "data" / "notes.txt"
        marker.write_text("keep me")

        second = make_driver().run()

        assert first.ok and second.ok
        assert second.stage("filesystem").detail.startswith("0 directories created")
        assert marker.read_text() == "keep me"


# ── Missing environment keys ─────────────────────────────────────────


class TestMissingKeys:
    def test_fails_before_any_mutation(self, make_driver, workdir, env_values, mocks, stack):
        del env_values["EMAIL"]
        del env_values["REDIS_PASSWORD"]
        write_env(workdir / ".env", env_values)

        report = make_driver().run()

        assert report.state == S.FAILED
        assert report.exit_code != 0
        assert report.history == [S.INIT, S.FAILED]
        assert report.missing_keys == ["EMAIL", "REDIS_PASSWORD"]
        assert "EMAIL" in report.error and "REDIS_PASSWORD" in report.error
        assert report.error.startswith("[config]")
        assert report.failed_stage.stage == "config"
        assert all(m.call_count == 0 for m in mocks.values())
        assert not Path(env_values["COMMUNE_DIR"]).exists()

    @pytest.mark.parametrize("root", ["/", "//"])
    def test_root_base_dir_fails_before_filesystem(self, make_driver, workdir, env_values, mocks, root):
        env_values["COMMUNE_DIR"] = root
        write_env(workdir / ".env", env_values)

        report = make_driver().run()

        assert report.history == [S.INIT, S.FAILED]
        assert report.failed_stage.stage == "config"
        assert "filesystem root" in report.error
        assert report.stage("filesystem") is None
        assert report.base_dir == ""
        assert all(m.call_count == 0 for m in mocks.values())

    def test_missing_env_file(self, make_driver, workdir, mocks):
        (workdir / ".env").unlink()
        report = make_driver().run()
        assert report.state == S.FAILED
        assert ".env" in report.error
        assert _mutating_calls(mocks) == []


# ── Invalid manifest ─────────────────────────────────────────────────


class TestInvalidManifest:
    def test_halts_after_firewall(self, make_driver, provisioned_host, stack, workdir, sleeps):
        manifest = workdir / "docker-compose.yml"
        stack.set_failure(f"docker:config:{manifest}", error="yaml: line 3: mapping values are not allowed")

        report = make_driver().run()

        assert report.history == FULL_HISTORY[:6] + [S.FAILED]
        assert report.failed_stage.stage == "stack"
        assert report.error.startswith("[stack]")
        assert stack.calls("up") == []
        assert sleeps == []
        assert report.services == []


# ── Other failures ───────────────────────────────────────────────────


class TestStageFailures:
    def test_not_root(self, registry, workdir, profile, monkeypatch, mocks, current_user):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        report = ProvisioningDriver(registry, workdir, profile, environ={"SUDO_USER": current_user}).run()
        assert report.history == [S.INIT, S.CONFIG_LOADED, S.FAILED]
        assert report.failed_stage.stage == "preflight"
        assert _mutating_calls(mocks) == []

    def test_install_failure_leaves_filesystem_alone(self, make_driver, fresh_host, mocks, env_values):
        mocks["apt"].set_failure("apt:install", error="E: dpkg was interrupted")
        report = make_driver().run()
        assert report.history[-2:] == [S.PREFLIGHT_OK, S.FAILED]
        assert "dpkg was interrupted" in report.error
        assert not Path(env_values["COMMUNE_DIR"]).exists()
        assert mocks["ufw"].call_count == 0

    def test_firewall_failure_stops_before_stack(self, make_driver, provisioned_host, mocks):
        mocks["ufw"].set_failure("ufw:added", error="ERROR: cannot read rules")
        report = make_driver().run()
        assert report.history[-2:] == [S.FILESYSTEM_READY, S.FAILED]
        assert mocks["docker"].calls("up") == []

    def test_firewall_skipped_still_completes(self, make_driver, provisioned_host, mocks):
        mocks["ufw"].set_available(False)
        report = make_driver().run()
        assert report.ok
        assert report.stage("firewall").status == StageStatus.SKIPPED
        assert not report.firewall_configured

    def test_no_host_ip(self, make_driver, provisioned_host, mocks):
        mocks["system"].set_failure("system:host_ip")
        report = make_driver().run()
        assert report.endpoints["Jellyfin (direct)"] == f"http://{HOST_IP_PLACEHOLDER}:8099"


# ── State machine rules ──────────────────────────────────────────────


class TestStateMachine:
    def test_runs_once(self, make_driver, provisioned_host):
        driver = make_driver()
        driver.run()
        with pytest.raises(RuntimeError):
            driver.run()

    def test_illegal_transition(self, make_driver):
        driver = make_driver()
        with pytest.raises(RuntimeError, match="Illegal transition"):
            driver._transition(S.PACKAGES_READY)

    def test_no_transition_out_of_terminal(self, make_driver, workdir):
        (workdir / ".env").unlink()
        driver = make_driver()
        driver.run()
        with pytest.raises(RuntimeError, match="already finished"):
            driver._transition(S.FAILED)

    def test_no_locking(self, make_driver, provisioned_host, workdir, env_values):
        assert driver_module.CONCURRENT_RUNS_SUPPORTED is False
        before = set(workdir.iterdir())
        make_driver().run()
        assert set(workdir.iterdir()) == before

    def test_paths(self, make_driver, workdir):
        driver = make_driver()
        assert driver.env_file == workdir / ".env"
        assert driver.manifest == workdir / "docker-compose.yml"
        assert driver.state == S.INIT
