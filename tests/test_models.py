"""
Tests for domain models — receipts, run report, state helpers.
"""

from provisioner.core.models import (
    InstallReport,
    ProvisioningState,
    Receipt,
    RunReport,
    ServiceStatus,
    StageResult,
    StageStatus,
)


class TestReceipt:
    """Receipt model tests."""

    def test_success(self):
        r = Receipt.success(adapter="apt", action_id="apt:update", output="done")
        assert r.ok
        assert not r.failed
        assert r.started_at

    def test_failure(self):
        r = Receipt.failure(adapter="apt", action_id="apt:update", error="locked")
        assert r.failed
        assert r.error == "locked"


class TestStates:
    def test_terminal(self):
        assert ProvisioningState.DONE.terminal
        assert ProvisioningState.FAILED.terminal
        assert not ProvisioningState.STACK_UP.terminal

    def test_values_are_names(self):
        assert ProvisioningState("PreflightOk") is ProvisioningState.PREFLIGHT_OK


class TestRunReport:
    def test_starts_in_init(self):
        report = RunReport()
        assert report.state == ProvisioningState.INIT
        assert report.history == [ProvisioningState.INIT]
        assert not report.ok
        assert report.exit_code == 1

    def test_done(self):
        report = RunReport(state=ProvisioningState.DONE)
        assert report.ok
        assert report.exit_code == 0

    def test_stage_lookup(self):
        report = RunReport(stages=[
            StageResult(stage="config"),
            StageResult(stage="firewall", status=StageStatus.SKIPPED),
            StageResult(stage="stack", status=StageStatus.FAILED, detail="bad"),
        ])
        assert report.stage("firewall").status == StageStatus.SKIPPED
        assert report.stage("firewall").ok
        assert report.failed_stage.stage == "stack"
        assert report.stage("packages") is None

    def test_serialises(self):
        data = RunReport(services=[ServiceStatus(name="redis", state="running")]).model_dump(mode="json")
        assert data["state"] == "Init"
        assert data["services"][0]["name"] == "redis"


class TestInstallReport:
    def test_unchanged(self):
        assert not InstallReport(already_present=["curl"], runtime_present=True).changed

    def test_changed(self):
        assert InstallReport(installed=["curl"]).changed
        assert InstallReport(group_added=True).changed
