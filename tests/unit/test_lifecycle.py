"""Unit tests for the suite lifecycle.

Runs suites against FakeProvisioner to check phase ordering, cleanup
guarantees, skip flags and how failures are reported.
"""

from __future__ import annotations

from typing import Any

import pytest

from atmos_testing.config import HarnessSettings
from atmos_testing.errors import ExitCode, OutputNotFoundError
from atmos_testing.harness.lifecycle import (
    CaseContext,
    LifecycleRunner,
    LifecycleState,
    Suite,
    SuiteContext,
)
from atmos_testing.harness.outputs import Atmos
from atmos_testing.harness.report import CaseStatus
from atmos_testing.harness.units import DeployableUnit
from tests.unit.fakes import RANDOM_ID, FakeProvisioner

ALL_STATES = [
    "init",
    "dependencies_up",
    "suite_setup",
    "running",
    "suite_teardown",
    "dependencies_down",
    "done",
]


def _suite(events: list[str], *dependencies: str) -> Suite:
    """Suite whose hooks append to events."""
    suite = Suite("default", random_identifier=RANDOM_ID)
    for component in dependencies:
        suite.add_dependency(component, "default-test")

    @suite.setup
    def setup(ctx: SuiteContext) -> None:
        events.append("setup")

    @suite.teardown
    def teardown(ctx: SuiteContext) -> None:
        events.append("teardown")

    return suite


class TestSuiteDefinition:
    """Tests for Suite registration."""

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            Suite("")

    def test_generates_identifier(self) -> None:
        suite = Suite("default")
        assert suite.get_random_identifier().isalnum()
        assert suite.get_random_identifier() != Suite("default").get_random_identifier()

    def test_cases_keep_declaration_order(self) -> None:
        suite = Suite("default")

        @suite.test()
        def basic(ctx: CaseContext) -> None:
            pass

        @suite.test("disabled")
        def check_disabled(ctx: CaseContext) -> None:
            pass

        assert [c.name for c in suite.cases] == ["basic", "disabled"]

    def test_duplicate_case_rejected(self) -> None:
        suite = Suite("default")
        suite.add_case("basic", lambda ctx: None)
        with pytest.raises(ValueError, match="already has a case named 'basic'"):
            suite.add_case("basic", lambda ctx: None)

    def test_second_setup_rejected(self) -> None:
        suite = Suite("default")
        suite.setup(lambda ctx: None)
        with pytest.raises(ValueError, match="already has a setup hook"):
            suite.setup(lambda ctx: None)

    def test_second_teardown_rejected(self) -> None:
        suite = Suite("default")
        suite.teardown(lambda ctx: None)
        with pytest.raises(ValueError, match="already has a teardown hook"):
            suite.teardown(lambda ctx: None)


class TestLifecycleOrder:
    """Tests for phase ordering and cleanup guarantees."""

    def test_happy_path(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        events: list[str] = []
        suite = _suite(events, "vpc")
        suite.add_case("basic", lambda ctx: events.append("basic"))

        runner = LifecycleRunner(atmos, settings)
        report = runner.run(suite)

        assert report.succeeded
        assert report.exit_code == ExitCode.SUCCESS
        assert report.states == ALL_STATES
        assert runner.state is LifecycleState.DONE
        assert events == ["setup", "basic", "teardown"]
        assert provisioner.operations("deploy") == ["vpc"]
        assert provisioner.operations("destroy") == ["vpc"]

    def test_second_run_redeploys_dependencies(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        """Running the same suite twice deploys and destroys its dependencies each time."""
        events: list[str] = []
        suite = _suite(events, "vpc")
        suite.add_case("basic", lambda ctx: events.append("basic"))
        runner = LifecycleRunner(atmos, settings)

        first = runner.run(suite)
        second = runner.run(suite)

        assert first.succeeded
        assert second.succeeded
        assert second.states == ALL_STATES
        assert provisioner.operations("deploy") == ["vpc", "vpc"]
        assert provisioner.operations("destroy") == ["vpc", "vpc"]
        assert events == ["setup", "basic", "teardown", "setup", "basic", "teardown"]

    def test_second_run_after_dependency_failure(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        suite = _suite([], "vpc")
        suite.add_case("basic", lambda ctx: None)
        runner = LifecycleRunner(atmos, settings)
        provisioner.fail_deploy.add("vpc")
        failed = runner.run(suite)

        provisioner.fail_deploy.clear()
        retried = runner.run(suite)

        assert failed.exit_code == ExitCode.DEPENDENCY_ERROR
        assert retried.succeeded
        assert provisioner.operations("deploy") == ["vpc", "vpc"]
        assert provisioner.operations("destroy") == ["vpc", "vpc"]

    def test_cleanup_runs_once_when_case_raises(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        """Teardown and dependency destroy run exactly once after an unexpected error."""
        events: list[str] = []
        suite = _suite(events, "vpc", "dns-primary")

        def crash(ctx: CaseContext) -> None:
            raise KeyError("efs_id")

        suite.add_case("crash", crash)
        suite.add_case("after", lambda ctx: events.append("after"))

        report = LifecycleRunner(atmos, settings).run(suite)

        assert events == ["setup", "after", "teardown"]
        assert provisioner.operations("destroy") == ["dns-primary", "vpc"]
        crashed = report.case("crash")
        assert crashed.status is CaseStatus.ERROR
        assert crashed.error == "unexpected KeyError: 'efs_id'"
        assert report.case("after").status is CaseStatus.PASSED
        assert report.exit_code == ExitCode.TEST_FAILURE

    def test_dependencies_destroyed_in_reverse_order(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        suite = _suite([], "vpc", "dns-primary", "dns-delegated")
        LifecycleRunner(atmos, settings).run(suite)
        assert provisioner.operations("destroy") == ["dns-delegated", "dns-primary", "vpc"]

    def test_cleanup_runs_on_keyboard_interrupt(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        events: list[str] = []
        suite = _suite(events, "vpc")

        def interrupted(ctx: CaseContext) -> None:
            ctx.deploy("efs/basic", "default-test")
            raise KeyboardInterrupt

        suite.add_case("interrupted", interrupted)

        with pytest.raises(KeyboardInterrupt):
            LifecycleRunner(atmos, settings).run(suite)

        assert events == ["setup", "teardown"]
        assert provisioner.operations("destroy") == ["efs/basic", "vpc"]

    def test_dependency_failure_aborts_suite(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        """No setup and no cases; the failed dependency is still destroyed."""
        events: list[str] = []
        provisioner.fail_deploy.add("dns-primary")
        suite = _suite(events, "vpc", "dns-primary", "dns-delegated")
        suite.add_case("basic", lambda ctx: events.append("basic"))

        report = LifecycleRunner(atmos, settings).run(suite)

        assert events == []
        assert report.states == [
            "init",
            "dependencies_up",
            "suite_teardown",
            "dependencies_down",
            "done",
        ]
        assert provisioner.operations("destroy") == ["dns-primary", "vpc"]
        assert report.fatal_error is not None
        assert report.fatal_error.startswith("dependencies_up: atmos dependency deploy failed")
        assert report.exit_code == ExitCode.DEPENDENCY_ERROR
        assert report.case("basic").status is CaseStatus.SKIPPED
        assert report.case("basic").error == "suite aborted"

    def test_setup_failure_still_tears_down(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        events: list[str] = []
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_dependency("vpc", "default-test")

        @suite.setup
        def setup(ctx: SuiteContext) -> None:
            raise RuntimeError("zone quota exceeded")

        @suite.teardown
        def teardown(ctx: SuiteContext) -> None:
            events.append("teardown")

        suite.add_case("basic", lambda ctx: events.append("basic"))

        report = LifecycleRunner(atmos, settings).run(suite)

        assert events == ["teardown"]
        assert provisioner.operations("destroy") == ["vpc"]
        assert report.fatal_error == "suite_setup: zone quota exceeded"
        assert report.exit_code == ExitCode.TEST_FAILURE
        assert report.case("basic").status is CaseStatus.SKIPPED

    def test_cleanup_failures_are_warnings(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        """A failed teardown or dependency destroy does not fail the suite."""
        provisioner.fail_destroy.add("vpc")
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_dependency("vpc", "default-test")

        @suite.teardown
        def teardown(ctx: SuiteContext) -> None:
            raise RuntimeError("zone not empty")

        suite.add_case("basic", lambda ctx: None)

        report = LifecycleRunner(atmos, settings).run(suite)

        assert report.succeeded
        assert report.exit_code == ExitCode.SUCCESS
        assert len(report.warnings) == 2
        assert report.warnings[0] == "Teardown of suite 'default' failed: zone not empty"
        assert report.warnings[1].startswith("Failed to destroy dependency vpc@default-test")


class TestCases:
    """Tests for case execution and case context."""

    def test_soft_failures_mark_case_failed(
        self, atmos: Atmos, settings: HarnessSettings
    ) -> None:
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            unit = ctx.deploy("efs/basic", "default-test")
            ctx.check.has_prefix(ctx.atmos.output(unit, "efs_id"), "vol-", "efs_id")
            ctx.check.equal(ctx.atmos.output(unit, "security_group_name"), "x", "sg name")
            ctx.check.has_prefix(ctx.atmos.output(unit, "security_group_id"), "sg-", "sg id")

        suite.add_case("basic", basic)
        suite.add_case("second", lambda ctx: None)

        report = LifecycleRunner(atmos, settings).run(suite)

        result = report.case("basic")
        assert result.status is CaseStatus.FAILED
        assert result.checks == 3
        assert [f.description for f in result.failures] == ["efs_id", "sg name"]
        assert report.case("second").status is CaseStatus.PASSED
        assert not report.succeeded

    def test_missing_output_ends_case(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        """A missing output is an error for the case; its unit is still destroyed."""
        reached: list[str] = []
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            unit = ctx.deploy("efs/basic", "default-test")
            ctx.atmos.output(unit, "efs_ids")
            reached.append("after")

        suite.add_case("basic", basic)

        report = LifecycleRunner(atmos, settings).run(suite)

        result = report.case("basic")
        assert result.status is CaseStatus.ERROR
        assert "Output 'efs_ids' not found on efs/basic" in (result.error or "")
        assert reached == []
        assert provisioner.operations("destroy") == ["efs/basic"]

    def test_never_deployed_unit_is_an_error(
        self, atmos: Atmos, settings: HarnessSettings
    ) -> None:
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            unit = DeployableUnit(component="efs/basic", stack="default-test")
            ctx.atmos.output(unit, "efs_id")

        suite.add_case("basic", basic)
        result = LifecycleRunner(atmos, settings).run(suite).case("basic")
        assert result.status is CaseStatus.ERROR
        assert result.error == str(OutputNotFoundError("efs/basic", "default-test", "efs_id"))

    def test_plain_assert_marks_failed(self, atmos: Atmos, settings: HarnessSettings) -> None:
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            if ctx.random_identifier != "other":
                raise AssertionError("identifier mismatch")

        suite.add_case("basic", basic)
        result = LifecycleRunner(atmos, settings).run(suite).case("basic")
        assert result.status is CaseStatus.FAILED
        assert result.error == "assertion failed: identifier mismatch"

    def test_failed_deploy_is_destroyed(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        provisioner.fail_deploy.add("efs/basic")
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_case("basic", lambda ctx: ctx.deploy("efs/basic", "default-test"))

        result = LifecycleRunner(atmos, settings).run(suite).case("basic")

        assert result.status is CaseStatus.ERROR
        assert "atmos deploy failed for efs/basic" in (result.error or "")
        assert provisioner.operations("destroy") == ["efs/basic"]

    def test_release_runs_newest_first(self, atmos: Atmos, settings: HarnessSettings) -> None:
        order: list[str] = []
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            ctx.defer("first", lambda: order.append("first"))
            ctx.defer("second", lambda: order.append("second"))

        suite.add_case("basic", basic)
        LifecycleRunner(atmos, settings).run(suite)
        assert order == ["second", "first"]

    def test_release_failure_is_case_warning(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        provisioner.fail_destroy.add("efs/basic")
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_case("basic", lambda ctx: ctx.deploy("efs/basic", "default-test"))

        report = LifecycleRunner(atmos, settings).run(suite)

        result = report.case("basic")
        assert result.status is CaseStatus.PASSED
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("destroy efs/basic@default-test failed")
        assert report.all_warnings == [f"basic: {result.warnings[0]}"]
        assert report.succeeded

    def test_context_exposes_run_values(self, atmos: Atmos, settings: HarnessSettings) -> None:
        seen: dict[str, Any] = {}
        suite = Suite("default", random_identifier=RANDOM_ID)

        def basic(ctx: CaseContext) -> None:
            seen["region"] = ctx.aws_region
            seen["identifier"] = ctx.random_identifier
            seen["suite"] = ctx.suite.suite_name
            seen["atmos"] = ctx.atmos

        suite.add_case("basic", basic)
        LifecycleRunner(atmos, settings).run(suite)
        assert seen == {
            "region": "us-east-2",
            "identifier": RANDOM_ID,
            "suite": "default",
            "atmos": atmos,
        }


class TestVerifyEnabledFlag:
    """Tests for CaseContext.verify_enabled_flag."""

    def test_disabled_unit_passes(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        suite = Suite("default", random_identifier=RANDOM_ID)
        seen: dict[str, Any] = {}

        def disabled(ctx: CaseContext) -> None:
            seen["outputs"] = ctx.verify_enabled_flag("efs/basic", "default-test", {"name": "x"})

        suite.add_case("disabled", disabled)
        result = LifecycleRunner(atmos, settings).run(suite).case("disabled")

        assert result.status is CaseStatus.PASSED
        assert seen["outputs"] == {}
        assert provisioner.deployed_vars[("efs/basic", "default-test")] == {
            "name": "x",
            "enabled": False,
        }
        assert provisioner.operations("destroy") == ["efs/basic"]

    def test_unit_ignoring_flag_fails(
        self, atmos: Atmos, provisioner: FakeProvisioner, settings: HarnessSettings
    ) -> None:
        provisioner.ignore_enabled.add("efs/basic")
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_case(
            "disabled", lambda ctx: ctx.verify_enabled_flag("efs/basic", "default-test")
        )

        result = LifecycleRunner(atmos, settings).run(suite).case("disabled")

        assert result.status is CaseStatus.FAILED
        assert result.failures[0].check == "empty"
        assert result.error is None


class TestSkipFlags:
    """Tests for the skip_* settings."""

    def test_skip_dependency_phases(
        self, atmos: Atmos, provisioner: FakeProvisioner
    ) -> None:
        settings = HarnessSettings(
            skip_deploy_dependencies=True, skip_destroy_dependencies=True
        )
        suite = _suite([], "vpc")
        suite.add_case("basic", lambda ctx: None)

        report = LifecycleRunner(atmos, settings).run(suite)

        assert report.succeeded
        assert provisioner.calls == []

    def test_skip_deploy_still_destroys(
        self, atmos: Atmos, provisioner: FakeProvisioner
    ) -> None:
        """Reusing dependencies from an earlier run still cleans them up."""
        settings = HarnessSettings(skip_deploy_dependencies=True)
        LifecycleRunner(atmos, settings).run(_suite([], "vpc"))
        assert provisioner.operations("deploy") == []
        assert provisioner.operations("destroy") == ["vpc"]

    def test_skip_setup_and_teardown(self, atmos: Atmos) -> None:
        events: list[str] = []
        settings = HarnessSettings(skip_setup=True, skip_teardown=True)
        suite = _suite(events)
        suite.add_case("basic", lambda ctx: events.append("basic"))

        report = LifecycleRunner(atmos, settings).run(suite)

        assert events == ["basic"]
        assert report.states == ALL_STATES

    def test_skip_tests(self, atmos: Atmos) -> None:
        events: list[str] = []
        suite = _suite(events)
        suite.add_case("basic", lambda ctx: events.append("basic"))

        report = LifecycleRunner(atmos, HarnessSettings(skip_tests=True)).run(suite)

        assert events == ["setup", "teardown"]
        assert report.case("basic").status is CaseStatus.SKIPPED
        assert report.succeeded

    def test_skip_destroy_component(
        self, atmos: Atmos, provisioner: FakeProvisioner
    ) -> None:
        suite = Suite("default", random_identifier=RANDOM_ID)
        suite.add_case("basic", lambda ctx: ctx.deploy("efs/basic", "default-test"))

        LifecycleRunner(atmos, HarnessSettings(skip_destroy_component=True)).run(suite)

        assert provisioner.operations("deploy") == ["efs/basic"]
        assert provisioner.operations("destroy") == []
