"""Suite lifecycle: dependencies, setup, cases, teardown.

A Suite declares its dependencies, one setup hook, one teardown hook and any
number of named test cases. A LifecycleRunner executes it:

    Init → DependenciesUp → SuiteSetup → Running → SuiteTeardown
         → DependenciesDown → Done

Cases run one at a time, in declaration order, because they share live
infrastructure. A failing case never stops later cases. Teardown and
dependency destruction sit in a ``finally`` path, so they run on every exit
(normal completion, failed checks, unexpected exceptions).

Hooks and cases receive explicit context objects instead of reaching for
module-level state:

    suite = Suite("default")
    suite.add_dependency("vpc", "default-test")

    @suite.setup
    def deploy_zone(ctx: SuiteContext) -> None:
        ctx.atmos.get_and_deploy("dns-delegated", "default-test", zone_inputs(ctx))

    @suite.teardown
    def destroy_zone(ctx: SuiteContext) -> None:
        ctx.atmos.get_and_destroy("dns-delegated", "default-test", zone_inputs(ctx))

    @suite.test("basic")
    def basic(ctx: CaseContext) -> None:
        unit = ctx.deploy("efs/basic", "default-test")
        ctx.check.has_prefix(ctx.atmos.output(unit, "efs_id"), "fs-", "efs_id")

    report = LifecycleRunner(atmos, settings).run(suite)
"""

from __future__ import annotations

import time
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from atmos_testing.config import HarnessSettings
from atmos_testing.errors import ExitCode, HarnessError
from atmos_testing.fixtures.identifiers import generate_random_identifier
from atmos_testing.harness.assertions import Assertions
from atmos_testing.harness.dependencies import DependencyResolver
from atmos_testing.harness.outputs import Atmos
from atmos_testing.harness.report import CaseResult, CaseStatus, SuiteReport
from atmos_testing.harness.units import DeployableUnit

logger = structlog.get_logger(__name__)


class LifecycleState(str, Enum):
    """States of one suite execution."""

    INIT = "init"
    DEPENDENCIES_UP = "dependencies_up"
    SUITE_SETUP = "suite_setup"
    RUNNING = "running"
    SUITE_TEARDOWN = "suite_teardown"
    DEPENDENCIES_DOWN = "dependencies_down"
    DONE = "done"


@dataclass
class SuiteContext:
    """State shared by the hooks and cases of one suite execution.

    Attributes:
        suite_name: Name of the running suite.
        atmos: Output accessor for deploying and reading units.
        settings: Harness settings for the run.
        random_identifier: Per-suite token for unique resource names.
    """

    suite_name: str
    atmos: Atmos
    settings: HarnessSettings
    random_identifier: str

    def get_random_identifier(self) -> str:
        return self.random_identifier

    @property
    def aws_region(self) -> str:
        return self.settings.aws_region


@dataclass
class CaseContext:
    """Per-case context: the shared suite context plus an assertion sink
    and a stack of release actions.

    Release actions registered with ``defer`` (or implicitly by ``deploy``)
    run in reverse registration order when the case ends, however it ends.
    """

    name: str
    suite: SuiteContext
    check: Assertions = field(default_factory=Assertions)
    warnings: list[str] = field(default_factory=list)
    _releases: list[tuple[str, Callable[[], Any]]] = field(
        default_factory=list, init=False, repr=False
    )

    @property
    def atmos(self) -> Atmos:
        return self.suite.atmos

    @property
    def settings(self) -> HarnessSettings:
        return self.suite.settings

    @property
    def random_identifier(self) -> str:
        return self.suite.random_identifier

    @property
    def aws_region(self) -> str:
        return self.suite.aws_region

    def defer(self, description: str, action: Callable[[], Any]) -> None:
        """Register a release action to run when the case ends."""
        self._releases.append((description, action))

    def deploy(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> DeployableUnit:
        """Deploy a unit and schedule its destroy for the end of the case.

        The destroy is registered before the deploy starts, so partially
        applied infrastructure from a failed deploy is torn down as well.
        With ``skip_destroy_component`` set the unit is left in place.

        Raises:
            ProvisioningError: If the deploy fails (ends the case).
        """
        unit = DeployableUnit(component=component, stack=stack, vars=inputs)
        if self.settings.skip_destroy_component:
            logger.info("component_destroy_skipped", component=component, stack=stack)
        else:
            self.defer(f"destroy {unit}", lambda: self.atmos.destroy(unit))
        self.atmos.deploy(unit)
        return unit

    def verify_enabled_flag(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Deploy a unit with ``enabled = false`` and check it exposes nothing.

        Absence of outputs is the success signal; a failed check is recorded
        rather than raised.

        Returns:
            The outputs the disabled unit reported (empty when it passes).
        """
        disabled_inputs = {**(inputs or {}), "enabled": False}
        unit = self.deploy(component, stack, disabled_inputs)
        outputs = self.atmos.outputs(unit)
        self.check.empty(outputs, f"{unit} outputs with enabled=false")
        return outputs

    def release(self) -> list[str]:
        """Run release actions, newest first. Failures become warnings.

        Returns:
            Warning messages for release actions that raised.
        """
        while self._releases:
            description, action = self._releases.pop()
            try:
                action()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "case_release_failed",
                    case=self.name,
                    action=description,
                    error=str(exc),
                )
                self.warnings.append(f"{description} failed: {exc}")
        return list(self.warnings)


SuiteHook = Callable[[SuiteContext], Any]
CaseFunction = Callable[[CaseContext], Any]


@dataclass(frozen=True)
class SuiteCase:
    """A named test case within a suite."""

    name: str
    function: CaseFunction


class Suite:
    """A named collection of setup hook, teardown hook and test cases.

    Args:
        name: Suite name.
        random_identifier: Token for unique resource names. Generated when
            not given.
    """

    def __init__(self, name: str, *, random_identifier: str | None = None) -> None:
        if not name:
            msg = "Suite name must not be empty"
            raise ValueError(msg)
        self.name = name
        self.random_identifier = random_identifier or generate_random_identifier()
        self.dependencies = DependencyResolver()
        self._setup: SuiteHook | None = None
        self._teardown: SuiteHook | None = None
        self._cases: list[SuiteCase] = []

    @property
    def cases(self) -> tuple[SuiteCase, ...]:
        return tuple(self._cases)

    @property
    def setup_hook(self) -> SuiteHook | None:
        return self._setup

    @property
    def teardown_hook(self) -> SuiteHook | None:
        return self._teardown

    def get_random_identifier(self) -> str:
        return self.random_identifier

    def add_dependency(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> DeployableUnit:
        """Declare a prerequisite deployed before setup and destroyed after teardown."""
        return self.dependencies.add_dependency(component, stack, inputs)

    def setup(self, hook: SuiteHook) -> SuiteHook:
        """Register the setup hook (usable as a decorator)."""
        if self._setup is not None:
            msg = f"Suite '{self.name}' already has a setup hook"
            raise ValueError(msg)
        self._setup = hook
        return hook

    def teardown(self, hook: SuiteHook) -> SuiteHook:
        """Register the teardown hook (usable as a decorator)."""
        if self._teardown is not None:
            msg = f"Suite '{self.name}' already has a teardown hook"
            raise ValueError(msg)
        self._teardown = hook
        return hook

    def test(self, name: str | None = None) -> Callable[[CaseFunction], CaseFunction]:
        """Register a test case (decorator). The name defaults to the function name."""

        def register(function: CaseFunction) -> CaseFunction:
            self.add_case(name or function.__name__, function)
            return function

        return register

    def add_case(self, name: str, function: CaseFunction) -> None:
        if any(case.name == name for case in self._cases):
            msg = f"Suite '{self.name}' already has a case named '{name}'"
            raise ValueError(msg)
        self._cases.append(SuiteCase(name, function))


class LifecycleRunner:
    """Executes suites against an Atmos accessor.

    Args:
        atmos: Output accessor shared by hooks and cases.
        settings: Harness settings (skip flags, region). Defaults to
            environment-derived settings.
    """

    def __init__(self, atmos: Atmos, settings: HarnessSettings | None = None) -> None:
        self.atmos = atmos
        self.settings = settings or HarnessSettings()
        self.state = LifecycleState.INIT
        self._report: SuiteReport | None = None

    def run(self, suite: Suite) -> SuiteReport:
        """Execute a suite and return its report.

        A suite may be run more than once; every run deploys and destroys
        the suite's dependencies itself.

        Never raises for dependency, setup, case or cleanup failures; those
        are recorded in the report. Exceptions that are not ``Exception``
        subclasses (KeyboardInterrupt, SystemExit) still propagate after
        cleanup has run.
        """
        report = SuiteReport(name=suite.name)
        self._report = report
        self.state = LifecycleState.INIT
        report.states.append(self.state.value)
        ctx = SuiteContext(
            suite_name=suite.name,
            atmos=self.atmos,
            settings=self.settings,
            random_identifier=suite.random_identifier,
        )
        log = logger.bind(suite=suite.name, random_identifier=suite.random_identifier)
        log.info("suite_started", cases=[c.name for c in suite.cases])
        suite.dependencies.reset()

        setup_entered = False
        try:
            self._transition(LifecycleState.DEPENDENCIES_UP)
            suite.dependencies.deploy_all(
                self.atmos, skip=self.settings.skip_deploy_dependencies
            )

            self._transition(LifecycleState.SUITE_SETUP)
            setup_entered = True
            if suite.setup_hook is not None and not self.settings.skip_setup:
                suite.setup_hook(ctx)

            self._transition(LifecycleState.RUNNING)
            for case in suite.cases:
                report.cases.append(self._run_case(case, ctx))
        except HarnessError as exc:
            self._abort(report, suite, exc, exc.exit_code)
        except Exception as exc:  # noqa: BLE001
            self._abort(report, suite, exc, ExitCode.TEST_FAILURE)
        finally:
            self._transition(LifecycleState.SUITE_TEARDOWN)
            if setup_entered:
                self._run_teardown(suite, ctx, report)

            self._transition(LifecycleState.DEPENDENCIES_DOWN)
            report.warnings.extend(
                suite.dependencies.destroy_all(
                    self.atmos, skip=self.settings.skip_destroy_dependencies
                )
            )
            self._transition(LifecycleState.DONE)
            log.info(
                "suite_finished",
                succeeded=report.succeeded,
                failed_cases=[c.name for c in report.failed_cases],
                warnings=len(report.all_warnings),
            )
        return report

    def _transition(self, state: LifecycleState) -> None:
        logger.debug("lifecycle_transition", previous=self.state.value, state=state.value)
        self.state = state
        if self._report is not None:
            self._report.states.append(state.value)

    def _abort(
        self,
        report: SuiteReport,
        suite: Suite,
        exc: Exception,
        exit_code: int,
    ) -> None:
        logger.error(
            "suite_aborted",
            suite=suite.name,
            state=self.state.value,
            error=str(exc),
        )
        report.fatal_error = f"{self.state.value}: {exc}"
        report.fatal_exit_code = exit_code
        ran = {result.name for result in report.cases}
        for case in suite.cases:
            if case.name not in ran:
                report.cases.append(
                    CaseResult(name=case.name, status=CaseStatus.SKIPPED, error="suite aborted")
                )

    def _run_teardown(self, suite: Suite, ctx: SuiteContext, report: SuiteReport) -> None:
        if suite.teardown_hook is None:
            return
        if self.settings.skip_teardown:
            logger.info("suite_teardown_skipped", suite=suite.name)
            return
        try:
            suite.teardown_hook(ctx)
        except Exception as exc:  # noqa: BLE001
            logger.warning("suite_teardown_failed", suite=suite.name, error=str(exc))
            report.warnings.append(f"Teardown of suite '{suite.name}' failed: {exc}")

    def _run_case(self, case: SuiteCase, suite_ctx: SuiteContext) -> CaseResult:
        log = logger.bind(suite=suite_ctx.suite_name, case=case.name)
        if self.settings.skip_tests:
            log.info("case_skipped")
            return CaseResult(name=case.name, status=CaseStatus.SKIPPED)

        ctx = CaseContext(name=case.name, suite=suite_ctx)
        result = CaseResult(name=case.name)
        log.info("case_started")
        start = time.monotonic()
        try:
            case.function(ctx)
        except AssertionError as exc:
            result.status = CaseStatus.FAILED
            result.error = f"assertion failed: {exc}" if str(exc) else "assertion failed"
        except HarnessError as exc:
            result.status = CaseStatus.ERROR
            result.error = str(exc)
        except Exception as exc:  # noqa: BLE001
            result.status = CaseStatus.ERROR
            result.error = f"unexpected {type(exc).__name__}: {exc}"
            log.error("case_crashed", traceback=traceback.format_exc())
        finally:
            result.warnings = ctx.release()
            result.duration = time.monotonic() - start

        result.failures = ctx.check.failures
        result.checks = ctx.check.count
        if result.status is CaseStatus.PASSED and result.failures:
            result.status = CaseStatus.FAILED
        log.info(
            "case_finished",
            status=result.status.value,
            failures=len(result.failures),
            duration=round(result.duration, 1),
        )
        return result


__all__ = [
    "CaseContext",
    "LifecycleRunner",
    "LifecycleState",
    "Suite",
    "SuiteCase",
    "SuiteContext",
]
