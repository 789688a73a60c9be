"""Suite and case results.

A SuiteReport is what a LifecycleRunner returns: one CaseResult per declared
case, any suite-level fatal error, and cleanup warnings. Cleanup warnings
never turn a passing suite into a failing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from atmos_testing.errors import ExitCode
from atmos_testing.harness.assertions import AssertionFailure


class CaseStatus(str, Enum):
    """Outcome of one test case."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class CaseResult:
    """Outcome of one test case.

    Attributes:
        name: Case name.
        status: Final status.
        failures: Accumulated assertion failures.
        error: Error that stopped the case early (missing output, failed
            deploy, unexpected exception), if any.
        warnings: Cleanup problems inside the case (e.g., a failed destroy).
        checks: Number of checks evaluated.
        duration: Wall-clock seconds.
    """

    name: str
    status: CaseStatus = CaseStatus.PASSED
    failures: list[AssertionFailure] = field(default_factory=list)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    checks: int = 0
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (CaseStatus.PASSED, CaseStatus.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "failures": [str(f) for f in self.failures],
            "error": self.error,
            "warnings": list(self.warnings),
            "checks": self.checks,
            "duration": round(self.duration, 3),
        }


@dataclass
class SuiteReport:
    """Outcome of one suite execution.

    Attributes:
        name: Suite name.
        cases: Results in execution order.
        fatal_error: Error that aborted the suite (dependency or setup failure).
        fatal_exit_code: Exit code associated with fatal_error.
        warnings: Suite-level cleanup warnings (teardown, dependency destroy).
        states: Lifecycle states visited, in order.
    """

    name: str
    cases: list[CaseResult] = field(default_factory=list)
    fatal_error: str | None = None
    fatal_exit_code: int = ExitCode.TEST_FAILURE
    warnings: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.fatal_error is None and all(c.ok for c in self.cases)

    @property
    def failed_cases(self) -> list[CaseResult]:
        return [c for c in self.cases if not c.ok]

    @property
    def all_warnings(self) -> list[str]:
        """Suite warnings followed by per-case warnings, prefixed by case name."""
        case_warnings = [f"{c.name}: {w}" for c in self.cases for w in c.warnings]
        return [*self.warnings, *case_warnings]

    @property
    def exit_code(self) -> int:
        if self.fatal_error is not None:
            return int(self.fatal_exit_code)
        if self.failed_cases:
            return int(ExitCode.TEST_FAILURE)
        return int(ExitCode.SUCCESS)

    def case(self, name: str) -> CaseResult:
        """Look up a case result by name.

        Raises:
            KeyError: If no case with that name ran.
        """
        for result in self.cases:
            if result.name == name:
                return result
        raise KeyError(name)

    def format(self) -> str:
        """Human-readable summary for pytest failure messages and the console."""
        lines = [f"Suite '{self.name}': {'PASSED' if self.succeeded else 'FAILED'}"]
        if self.fatal_error:
            lines.append(f"  fatal: {self.fatal_error}")
        for result in self.cases:
            lines.append(f"  [{result.status.value}] {result.name} ({result.duration:.1f}s)")
            if result.error:
                lines.append(f"      error: {result.error}")
            lines.extend(f"      - {failure}" for failure in result.failures)
        warnings = self.all_warnings
        if warnings:
            lines.append("  cleanup warnings:")
            lines.extend(f"      ! {w}" for w in warnings)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "succeeded": self.succeeded,
            "exit_code": self.exit_code,
            "fatal_error": self.fatal_error,
            "cases": [c.to_dict() for c in self.cases],
            "warnings": list(self.warnings),
            "states": list(self.states),
        }


__all__ = ["CaseResult", "CaseStatus", "SuiteReport"]
