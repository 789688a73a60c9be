"""Exception hierarchy for the atmos component test harness.

All harness exceptions inherit from HarnessError, so callers can catch every
harness failure with a single except clause.

Exception Hierarchy:
    HarnessError (base)
    ├── ProvisioningError          # atmos deploy/destroy/output returned an error
    │   └── DependencyError        # A suite prerequisite failed to deploy
    ├── OutputNotFoundError        # Requested output key is absent
    ├── OutputTypeError            # Output exists but has the wrong shape
    ├── FixtureError               # Working directory could not be prepared
    └── ResourceNotFoundError      # Live cloud resource not found

Exit Codes:
    0 - Success
    1 - Test failure / general error (HarnessError)
    2 - Usage error (click)
    3 - Provisioning failure (ProvisioningError)
    4 - Dependency failure (DependencyError)
    5 - Output missing or malformed (OutputNotFoundError, OutputTypeError)
    6 - Fixture failure (FixtureError)
    7 - Cloud resource not found (ResourceNotFoundError)

Example:
    >>> from atmos_testing.errors import OutputNotFoundError
    >>> raise OutputNotFoundError("efs/basic", "default-test", "efs_id")
    Traceback (most recent call last):
        ...
    OutputNotFoundError: Output 'efs_id' not found on efs/basic in stack default-test
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes for suite runs and CLI commands."""

    SUCCESS = 0
    """Every case passed."""

    TEST_FAILURE = 1
    """At least one case failed (catch-all for harness errors)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, missing required options)."""

    PROVISIONING_ERROR = 3
    """atmos returned an error for deploy, destroy or output."""

    DEPENDENCY_ERROR = 4
    """A suite prerequisite could not be deployed."""

    OUTPUT_ERROR = 5
    """A requested output was absent or malformed."""

    FIXTURE_ERROR = 6
    """The atmos working directory could not be prepared."""

    RESOURCE_NOT_FOUND = 7
    """A live cloud resource was not found."""


class HarnessError(Exception):
    """Base exception for all harness errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = ExitCode.TEST_FAILURE


class ProvisioningError(HarnessError):
    """Raised when an atmos command for a unit exits non-zero.

    Attributes:
        component: Component the command targeted.
        stack: Stack the command targeted.
        operation: Which operation failed ("deploy", "destroy", "output", ...).
        detail: stderr (or other diagnostic text) from the failed command.
        returncode: Process exit status, if a process ran.
    """

    exit_code: int = ExitCode.PROVISIONING_ERROR

    def __init__(
        self,
        component: str,
        stack: str,
        operation: str,
        detail: str = "",
        returncode: int | None = None,
    ) -> None:
        self.component = component
        self.stack = stack
        self.operation = operation
        self.detail = detail.strip()
        self.returncode = returncode

        msg = f"atmos {operation} failed for {component} in stack {stack}"
        if returncode is not None:
            msg += f" (exit {returncode})"
        if self.detail:
            msg += f": {self.detail}"
        super().__init__(msg)


class DependencyError(ProvisioningError):
    """Raised when a suite prerequisite fails to deploy.

    No test case can be trusted without its dependencies, so this aborts
    the whole suite.
    """

    exit_code: int = ExitCode.DEPENDENCY_ERROR

    def __init__(self, cause: ProvisioningError) -> None:
        self.cause = cause
        super().__init__(
            cause.component,
            cause.stack,
            f"dependency {cause.operation}",
            cause.detail,
            cause.returncode,
        )


class OutputNotFoundError(HarnessError):
    """Raised when a requested output key does not exist on a unit.

    This is a hard failure for the current test case. There is no default
    value: a unit that was never deployed, or that was deployed disabled,
    simply has no outputs.

    Attributes:
        component: Component that was queried.
        stack: Stack that was queried.
        key: Output name that was requested.
        available: Output names that do exist, for the error message.
    """

    exit_code: int = ExitCode.OUTPUT_ERROR

    def __init__(
        self,
        component: str,
        stack: str,
        key: str,
        available: list[str] | None = None,
    ) -> None:
        self.component = component
        self.stack = stack
        self.key = key
        self.available = available or []

        msg = f"Output '{key}' not found on {component} in stack {stack}"
        if self.available:
            preview = ", ".join(sorted(self.available)[:10])
            if len(self.available) > 10:
                preview += f" (and {len(self.available) - 10} more)"
            msg += f". Available outputs: {preview}"
        super().__init__(msg)


class OutputTypeError(HarnessError):
    """Raised when an output exists but is not the requested shape.

    Attributes:
        key: Output name.
        expected: Expected shape ("scalar" or "list").
        actual: Python type name of the value found.
    """

    exit_code: int = ExitCode.OUTPUT_ERROR

    def __init__(self, component: str, stack: str, key: str, expected: str, actual: str) -> None:
        self.component = component
        self.stack = stack
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Output '{key}' on {component} in stack {stack} is {actual}, expected {expected}"
        )


class FixtureError(HarnessError):
    """Raised when the atmos working directory cannot be prepared."""

    exit_code: int = ExitCode.FIXTURE_ERROR


class ResourceNotFoundError(HarnessError):
    """Raised when a read-only cloud lookup finds nothing.

    Attributes:
        resource_type: Kind of resource (e.g., "file system").
        resource_id: Identifier that was looked up.
    """

    exit_code: int = ExitCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")


__all__ = [
    "DependencyError",
    "ExitCode",
    "FixtureError",
    "HarnessError",
    "OutputNotFoundError",
    "OutputTypeError",
    "ProvisioningError",
    "ResourceNotFoundError",
]
