"""Non-aborting verification checks.

Each check compares an actual value against an expectation, records an
AssertionFailure when they differ, and returns whether it passed. Checks
never raise, so every check in a test case runs and all failures are
reported together when the case ends.

Example:
    check = Assertions()
    check.has_prefix(efs_id, "fs-", "efs_id")
    check.equal(dns_name, f"{efs_id}.efs.us-east-2.amazonaws.com", "efs_dns_name")
    if not check.passed:
        print(check.summary())
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable, Sized
from dataclasses import dataclass
from typing import Any

_MISSING = object()


@dataclass(frozen=True)
class AssertionFailure:
    """A single failed check.

    Attributes:
        check: Name of the check (e.g., "equal", "has_prefix").
        description: What was being checked, as given by the caller.
        expected: Expected value or condition.
        actual: Value that was observed.
    """

    check: str
    description: str
    expected: Any
    actual: Any

    def __str__(self) -> str:
        label = f"{self.description}: " if self.description else ""
        return f"{label}{self.check} failed (expected {self.expected!r}, got {self.actual!r})"


class Assertions:
    """Accumulating assertion sink for one test case."""

    def __init__(self) -> None:
        self._failures: list[AssertionFailure] = []
        self._count = 0

    @property
    def failures(self) -> list[AssertionFailure]:
        """Failures recorded so far, in check order."""
        return list(self._failures)

    @property
    def passed(self) -> bool:
        return not self._failures

    @property
    def count(self) -> int:
        """Number of checks evaluated."""
        return self._count

    def summary(self) -> str:
        """One line per failure."""
        return "\n".join(str(f) for f in self._failures)

    def fail(self, description: str, *, expected: Any = None, actual: Any = None) -> bool:
        """Record an unconditional failure."""
        return self._record("fail", False, description, expected, actual)

    def equal(self, actual: Any, expected: Any, description: str = "") -> bool:
        return self._record("equal", actual == expected, description, expected, actual)

    def not_equal(self, actual: Any, unexpected: Any, description: str = "") -> bool:
        return self._record(
            "not_equal", actual != unexpected, description, f"not {unexpected!r}", actual
        )

    def true(self, value: Any, description: str = "") -> bool:
        return self._record("true", value is True, description, True, value)

    def false(self, value: Any, description: str = "") -> bool:
        return self._record("false", value is False, description, False, value)

    def is_none(self, value: Any, description: str = "") -> bool:
        return self._record("is_none", value is None, description, None, value)

    def is_not_none(self, value: Any, description: str = "") -> bool:
        return self._record("is_not_none", value is not None, description, "not None", value)

    def not_empty(self, value: Any, description: str = "") -> bool:
        """Value is not None and, if sized, has at least one element."""
        ok = value is not None and (not isinstance(value, Sized) or len(value) > 0)
        return self._record("not_empty", ok, description, "non-empty value", value)

    def empty(self, value: Any, description: str = "") -> bool:
        """Value is None or a sized value with no elements."""
        ok = value is None or (isinstance(value, Sized) and len(value) == 0)
        return self._record("empty", ok, description, "empty value", value)

    def has_prefix(self, value: Any, prefix: str, description: str = "") -> bool:
        ok = isinstance(value, str) and value.startswith(prefix)
        return self._record("has_prefix", ok, description, f"{prefix}...", value)

    def has_suffix(self, value: Any, suffix: str, description: str = "") -> bool:
        ok = isinstance(value, str) and value.endswith(suffix)
        return self._record("has_suffix", ok, description, f"...{suffix}", value)

    def contains(self, container: Any, item: Any, description: str = "") -> bool:
        try:
            ok = item in container
        except TypeError:
            ok = False
        return self._record("contains", ok, description, f"contains {item!r}", container)

    def length(self, value: Any, expected: int, description: str = "") -> bool:
        actual = len(value) if isinstance(value, Sized) else _MISSING
        ok = actual is not _MISSING and actual == expected
        return self._record(
            "length",
            ok,
            description,
            expected,
            actual if actual is not _MISSING else value,
        )

    def matches(self, value: Any, pattern: str | re.Pattern[str], description: str = "") -> bool:
        """Value is a string fully matching the regular expression."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        ok = isinstance(value, str) and regex.fullmatch(value) is not None
        return self._record("matches", ok, description, regex.pattern, value)

    def is_ip_address(self, value: Any, description: str = "") -> bool:
        """Value parses as an IPv4 or IPv6 address."""
        ok = False
        if isinstance(value, str):
            try:
                ipaddress.ip_address(value)
                ok = True
            except ValueError:
                ok = False
        return self._record("is_ip_address", ok, description, "IP address", value)

    def all_have_prefix(self, values: Iterable[Any], prefix: str, description: str = "") -> bool:
        """Every element starts with prefix; one failure is recorded per bad element."""
        results = [self.has_prefix(v, prefix, description) for v in values]
        return all(results)

    def _record(
        self,
        check: str,
        ok: bool,
        description: str,
        expected: Any,
        actual: Any,
    ) -> bool:
        self._count += 1
        if not ok:
            self._failures.append(AssertionFailure(check, description, expected, actual))
        return ok


__all__ = ["AssertionFailure", "Assertions"]
