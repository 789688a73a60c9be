"""Integration test harness for atmos/Terraform components.

Components:
    harness: Deployable units, output access, soft assertions, dependency
        resolution and the suite lifecycle runner
    fixtures: atmos command execution, temporary working directories,
        random identifiers and read-only AWS lookups
    cli: ``atmos-test`` helpers for interrupted runs

Usage:
    from atmos_testing.config import get_settings
    from atmos_testing.fixtures.workdir import ComponentFixture

    with ComponentFixture(get_settings()) as fixture:
        suite = fixture.suite("default")
        suite.add_dependency("vpc", "default-test")

        @suite.test("basic")
        def basic(ctx):
            unit = ctx.deploy("efs/basic", "default-test")
            ctx.check.has_prefix(ctx.atmos.output(unit, "efs_id"), "fs-", "efs_id")

        report = fixture.run(suite)
        assert report.succeeded, report.format()
"""

from __future__ import annotations

__version__ = "0.1.0"
