"""Integration suite for the EFS component.

The suite deploys a VPC as a dependency and a delegated DNS zone in setup,
then runs two cases against ``default-test``:

    basic     Deploy efs/basic and check its outputs against each other, the
              VPC's availability zones, the delegated zone and the live file
              system described through the EFS API.
    disabled  Deploy efs/disabled with ``enabled = false`` and check that it
              exposes no outputs and created no file system.

Example:
    with ComponentFixture(get_settings()) as fixture:
        report = fixture.run(define_suite(fixture.suite("default")))
        assert report.succeeded, report.format()
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from atmos_testing.fixtures.aws import (
    create_efs_client,
    describe_file_system,
    efs_dns_name,
    find_file_systems,
    mount_target_dns_name,
)
from atmos_testing.harness.lifecycle import CaseContext, Suite, SuiteContext
from atmos_testing.harness.units import DeployableUnit

logger = structlog.get_logger(__name__)

STACK = "default-test"
ZONE_NAME = "components.cptest.test-automation.app"
EXPECTED_MOUNT_TARGETS = 2

# efs_host is <environment>.<stage>.<tenant>.<delegated domain>
HOST_PREFIX = "ue2.test.default"

EfsClientFactory = Callable[[str], Any]


def zone_inputs(random_identifier: str) -> dict[str, Any]:
    """Inputs for the delegated zone the EFS host record lands in."""
    return {
        "zone_config": [
            {
                "subdomain": random_identifier,
                "zone_name": ZONE_NAME,
            }
        ]
    }


def define_suite(
    suite: Suite,
    *,
    efs_client_factory: EfsClientFactory = create_efs_client,
) -> Suite:
    """Register the EFS dependency, hooks and cases on a suite.

    Args:
        suite: Empty suite to populate.
        efs_client_factory: Builds an EFS client for a region.

    Returns:
        The same suite.
    """
    suite.add_dependency("vpc", STACK)

    @suite.setup
    def deploy_zone(ctx: SuiteContext) -> None:
        inputs = zone_inputs(ctx.get_random_identifier())
        ctx.atmos.get_and_deploy("dns-delegated", STACK, inputs)

    @suite.teardown
    def destroy_zone(ctx: SuiteContext) -> None:
        inputs = zone_inputs(ctx.get_random_identifier())
        ctx.atmos.get_and_destroy("dns-delegated", STACK, inputs)

    @suite.test("basic")
    def basic(ctx: CaseContext) -> None:
        unit = ctx.deploy("efs/basic", STACK)
        efs_id, efs_arn = check_outputs(ctx, unit)
        check_file_system(ctx, efs_client_factory(ctx.aws_region), efs_id, efs_arn)

    @suite.test("disabled")
    def disabled(ctx: CaseContext) -> None:
        ctx.verify_enabled_flag("efs/disabled", STACK)
        client = efs_client_factory(ctx.aws_region)
        leftovers = find_file_systems(client, name_suffix=f"efs-disabled-{ctx.random_identifier}")
        ctx.check.empty(
            [fs.get("FileSystemId") for fs in leftovers],
            "file systems created with enabled=false",
        )

    return suite


def check_outputs(ctx: CaseContext, unit: DeployableUnit) -> tuple[str, str]:
    """Check the outputs of a deployed efs unit.

    Returns:
        (efs_id, efs_arn) as reported by the unit, for the live checks.
    """
    atmos = ctx.atmos
    check = ctx.check
    region = ctx.aws_region

    efs_arn = str(atmos.output(unit, "efs_arn") or "")
    check.not_empty(efs_arn, "efs_arn")

    efs_id = str(atmos.output(unit, "efs_id") or "")
    check.has_prefix(efs_id, "fs-", "efs_id")

    check.equal(atmos.output(unit, "efs_dns_name"), efs_dns_name(efs_id, region), "efs_dns_name")

    dns_delegated = DeployableUnit(component="dns-delegated", stack=STACK)
    delegated_domain = atmos.output(dns_delegated, "default_domain_name")
    check.equal(atmos.output(unit, "efs_host"), f"{HOST_PREFIX}.{delegated_domain}", "efs_host")

    target_dns_names = atmos.output_list(unit, "efs_mount_target_dns_names")
    check.length(target_dns_names, EXPECTED_MOUNT_TARGETS, "efs_mount_target_dns_names")
    vpc = DeployableUnit(component="vpc", stack=STACK)
    for az in atmos.output_list(vpc, "availability_zones"):
        check.contains(
            target_dns_names,
            mount_target_dns_name(str(az), efs_id, region),
            f"mount target DNS name for {az}",
        )

    check.all_have_prefix(
        atmos.output_list(unit, "efs_mount_target_ids"), "fsmt-", "mount target id"
    )
    for ip in atmos.output_list(unit, "efs_mount_target_ips"):
        check.is_ip_address(ip, "mount target IP")
    check.all_have_prefix(
        atmos.output_list(unit, "efs_network_interface_ids"), "eni-", "network interface id"
    )

    security_group_id = str(atmos.output(unit, "security_group_id") or "")
    check.has_prefix(security_group_id, "sg-", "security_group_id")
    check.has_suffix(
        atmos.output(unit, "security_group_arn"), security_group_id, "security_group_arn"
    )
    check.not_empty(atmos.output(unit, "security_group_name"), "security_group_name")
    return efs_id, efs_arn


def check_file_system(ctx: CaseContext, client: Any, efs_id: str, efs_arn: str) -> None:
    """Compare the live file system with the unit's outputs and the stack config."""
    fs = describe_file_system(client, efs_id)
    check = ctx.check
    logger.debug("file_system_described", efs_id=efs_id, state=fs.get("LifeCycleState"))

    check.equal(fs.get("FileSystemId"), efs_id, "FileSystemId")
    check.equal(fs.get("FileSystemArn"), efs_arn, "FileSystemArn")
    check.equal(fs.get("PerformanceMode"), "generalPurpose", "PerformanceMode")
    # Multi-AZ file systems have no AZ
    check.is_none(fs.get("AvailabilityZoneId"), "AvailabilityZoneId")
    check.is_none(fs.get("AvailabilityZoneName"), "AvailabilityZoneName")
    check.true(fs.get("Encrypted"), "Encrypted")
    check.equal(
        fs.get("FileSystemProtection", {}).get("ReplicationOverwriteProtection"),
        "ENABLED",
        "ReplicationOverwriteProtection",
    )
    check.equal(fs.get("LifeCycleState"), "available", "LifeCycleState")
    check.equal(fs.get("NumberOfMountTargets"), EXPECTED_MOUNT_TARGETS, "NumberOfMountTargets")
    check.equal(fs.get("ThroughputMode"), "bursting", "ThroughputMode")
    # Bursting mode has no provisioned throughput
    check.is_none(fs.get("ProvisionedThroughputInMibps"), "ProvisionedThroughputInMibps")


__all__ = [
    "EXPECTED_MOUNT_TARGETS",
    "STACK",
    "ZONE_NAME",
    "check_file_system",
    "check_outputs",
    "define_suite",
    "zone_inputs",
]
