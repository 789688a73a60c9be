"""Read-only AWS lookups for verifying deployed EFS components.

Nothing in this module mutates cloud state; it only describes resources the
component created so tests can compare live attributes with outputs.

Example:
    from atmos_testing.fixtures.aws import create_efs_client, describe_file_system

    client = create_efs_client("us-east-2")
    fs = describe_file_system(client, "fs-0123456789abcdef0")
    assert fs["PerformanceMode"] == "generalPurpose"
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.exceptions import ClientError

from atmos_testing.errors import ResourceNotFoundError

logger = structlog.get_logger(__name__)

# EFS lifecycle states of file systems that are on their way out
_GONE_STATES = ("deleting", "deleted")


def efs_dns_name(file_system_id: str, region: str) -> str:
    """Regional DNS name of a file system.

    Example:
        >>> efs_dns_name("fs-abc123", "us-east-2")
        'fs-abc123.efs.us-east-2.amazonaws.com'
    """
    return f"{file_system_id}.efs.{region}.amazonaws.com"


def mount_target_dns_name(availability_zone: str, file_system_id: str, region: str) -> str:
    """Per-AZ mount target DNS name.

    Example:
        >>> mount_target_dns_name("us-east-2a", "fs-abc123", "us-east-2")
        'us-east-2a.fs-abc123.efs.us-east-2.amazonaws.com'
    """
    return f"{availability_zone}.{efs_dns_name(file_system_id, region)}"


def create_efs_client(region: str) -> Any:
    """Create an EFS client from the default credential chain.

    Args:
        region: AWS region.

    Returns:
        boto3 EFS client.
    """
    session = boto3.session.Session(region_name=region)
    return session.client("efs")


def describe_file_system(client: Any, file_system_id: str) -> dict[str, Any]:
    """Describe a single file system.

    Args:
        client: boto3 EFS client.
        file_system_id: File system ID (e.g., "fs-0123456789abcdef0").

    Returns:
        The FileSystemDescription as returned by DescribeFileSystems.

    Raises:
        ResourceNotFoundError: If the file system does not exist.
        botocore.exceptions.ClientError: For any other API error.
    """
    try:
        response = client.describe_file_systems(FileSystemId=file_system_id)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") == "FileSystemNotFound":
            raise ResourceNotFoundError("EFS file system", file_system_id) from exc
        raise
    file_systems = response.get("FileSystems", [])
    if not file_systems:
        raise ResourceNotFoundError("EFS file system", file_system_id)
    return file_systems[0]


def describe_mount_targets(client: Any, file_system_id: str) -> list[dict[str, Any]]:
    """List the mount targets of a file system.

    Raises:
        ResourceNotFoundError: If the file system does not exist.
    """
    try:
        response = client.describe_mount_targets(FileSystemId=file_system_id)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") == "FileSystemNotFound":
            raise ResourceNotFoundError("EFS file system", file_system_id) from exc
        raise
    return list(response.get("MountTargets", []))


def find_file_systems(client: Any, *, name_suffix: str) -> list[dict[str, Any]]:
    """Find live file systems whose Name ends with a suffix.

    Used to prove absence: a disabled component must not have created a file
    system carrying this run's identifier. File systems already being
    deleted are ignored.

    Args:
        client: boto3 EFS client.
        name_suffix: Required suffix of the file system's Name.

    Returns:
        Matching FileSystemDescriptions.
    """
    matches: list[dict[str, Any]] = []
    paginator = client.get_paginator("describe_file_systems")
    for page in paginator.paginate():
        for fs in page.get("FileSystems", []):
            if fs.get("LifeCycleState") in _GONE_STATES:
                continue
            name = fs.get("Name") or _tag_value(fs.get("Tags", []), "Name") or ""
            if name.endswith(name_suffix):
                matches.append(fs)
    logger.debug("file_systems_found", name_suffix=name_suffix, count=len(matches))
    return matches


def _tag_value(tags: list[dict[str, str]], key: str) -> str | None:
    for tag in tags:
        if tag.get("Key") == key:
            return tag.get("Value")
    return None


__all__ = [
    "create_efs_client",
    "describe_file_system",
    "describe_mount_targets",
    "efs_dns_name",
    "find_file_systems",
    "mount_target_dns_name",
]
