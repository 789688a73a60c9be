"""Shared fixtures for harness unit tests."""

from __future__ import annotations

import os

import pytest

from atmos_testing.config import HarnessSettings
from atmos_testing.harness.outputs import Atmos
from tests.unit.fakes import (
    AVAILABILITY_ZONES,
    DELEGATED_DOMAIN,
    RANDOM_ID,
    FakeProvisioner,
    efs_outputs,
)


@pytest.fixture(autouse=True)
def _isolate_harness_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ATMOS_TEST_* variables of the developer's shell out of unit tests."""
    for name in list(os.environ):
        if name.startswith("ATMOS_TEST_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def provisioner() -> FakeProvisioner:
    """Fake provisioner preloaded with EFS scenario outputs."""
    return FakeProvisioner(
        {
            "efs/basic": efs_outputs(),
            "vpc": {"availability_zones": list(AVAILABILITY_ZONES), "vpc_id": "vpc-0abc"},
            "dns-delegated": {"default_domain_name": DELEGATED_DOMAIN},
        }
    )


@pytest.fixture
def atmos(provisioner: FakeProvisioner) -> Atmos:
    """Output accessor over the fake provisioner."""
    return Atmos(provisioner)


@pytest.fixture
def settings() -> HarnessSettings:
    """Default settings with a fixed random identifier."""
    return HarnessSettings(random_identifier=RANDOM_ID)
