"""E2E test configuration and fixtures.

E2E tests deploy the component for real: they need the atmos and terraform
binaries on PATH, AWS credentials for the test account, and the component's
Terraform source (``src/`` by default; point ATMOS_TEST_COMPONENT_SOURCE
elsewhere when it lives in another checkout).

    ATMOS_TEST_COMPONENT_SOURCE=../aws-efs/src pytest -m e2e
"""

from __future__ import annotations

import shutil
from collections.abc import Generator

import pytest

from atmos_testing.config import HarnessSettings, get_settings
from atmos_testing.fixtures.workdir import ComponentFixture
from atmos_testing.logging import configure_logging


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for E2E tests."""
    config.addinivalue_line(
        "markers",
        "e2e: mark test as end-to-end (provisions real AWS infrastructure)",
    )


@pytest.fixture(scope="session")
def harness_settings() -> HarnessSettings:
    """Settings from atmos-test.yaml and ATMOS_TEST_* variables."""
    return get_settings()


@pytest.fixture(autouse=True)
def _harness_logging(harness_settings: HarnessSettings) -> None:
    configure_logging(harness_settings.log_level, harness_settings.json_logs)


@pytest.fixture(scope="session")
def component_fixture(harness_settings: HarnessSettings) -> Generator[ComponentFixture, None, None]:
    """Prepared atmos working directory, removed after the session."""
    for binary in (harness_settings.atmos_binary, "terraform"):
        if shutil.which(binary) is None:
            pytest.fail(f"{binary} not found on PATH; E2E tests need atmos and terraform")
    if not harness_settings.resolved_component_source.is_dir():
        pytest.fail(
            f"Component source not found at {harness_settings.resolved_component_source}. "
            "Set ATMOS_TEST_COMPONENT_SOURCE to the component's Terraform source."
        )

    fixture = ComponentFixture(harness_settings)
    fixture.set_up()
    try:
        yield fixture
    finally:
        fixture.tear_down()
