"""Root-level test configuration for atmos-testing.

Unit tests (tests/unit/) run against fakes and moto. End-to-end tests
(tests/e2e/) provision real infrastructure and are deselected by default;
run them with ``pytest -m e2e``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Drop logging configuration a test (or a CLI invocation) installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fixtures_dir() -> Path:
    """The atmos fixtures tree shipped with the tests."""
    return FIXTURES_DIR
