"""Harness configuration.

Settings come from environment variables (prefix ``ATMOS_TEST_``) and,
optionally, from a YAML file. Environment variables take precedence over
YAML values.

Environment Variables:
    ATMOS_TEST_AWS_REGION: Region the component is deployed to (default: us-east-2)
    ATMOS_TEST_COMPONENT_ROOT: Repository root of the component under test
    ATMOS_TEST_FIXTURES_DIR: atmos fixtures tree (atmos.yaml, stacks, vendor.yaml)
    ATMOS_TEST_RANDOM_IDENTIFIER: Reuse a fixed identifier instead of a random one
    ATMOS_TEST_SKIP_*: Skip individual lifecycle phases (see HarnessSettings)

Example:
    >>> settings = get_settings()
    >>> settings.aws_region
    'us-east-2'
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from atmos_testing.fixtures.identifiers import (
    MAX_IDENTIFIER_LENGTH,
    MIN_IDENTIFIER_LENGTH,
    is_valid_identifier,
)

DEFAULT_CONFIG_PATH = Path("atmos-test.yaml")


class HarnessSettings(BaseSettings):
    """Configuration for a component test run.

    The ``skip_*`` flags let a developer iterate on one phase without paying
    for the others, e.g. keep the VPC dependency deployed between runs with
    ``skip_destroy_dependencies`` and reuse it later with
    ``skip_deploy_dependencies`` and the same ``random_identifier``.
    """

    model_config = SettingsConfigDict(
        env_prefix="ATMOS_TEST_",
        extra="ignore",
    )

    aws_region: str = Field(
        default="us-east-2",
        min_length=1,
        description="AWS region the component is deployed to",
    )
    component_root: Path = Field(
        default=Path("."),
        description="Repository root of the component under test",
    )
    component_source: Path = Field(
        default=Path("src"),
        description="Terraform source of the component, relative to component_root",
    )
    component_name: str = Field(
        default="efs",
        min_length=1,
        description="Directory name under components/terraform the source is copied to",
    )
    fixtures_dir: Path = Field(
        default=Path("tests/fixtures"),
        description="atmos fixtures tree, relative to component_root",
    )
    atmos_binary: str = Field(
        default="atmos",
        min_length=1,
        description="atmos executable",
    )
    random_identifier: str | None = Field(
        default=None,
        description="Fixed identifier for resource names; random when unset",
    )

    skip_deploy_dependencies: bool = False
    skip_destroy_dependencies: bool = False
    skip_setup: bool = False
    skip_teardown: bool = False
    skip_tests: bool = False
    skip_vendor: bool = False
    skip_destroy_component: bool = False
    keep_workdir: bool = False

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool = False

    @field_validator("random_identifier")
    @classmethod
    def _validate_identifier(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_identifier(value):
            msg = (
                f"random_identifier must be {MIN_IDENTIFIER_LENGTH}-{MAX_IDENTIFIER_LENGTH} "
                f"lowercase alphanumeric characters, got {value!r}"
            )
            raise ValueError(msg)
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def resolved_fixtures_dir(self) -> Path:
        """Fixtures directory resolved against component_root."""
        return (self.component_root / self.fixtures_dir).resolve()

    @property
    def resolved_component_source(self) -> Path:
        """Component Terraform source resolved against component_root."""
        return (self.component_root / self.component_source).resolve()


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dictionary of configuration values, or empty dict if file doesn't exist.

    Raises:
        ValueError: If the file does not contain a YAML mapping.
    """
    if not config_path.exists():
        return {}

    with config_path.open() as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{config_path} must contain a mapping, got {type(data).__name__}"
        raise ValueError(msg)
    return data


def get_settings(config_path: Path | None = None) -> HarnessSettings:
    """Load settings from an optional YAML file and the environment.

    Args:
        config_path: YAML file with default values. Defaults to ``atmos-test.yaml``.

    Returns:
        Validated HarnessSettings.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    yaml_config = load_yaml_config(config_path)

    # pydantic-settings gives init kwargs priority over the environment, so
    # drop YAML keys that the environment already sets.
    env_overridden = {
        name
        for name in HarnessSettings.model_fields
        if _env_name(name) in {key.upper() for key in os.environ}
    }
    defaults = {k: v for k, v in yaml_config.items() if k not in env_overridden}
    return HarnessSettings(**defaults)


def _env_name(field_name: str) -> str:
    prefix = HarnessSettings.model_config.get("env_prefix", "")
    return f"{prefix}{field_name}".upper()


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "HarnessSettings",
    "get_settings",
    "load_yaml_config",
]
