"""Deployable units and the options used to run atmos against them.

A DeployableUnit names one atmos component instance: component, stack and
input overrides. AtmosOptions carries everything that is the same for every
unit in a run (working directory, environment, shared vars).

Example:
    >>> unit = DeployableUnit(component="efs/basic", stack="default-test")
    >>> str(unit)
    'efs/basic@default-test'
    >>> unit.with_vars(enabled=False).vars
    {'enabled': False}
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from atmos_testing.config import HarnessSettings


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two dictionaries.

    Nested dictionaries are merged; lists and scalars in override replace
    the base value. Neither input is modified.

    Args:
        base: Lower-priority values.
        override: Higher-priority values.

    Returns:
        New merged dictionary.

    Example:
        >>> deep_merge({"a": 1, "b": {"c": 2}}, {"b": {"d": 3}})
        {'a': 1, 'b': {'c': 2, 'd': 3}}
    """
    result = deepcopy(base)
    for key, override_value in override.items():
        if isinstance(result.get(key), dict) and isinstance(override_value, dict):
            result[key] = deep_merge(result[key], override_value)
        else:
            result[key] = deepcopy(override_value)
    return result


class DeployableUnit(BaseModel):
    """One atmos component instance: component + stack + input overrides.

    Units are immutable; derive a variant with ``with_vars``. Two units with
    the same component and stack address the same Terraform state, whatever
    their vars.

    Attributes:
        component: atmos component name (e.g., "efs/basic").
        stack: atmos stack name (e.g., "default-test").
        vars: Terraform input overrides (strings, numbers, booleans, lists,
            nested maps).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    component: str = Field(..., min_length=1, description="atmos component name")
    stack: str = Field(..., min_length=1, description="atmos stack name")
    vars: dict[str, Any] = Field(
        default_factory=dict,
        description="Terraform input overrides",
    )

    @field_validator("vars", mode="before")
    @classmethod
    def _copy_vars(cls, value: Any) -> Any:
        if value is None:
            return {}
        return deepcopy(value)

    @property
    def key(self) -> tuple[str, str]:
        """State address of the unit: (component, stack)."""
        return (self.component, self.stack)

    def with_vars(self, **overrides: Any) -> DeployableUnit:
        """Return a copy with overrides deep-merged into vars."""
        return DeployableUnit(
            component=self.component,
            stack=self.stack,
            vars=deep_merge(self.vars, overrides),
        )

    def __str__(self) -> str:
        return f"{self.component}@{self.stack}"


class AtmosOptions(BaseModel):
    """Run-wide options for invoking atmos.

    Attributes:
        base_path: atmos base path (the prepared working directory).
        cli_config_path: Directory containing atmos.yaml.
        binary: atmos executable.
        aws_region: Region exported as AWS_REGION / AWS_DEFAULT_REGION.
        env: Extra environment variables for every atmos command.
        shared_vars: Vars deep-merged under every unit's own vars.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_path: Path
    cli_config_path: Path
    binary: str = "atmos"
    aws_region: str = "us-east-2"
    env: dict[str, str] = Field(default_factory=dict)
    shared_vars: dict[str, Any] = Field(default_factory=dict)

    def environment(self) -> dict[str, str]:
        """Environment variables atmos needs for this run."""
        return {
            "ATMOS_BASE_PATH": str(self.base_path),
            "ATMOS_CLI_CONFIG_PATH": str(self.cli_config_path),
            "AWS_REGION": self.aws_region,
            "AWS_DEFAULT_REGION": self.aws_region,
            **self.env,
        }

    def unit_vars(self, unit: DeployableUnit) -> dict[str, Any]:
        """Vars to pass for a unit: shared vars overridden by the unit's own."""
        return deep_merge(self.shared_vars, unit.vars)


def build_options(
    settings: HarnessSettings,
    base_path: Path,
    *,
    random_identifier: str | None = None,
    env: dict[str, str] | None = None,
) -> AtmosOptions:
    """Build AtmosOptions for a prepared working directory.

    When a random identifier is given it is injected as the label
    ``attributes`` of every unit, so resource names are unique per run.

    Args:
        settings: Harness settings.
        base_path: Prepared atmos working directory.
        random_identifier: Per-run token appended to resource names.
        env: Extra environment variables.

    Returns:
        Frozen AtmosOptions.
    """
    shared_vars: dict[str, Any] = {}
    if random_identifier:
        shared_vars["attributes"] = [random_identifier]
    return AtmosOptions(
        base_path=base_path,
        cli_config_path=base_path,
        binary=settings.atmos_binary,
        aws_region=settings.aws_region,
        env=env or {},
        shared_vars=shared_vars,
    )


__all__ = [
    "AtmosOptions",
    "DeployableUnit",
    "build_options",
    "deep_merge",
]
