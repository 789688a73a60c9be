"""Output access for deployed units.

Atmos is the object test cases talk to: it deploys and destroys units
through a Provisioner and reads their outputs by name. Outputs returned by a
deploy are kept until the unit is destroyed or redeployed; anything else is
fetched on demand.

Example:
    unit = atm.get_and_deploy("efs/basic", "default-test")
    efs_id = atm.output(unit, "efs_id")
    dns_names = atm.output_list(unit, "efs_mount_target_dns_names")
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Union

import structlog

from atmos_testing.errors import OutputNotFoundError, OutputTypeError
from atmos_testing.fixtures.atmos import Provisioner
from atmos_testing.harness.units import DeployableUnit

logger = structlog.get_logger(__name__)

Scalar = Union[str, int, float, bool, None]

_SCALAR_TYPES = (str, int, float, bool, type(None))


class Atmos:
    """Deploy/destroy units and read their outputs.

    Args:
        provisioner: Backend that runs the actual infrastructure operations.
    """

    def __init__(self, provisioner: Provisioner) -> None:
        self.provisioner = provisioner
        self._deployed: dict[tuple[str, str], dict[str, Any]] = {}

    def deploy(self, unit: DeployableUnit) -> dict[str, Any]:
        """Deploy a unit and return its outputs.

        Raises:
            ProvisioningError: If the deploy fails. Outputs cached for an
                earlier deployment of the same unit are discarded either way.
        """
        self._deployed.pop(unit.key, None)
        outputs = self.provisioner.deploy(unit)
        self._deployed[unit.key] = dict(outputs)
        return outputs

    def destroy(self, unit: DeployableUnit) -> None:
        """Destroy a unit.

        Raises:
            ProvisioningError: If the destroy fails.
        """
        self._deployed.pop(unit.key, None)
        self.provisioner.destroy(unit)

    def get_and_deploy(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> DeployableUnit:
        """Build a unit and deploy it.

        Returns:
            The deployed unit, for use with ``output`` / ``output_list``.
        """
        unit = DeployableUnit(component=component, stack=stack, vars=inputs)
        self.deploy(unit)
        return unit

    def get_and_destroy(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> None:
        """Build a unit and destroy it."""
        self.destroy(DeployableUnit(component=component, stack=stack, vars=inputs))

    @contextmanager
    def deployed(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> Iterator[DeployableUnit]:
        """Deploy a unit for the duration of a with-block.

        The destroy runs on every exit path, including a failed deploy that
        may have left partial infrastructure behind. A failed destroy is
        logged as a warning and never replaces the error raised in the block.

        Example:
            with atm.deployed("efs/basic", "default-test") as unit:
                assert atm.output(unit, "efs_id").startswith("fs-")
        """
        unit = DeployableUnit(component=component, stack=stack, vars=inputs)
        try:
            self.deploy(unit)
            yield unit
        finally:
            try:
                self.destroy(unit)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "unit_destroy_failed",
                    component=unit.component,
                    stack=unit.stack,
                    error=str(exc),
                )

    def is_deployed(self, unit: DeployableUnit) -> bool:
        """Whether this Atmos deployed the unit and has not destroyed it since."""
        return unit.key in self._deployed

    def outputs(self, unit: DeployableUnit) -> dict[str, Any]:
        """All outputs of a unit; empty for a unit with nothing deployed."""
        cached = self._deployed.get(unit.key)
        if cached is not None:
            return dict(cached)
        return self.provisioner.outputs(unit)

    def output(self, unit: DeployableUnit, key: str) -> Scalar:
        """Read a scalar output.

        Raises:
            OutputNotFoundError: If the unit has no output named key.
            OutputTypeError: If the output is a list or map.
        """
        value = self.output_value(unit, key)
        if not isinstance(value, _SCALAR_TYPES):
            raise OutputTypeError(unit.component, unit.stack, key, "scalar", type(value).__name__)
        return value

    def output_list(self, unit: DeployableUnit, key: str) -> list[Scalar]:
        """Read a list-of-scalars output.

        The order is whatever Terraform reports. Compare with set
        containment unless the call site relies on the provider's ordering.

        Raises:
            OutputNotFoundError: If the unit has no output named key.
            OutputTypeError: If the output is not a list of scalars.
        """
        value = self.output_value(unit, key)
        if not isinstance(value, list):
            raise OutputTypeError(unit.component, unit.stack, key, "list", type(value).__name__)
        for item in value:
            if not isinstance(item, _SCALAR_TYPES):
                raise OutputTypeError(
                    unit.component,
                    unit.stack,
                    key,
                    "list of scalars",
                    f"list containing {type(item).__name__}",
                )
        return list(value)

    def output_map(self, unit: DeployableUnit, key: str) -> dict[str, Any]:
        """Read a map/object output.

        Raises:
            OutputNotFoundError: If the unit has no output named key.
            OutputTypeError: If the output is not a map.
        """
        value = self.output_value(unit, key)
        if not isinstance(value, dict):
            raise OutputTypeError(unit.component, unit.stack, key, "map", type(value).__name__)
        return dict(value)

    def output_value(self, unit: DeployableUnit, key: str) -> Any:
        """Read an output of any shape.

        Raises:
            OutputNotFoundError: If the unit has no output named key.
        """
        outputs = self.outputs(unit)
        if key not in outputs:
            logger.debug(
                "output_missing",
                component=unit.component,
                stack=unit.stack,
                key=key,
            )
            raise OutputNotFoundError(unit.component, unit.stack, key, list(outputs))
        return outputs[key]


__all__ = ["Atmos", "Scalar"]
