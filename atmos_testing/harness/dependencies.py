"""Suite prerequisites: deploy before, destroy after, in reverse order.

Example:
    resolver = DependencyResolver()
    resolver.add_dependency("vpc", "default-test")
    resolver.deploy_all(atm)
    try:
        ...  # run the suite
    finally:
        warnings = resolver.destroy_all(atm)
"""

from __future__ import annotations

from typing import Any

import structlog

from atmos_testing.errors import DependencyError, ProvisioningError
from atmos_testing.harness.outputs import Atmos
from atmos_testing.harness.units import DeployableUnit

logger = structlog.get_logger(__name__)


class DependencyResolver:
    """Deploys declared prerequisites once and destroys them once.

    Units are recorded for release *before* their deploy call, so a deploy
    that fails halfway through is still destroyed. Destroys run last
    declared, first destroyed.
    """

    def __init__(self) -> None:
        self._declared: list[DeployableUnit] = []
        self._acquired: list[DeployableUnit] = []
        self._deployed = False
        self._released = False

    @property
    def declared(self) -> tuple[DeployableUnit, ...]:
        return tuple(self._declared)

    @property
    def acquired(self) -> tuple[DeployableUnit, ...]:
        """Units that destroy_all will tear down, in declaration order."""
        return tuple(self._acquired)

    def reset(self) -> None:
        """Forget deploy/destroy state so the declarations can be acquired again.

        Declarations are kept. Call before each execution of the same suite.
        """
        if self._acquired and not self._released:
            logger.warning(
                "dependencies_reset_unreleased",
                components=[unit.component for unit in self._acquired],
            )
        self._acquired = []
        self._deployed = False
        self._released = False

    def add_dependency(
        self,
        component: str,
        stack: str,
        inputs: dict[str, Any] | None = None,
    ) -> DeployableUnit:
        """Register a prerequisite.

        Raises:
            RuntimeError: If dependencies were already deployed.
        """
        if self._deployed:
            msg = f"Cannot add dependency {component}@{stack} after dependencies were deployed"
            raise RuntimeError(msg)
        unit = DeployableUnit(component=component, stack=stack, vars=inputs)
        self._declared.append(unit)
        return unit

    def deploy_all(self, atmos: Atmos, *, skip: bool = False) -> None:
        """Deploy every declared dependency in declaration order.

        Args:
            atmos: Output accessor used to deploy.
            skip: Treat the dependencies as already deployed (they are still
                destroyed by destroy_all unless it is skipped too).

        Raises:
            DependencyError: On the first failed deploy. Later dependencies
                are not attempted.
        """
        if self._deployed:
            logger.debug("dependencies_already_deployed")
            return
        self._deployed = True

        if skip:
            logger.info("dependencies_deploy_skipped", count=len(self._declared))
            self._acquired = list(self._declared)
            return

        for unit in self._declared:
            self._acquired.append(unit)
            try:
                atmos.deploy(unit)
            except ProvisioningError as exc:
                logger.error(
                    "dependency_deploy_failed",
                    component=unit.component,
                    stack=unit.stack,
                    error=str(exc),
                )
                raise DependencyError(exc) from exc
            logger.info("dependency_deployed", component=unit.component, stack=unit.stack)

    def destroy_all(self, atmos: Atmos, *, skip: bool = False) -> list[str]:
        """Destroy acquired dependencies in reverse declaration order.

        Every destroy is attempted; failures are logged and returned as
        warnings instead of raised.

        Args:
            atmos: Output accessor used to destroy.
            skip: Leave the dependencies in place.

        Returns:
            Warning messages for destroys that failed.
        """
        if self._released:
            logger.debug("dependencies_already_destroyed")
            return []
        self._released = True

        if skip:
            logger.info("dependencies_destroy_skipped", count=len(self._acquired))
            return []

        warnings: list[str] = []
        for unit in reversed(self._acquired):
            try:
                atmos.destroy(unit)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "dependency_destroy_failed",
                    component=unit.component,
                    stack=unit.stack,
                    error=str(exc),
                )
                warnings.append(f"Failed to destroy dependency {unit}: {exc}")
            else:
                logger.info("dependency_destroyed", component=unit.component, stack=unit.stack)
        return warnings


__all__ = ["DependencyResolver"]
