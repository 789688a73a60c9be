"""atmos command execution for component tests.

Wraps the ``atmos terraform`` subcommands the harness needs (deploy,
destroy, output) behind the Provisioner interface. Commands block until
atmos returns; no timeout is applied at this layer.

Used by:
    - atmos_testing.harness.outputs.Atmos (deploy/destroy/output access)
    - atmos_testing.fixtures.workdir.ComponentFixture (vendor pull)
    - atmos_testing.cli (out-of-band output/destroy)
"""

from __future__ import annotations

import json
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from atmos_testing.errors import ProvisioningError
from atmos_testing.harness.units import AtmosOptions, DeployableUnit

logger = structlog.get_logger(__name__)

AtmosRunner = Callable[[list[str]], "subprocess.CompletedProcess[str]"]


class Provisioner(ABC):
    """Deploys, destroys and reads outputs of deployable units.

    Implementations raise ProvisioningError for any failed operation.
    """

    @abstractmethod
    def deploy(self, unit: DeployableUnit) -> dict[str, Any]:
        """Apply the unit and return its outputs."""
        ...

    @abstractmethod
    def destroy(self, unit: DeployableUnit) -> None:
        """Tear down the unit's infrastructure."""
        ...

    @abstractmethod
    def outputs(self, unit: DeployableUnit) -> dict[str, Any]:
        """Read the unit's current outputs (empty if nothing is deployed)."""
        ...


def run_atmos(
    args: list[str],
    *,
    binary: str = "atmos",
    env: dict[str, str] | None = None,
    cwd: Path | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run an atmos command.

    Args:
        args: atmos arguments (e.g., ["terraform", "deploy", "vpc", "-s", "default-test"]).
        binary: atmos executable.
        env: Variables added to the current process environment.
        cwd: Working directory for the command.

    Returns:
        Completed process result with stdout, stderr, and returncode.
    """
    return subprocess.run(
        [binary] + args,
        capture_output=True,
        text=True,
        env={**os.environ, **(env or {})},
        cwd=cwd,
        check=False,
    )


def parse_terraform_outputs(stdout: str) -> dict[str, Any]:
    """Parse ``terraform output -json`` as printed by atmos.

    atmos may print informational lines before the JSON document; parsing
    starts at the first line that opens a JSON object.

    Args:
        stdout: Raw stdout of the output command.

    Returns:
        Mapping of output name to value (the ``value`` field of each entry).

    Raises:
        ValueError: If stdout is empty or holds no valid JSON object.
    """
    stripped = stdout.strip()
    if not stripped:
        msg = "terraform output returned empty output"
        raise ValueError(msg)

    lines = stripped.splitlines()
    start = next((i for i, line in enumerate(lines) if line.lstrip().startswith("{")), None)
    if start is None:
        msg = f"terraform output returned no JSON object\nOutput preview: {stripped[:200]}"
        raise ValueError(msg)

    document = "\n".join(lines[start:])
    try:
        raw = json.loads(document)
    except json.JSONDecodeError as exc:
        msg = f"terraform output returned invalid JSON: {exc}\nOutput preview: {document[:200]}"
        raise ValueError(msg) from exc
    if not isinstance(raw, dict):
        msg = f"terraform output returned {type(raw).__name__}, expected an object"
        raise ValueError(msg)

    outputs: dict[str, Any] = {}
    for name, entry in raw.items():
        if isinstance(entry, dict) and "value" in entry:
            outputs[name] = entry["value"]
        else:
            outputs[name] = entry
    return outputs


class AtmosProvisioner(Provisioner):
    """Provisioner backed by the atmos CLI.

    Each unit's vars (shared vars merged with the unit's own) are written to
    a temporary ``.tfvars.json`` file and passed with ``-var-file``, which
    keeps lists and nested maps intact without HCL quoting.

    Args:
        options: Run-wide atmos options.
        runner: Callable that runs atmos commands. Signature:
            ``(args: list[str]) -> subprocess.CompletedProcess[str]``.
            Defaults to ``run_atmos`` with the options' binary and environment.
    """

    def __init__(self, options: AtmosOptions, runner: AtmosRunner | None = None) -> None:
        self.options = options
        self._run = runner or self._default_runner

    def _default_runner(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return run_atmos(
            args,
            binary=self.options.binary,
            env=self.options.environment(),
            cwd=self.options.base_path,
        )

    def deploy(self, unit: DeployableUnit) -> dict[str, Any]:
        log = logger.bind(component=unit.component, stack=unit.stack)
        log.info("unit_deploying")
        with self._var_file(unit) as var_args:
            self._check(
                unit,
                "deploy",
                ["terraform", "deploy", unit.component, "-s", unit.stack, *var_args],
            )
        outputs = self.outputs(unit)
        log.info("unit_deployed", outputs=sorted(outputs))
        return outputs

    def destroy(self, unit: DeployableUnit) -> None:
        log = logger.bind(component=unit.component, stack=unit.stack)
        log.info("unit_destroying")
        with self._var_file(unit) as var_args:
            self._check(
                unit,
                "destroy",
                [
                    "terraform",
                    "destroy",
                    unit.component,
                    "-s",
                    unit.stack,
                    "-auto-approve",
                    *var_args,
                ],
            )
        log.info("unit_destroyed")

    def outputs(self, unit: DeployableUnit) -> dict[str, Any]:
        result = self._check(
            unit,
            "output",
            ["terraform", "output", unit.component, "-s", unit.stack, "-json"],
        )
        try:
            return parse_terraform_outputs(result.stdout)
        except ValueError as exc:
            raise ProvisioningError(unit.component, unit.stack, "output", str(exc)) from exc

    def vendor_pull(self) -> subprocess.CompletedProcess[str]:
        """Run ``atmos vendor pull`` in the working directory.

        Returns:
            Completed process result; the caller decides how to report failure.
        """
        logger.info("vendor_pull", base_path=str(self.options.base_path))
        return self._run(["vendor", "pull"])

    def _check(
        self,
        unit: DeployableUnit,
        operation: str,
        args: list[str],
    ) -> subprocess.CompletedProcess[str]:
        try:
            result = self._run(args)
        except OSError as exc:
            # e.g. atmos binary missing or not executable
            raise ProvisioningError(unit.component, unit.stack, operation, str(exc)) from exc
        if result.returncode != 0:
            raise ProvisioningError(
                unit.component,
                unit.stack,
                operation,
                result.stderr or result.stdout,
                result.returncode,
            )
        return result

    def _var_file(self, unit: DeployableUnit) -> _VarFile:
        return _VarFile(self.options.unit_vars(unit))


class _VarFile:
    """Temporary ``.tfvars.json`` file, removed on exit.

    Yields the extra atmos arguments: ``["-var-file=<path>"]``, or nothing
    when there are no vars to pass.
    """

    def __init__(self, variables: dict[str, Any]) -> None:
        self._variables = variables
        self._path: Path | None = None

    def __enter__(self) -> list[str]:
        if not self._variables:
            return []
        fd, name = tempfile.mkstemp(prefix="atmos-test-", suffix=".tfvars.json")
        with os.fdopen(fd, "w") as f:
            json.dump(self._variables, f, indent=2, sort_keys=True)
        self._path = Path(name)
        return [f"-var-file={self._path}"]

    def __exit__(self, *exc_info: object) -> None:
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None


__all__ = [
    "AtmosProvisioner",
    "AtmosRunner",
    "Provisioner",
    "parse_terraform_outputs",
    "run_atmos",
]
