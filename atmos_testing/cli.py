"""Command line entry point: ``atmos-test``.

Out-of-band helpers for component test runs. An interrupted run can leave
infrastructure behind; point ``--base-path`` at the kept working directory
(``ATMOS_TEST_KEEP_WORKDIR=true``) and destroy it by hand.

Example:
    $ atmos-test output efs/basic -s default-test --base-path /tmp/atmos-test-3f9a1c-xyz
    $ atmos-test destroy vpc -s default-test --var 'attributes=["3f9a1c"]' --base-path ...
    $ atmos-test identifier
"""

from __future__ import annotations

import json
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Any, NoReturn

import click
import structlog

from atmos_testing.config import HarnessSettings, get_settings
from atmos_testing.errors import ExitCode, HarnessError
from atmos_testing.fixtures.atmos import AtmosProvisioner
from atmos_testing.fixtures.identifiers import generate_random_identifier
from atmos_testing.harness.outputs import Atmos
from atmos_testing.harness.units import DeployableUnit, build_options
from atmos_testing.logging import configure_logging

logger = structlog.get_logger(__name__)


def _get_version() -> str:
    try:
        return get_version("atmos-testing")
    except PackageNotFoundError:
        return "unknown"


def error_exit(message: str, exit_code: int = ExitCode.TEST_FAILURE) -> NoReturn:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(int(exit_code))


def parse_var(value: str) -> tuple[str, Any]:
    """Parse a ``KEY=VALUE`` option. VALUE is JSON when it parses, else a string.

    Raises:
        click.BadParameter: If there is no ``=`` or the key is empty.
    """
    key, sep, raw = value.partition("=")
    if not sep or not key:
        msg = f"expected KEY=VALUE, got {value!r}"
        raise click.BadParameter(msg)
    try:
        return key, json.loads(raw)
    except json.JSONDecodeError:
        return key, raw


def _make_atmos(settings: HarnessSettings, base_path: Path | None) -> Atmos:
    path = (base_path or settings.resolved_fixtures_dir).resolve()
    options = build_options(settings, path)
    return Atmos(AtmosProvisioner(options))


@click.group(
    name="atmos-test",
    help="Helpers for atmos component integration tests.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=_get_version(), prog_name="atmos-test")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file (default: atmos-test.yaml).",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.option("--json-logs/--console-logs", default=None, help="Log output format.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    json_logs: bool | None,
) -> None:
    ctx.ensure_object(dict)
    try:
        settings = get_settings(config_path)
    except ValueError as exc:
        error_exit(f"Invalid settings: {exc}", ExitCode.USAGE_ERROR)
    configure_logging(
        log_level=log_level or settings.log_level,
        json_output=settings.json_logs if json_logs is None else json_logs,
    )
    ctx.obj["settings"] = settings


_stack_option = click.option("--stack", "-s", required=True, help="atmos stack name.")
_base_path_option = click.option(
    "--base-path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="atmos working directory (default: the configured fixtures directory).",
)


@cli.command("output")
@click.argument("component")
@_stack_option
@click.option("--key", "-k", default=None, help="Print a single output.")
@_base_path_option
@click.pass_context
def output_command(
    ctx: click.Context,
    component: str,
    stack: str,
    key: str | None,
    base_path: Path | None,
) -> None:
    """Print the outputs of a deployed component as JSON."""
    atmos = _make_atmos(ctx.obj["settings"], base_path)
    unit = DeployableUnit(component=component, stack=stack)
    try:
        value = atmos.outputs(unit) if key is None else atmos.output_value(unit, key)
    except HarnessError as exc:
        error_exit(str(exc), exc.exit_code)
    click.echo(json.dumps(value, indent=2, sort_keys=True))


@cli.command("destroy")
@click.argument("component")
@_stack_option
@click.option(
    "--var",
    "variables",
    multiple=True,
    help="Terraform input as KEY=VALUE (VALUE may be JSON). Repeatable.",
)
@_base_path_option
@click.pass_context
def destroy_command(
    ctx: click.Context,
    component: str,
    stack: str,
    variables: tuple[str, ...],
    base_path: Path | None,
) -> None:
    """Destroy a component left behind by an interrupted run."""
    inputs = dict(parse_var(v) for v in variables)
    atmos = _make_atmos(ctx.obj["settings"], base_path)
    try:
        atmos.get_and_destroy(component, stack, inputs)
    except HarnessError as exc:
        error_exit(str(exc), exc.exit_code)
    click.echo(f"Destroyed {component} in stack {stack}")


@cli.command("identifier")
@click.option("--length", default=6, show_default=True, type=int, help="Token length.")
def identifier_command(length: int) -> None:
    """Print a new random identifier for naming test resources."""
    try:
        click.echo(generate_random_identifier(length))
    except ValueError as exc:
        error_exit(str(exc), ExitCode.USAGE_ERROR)


def main(argv: list[str] | None = None) -> None:
    """Console script entry point."""
    cli.main(args=argv, prog_name="atmos-test")


__all__ = ["cli", "main", "parse_var"]
