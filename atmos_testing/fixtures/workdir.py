"""Temporary atmos working directory for a component test run.

ComponentFixture assembles a self-contained atmos project in a temporary
directory:

    <workdir>/
        atmos.yaml                       # from the fixtures tree
        stacks/...                       # from the fixtures tree
        vendor.yaml                      # from the fixtures tree (optional)
        components/terraform/<name>/     # the component under test
        components/terraform/<vendored>/ # pulled by ``atmos vendor pull``

Terraform state lives inside the working directory, so it must outlive
every destroy of the run; tear_down removes it last.

Example:
    with ComponentFixture(settings) as fixture:
        suite = fixture.suite("default")
        ...
        report = fixture.run(suite)
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from types import TracebackType

import structlog

from atmos_testing.config import HarnessSettings
from atmos_testing.errors import FixtureError
from atmos_testing.fixtures.atmos import AtmosProvisioner, AtmosRunner
from atmos_testing.fixtures.identifiers import generate_random_identifier
from atmos_testing.harness.lifecycle import LifecycleRunner, Suite
from atmos_testing.harness.outputs import Atmos
from atmos_testing.harness.report import SuiteReport
from atmos_testing.harness.units import build_options

logger = structlog.get_logger(__name__)

ATMOS_CONFIG_FILE = "atmos.yaml"
VENDOR_MANIFEST = "vendor.yaml"
TERRAFORM_COMPONENTS_DIR = Path("components") / "terraform"


class ComponentFixture:
    """Prepares and removes the atmos working directory for one run.

    Args:
        settings: Harness settings (paths, region, skip flags).
        runner: Optional atmos command runner, passed to AtmosProvisioner.
    """

    def __init__(self, settings: HarnessSettings, *, runner: AtmosRunner | None = None) -> None:
        self.settings = settings
        self.random_identifier = settings.random_identifier or generate_random_identifier()
        self._runner = runner
        self._workdir: Path | None = None
        self._atmos: Atmos | None = None
        self._torn_down = False

    @property
    def workdir(self) -> Path:
        if self._workdir is None:
            msg = "ComponentFixture.set_up() has not been called"
            raise FixtureError(msg)
        return self._workdir

    @property
    def atmos(self) -> Atmos:
        if self._atmos is None:
            msg = "ComponentFixture.set_up() has not been called"
            raise FixtureError(msg)
        return self._atmos

    def set_up(self) -> None:
        """Create the working directory and pull vendored components.

        Raises:
            FixtureError: If the fixtures tree or component source is missing,
                or ``atmos vendor pull`` fails. A partially created working
                directory is removed before raising.
        """
        if self._workdir is not None:
            logger.debug("fixture_already_set_up", workdir=str(self._workdir))
            return

        fixtures_dir = self.settings.resolved_fixtures_dir
        component_source = self.settings.resolved_component_source
        if not (fixtures_dir / ATMOS_CONFIG_FILE).is_file():
            msg = f"No {ATMOS_CONFIG_FILE} in fixtures directory {fixtures_dir}"
            raise FixtureError(msg)
        if not component_source.is_dir():
            msg = f"Component source directory not found: {component_source}"
            raise FixtureError(msg)

        workdir = Path(tempfile.mkdtemp(prefix=f"atmos-test-{self.random_identifier}-"))
        self._workdir = workdir
        log = logger.bind(workdir=str(workdir), random_identifier=self.random_identifier)
        try:
            shutil.copytree(fixtures_dir, workdir, dirs_exist_ok=True)
            target = workdir / TERRAFORM_COMPONENTS_DIR / self.settings.component_name
            shutil.copytree(
                component_source,
                target,
                ignore=shutil.ignore_patterns(".terraform", "*.tfstate*", ".terraform.lock.hcl"),
                dirs_exist_ok=True,
            )

            options = build_options(
                self.settings, workdir, random_identifier=self.random_identifier
            )
            provisioner = AtmosProvisioner(options, runner=self._runner)
            self._vendor(provisioner, workdir)
            self._atmos = Atmos(provisioner)
        except FixtureError:
            self._remove_workdir()
            raise
        except OSError as exc:
            self._remove_workdir()
            msg = f"Failed to prepare atmos working directory: {exc}"
            raise FixtureError(msg) from exc
        log.info("fixture_set_up", component=self.settings.component_name)

    def tear_down(self) -> None:
        """Remove the working directory. Runs at most once."""
        if self._torn_down:
            return
        self._torn_down = True
        if self.settings.keep_workdir and self._workdir is not None:
            logger.info("fixture_workdir_kept", workdir=str(self._workdir))
            return
        self._remove_workdir()

    def suite(self, name: str) -> Suite:
        """Create a suite that shares this run's random identifier."""
        return Suite(name, random_identifier=self.random_identifier)

    def run(self, suite: Suite) -> SuiteReport:
        """Execute a suite in this working directory."""
        return LifecycleRunner(self.atmos, self.settings).run(suite)

    def _vendor(self, provisioner: AtmosProvisioner, workdir: Path) -> None:
        if self.settings.skip_vendor:
            logger.info("vendor_pull_skipped")
            return
        if not (workdir / VENDOR_MANIFEST).is_file():
            logger.debug("vendor_manifest_missing", workdir=str(workdir))
            return
        result = provisioner.vendor_pull()
        if result.returncode != 0:
            msg = f"atmos vendor pull failed (exit {result.returncode}): {result.stderr.strip()}"
            raise FixtureError(msg)

    def _remove_workdir(self) -> None:
        if self._workdir is None:
            return
        shutil.rmtree(self._workdir, ignore_errors=True)
        logger.info("fixture_torn_down", workdir=str(self._workdir))
        self._workdir = None
        self._atmos = None

    def __enter__(self) -> ComponentFixture:
        self.set_up()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.tear_down()


__all__ = ["ComponentFixture"]
