"""Docker image building and publishing.

This module handles the image lifecycle for services with a build block:
- Logging in to the project registry
- Skipping images that already exist remotely (unless forced)
- Building and pushing the rest

Failures are recorded per service; sibling builds continue.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from loguru import logger

from topoforge.errors import BuildFailure, BuildSkipped, ForgeError

if TYPE_CHECKING:
    from rich.console import Console
    from rich.progress import Progress

    from topoforge.plan import PlanEntry
    from topoforge.topology.models import BuildSpec

    from .images import ImageResolver
    from .shell_commands import ShellCommands

BuildStatus = Literal["built", "skipped", "failed"]


@dataclass(frozen=True)
class BuildOutcome:
    service: str
    image: str
    status: BuildStatus
    error: ForgeError | None = None


@dataclass
class BuildReport:
    """Per-service build results."""

    outcomes: list[BuildOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(outcome.status != "failed" for outcome in self.outcomes)

    def by_status(self, status: BuildStatus) -> list[BuildOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def built(self) -> list[BuildOutcome]:
        return self.by_status("built")

    @property
    def skipped(self) -> list[BuildOutcome]:
        return self.by_status("skipped")

    @property
    def failed(self) -> list[BuildOutcome]:
        return self.by_status("failed")


class ImageBuilder:
    """Builds and pushes service images.

    Attributes:
        commands: Shell command executor
        console: Rich console for output
        images: Image reference resolver
    """

    def __init__(
        self,
        commands: ShellCommands,
        console: Console,
        images: ImageResolver,
    ) -> None:
        """Initialize the image builder.

        Args:
            commands: Shell command executor
            console: Rich console for output
            images: Image reference resolver
        """
        self.commands = commands
        self.console = console
        self.images = images

    def build(
        self,
        targets: Sequence[PlanEntry],
        *,
        force: bool = False,
        dry_run: bool = False,
        progress_factory: Callable[..., Progress],
    ) -> BuildReport:
        """Build every target that has a build definition.

        Args:
            targets: One plan entry per service to build (see
                ``DeploymentPlan.build_targets``)
            force: Rebuild even when the image exists in the registry
            dry_run: Build locally but do not push
            progress_factory: Callable creating a rich Progress

        Returns:
            BuildReport with one outcome per target
        """
        report = BuildReport()
        buildable = [(t, t.build) for t in targets if t.build is not None]
        if not buildable:
            self.console.print("[dim]No services to build[/dim]")
            return report

        self.console.print("[bold cyan]🔨 Building Docker images...[/bold cyan]")
        self.console.print(f"[dim]Using image tag: {self.images.tag}[/dim]")

        if not dry_run and self.images.images is not None:
            registry_host = self.images.images.registry.split("/")[0]
            result = self.commands.docker.login(registry_host)
            if result is not None and not result.success:
                logger.warning(f"Docker login to {registry_host} failed: {result.stderr.strip()}")

        with progress_factory(transient=True) as progress:
            task = progress.add_task("Building images...", total=len(buildable))
            for entry, spec in buildable:
                progress.update(task, description=f"Building {entry.service}...")
                report.outcomes.append(
                    self._build_one(entry, spec, force=force, dry_run=dry_run)
                )
                progress.update(task, advance=1)

        self._print_summary(report)
        return report

    def _build_one(
        self, entry: PlanEntry, spec: BuildSpec, *, force: bool, dry_run: bool
    ) -> BuildOutcome:
        image = entry.image

        if not force and self.commands.docker.remote_image_exists(image):
            skipped = BuildSkipped(entry.service, image)
            logger.info(skipped.message)
            return BuildOutcome(entry.service, image, "skipped", skipped)

        result = self.commands.docker.build(image, spec, self.commands.project_root)
        if not result.success:
            failure = BuildFailure(entry.service, image, result.stderr or result.stdout)
            logger.error(failure.message)
            return BuildOutcome(entry.service, image, "failed", failure)

        if dry_run:
            logger.debug(f"Dry run: not pushing {image}")
            return BuildOutcome(entry.service, image, "built")

        result = self.commands.docker.push(image)
        if not result.success:
            failure = BuildFailure(entry.service, image, result.stderr or result.stdout)
            logger.error(failure.message)
            return BuildOutcome(entry.service, image, "failed", failure)

        return BuildOutcome(entry.service, image, "built")

    def _print_summary(self, report: BuildReport) -> None:
        for outcome in report.outcomes:
            if outcome.status == "built":
                self.console.print(f"[green]✓ Built {outcome.image}[/green]")
            elif outcome.status == "skipped":
                self.console.print(
                    f"[yellow]✓ {outcome.image} already exists, skipping build[/yellow]"
                )
            else:
                self.console.print(f"[red]✗ Failed to build {outcome.service}[/red]")
