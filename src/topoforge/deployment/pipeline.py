"""Build/deploy pipeline orchestration.

The pipeline ties the stages together for one invocation:

    config -> TopologyResolver -> ContextProvider -> Planner
           -> ImageBuilder (build) -> ManifestDeployer (deploy/diff/teardown)

Resolution and planning errors propagate out of ``run()`` before any image is
built or any manifest applied. Build and deploy failures are recorded per
entry in the returned ``PipelineReport``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from rich.console import Console
from rich.table import Table

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.infra.k8s import KubernetesController, get_k8s_controller, run_sync
from topoforge.manifests import ManifestBuilder
from topoforge.manifests.utils import Manifest
from topoforge.plan import DeploymentPlan
from topoforge.topology import (
    ContextProvider,
    ProjectConfig,
    ResolvedTopology,
    TopologyResolver,
)

from .base import BaseDeployer
from .deployer import DeployReport, DiffReport, EntryResult, ManifestDeployer
from .image_builder import BuildReport, ImageBuilder
from .images import ImageResolver
from .planner import Planner
from .secret_manager import SecretManager
from .shell_commands import ShellCommands
from .tls_manager import TlsManager

PipelineMode = Literal["build", "deploy", "full", "diff"]


@dataclass
class PipelineReport:
    """Everything one pipeline run produced."""

    mode: PipelineMode
    plan: DeploymentPlan
    build: BuildReport | None = None
    deploy: DeployReport | None = None
    diff: DiffReport | None = None

    @property
    def success(self) -> bool:
        reports = (self.build, self.deploy, self.diff)
        return all(report.success for report in reports if report is not None)


class Pipeline(BaseDeployer):
    """Runs build, deploy, full and diff modes for a project.

    Example:
        >>> pipeline = Pipeline(console, Path("."), config)
        >>> report = pipeline.run("full", namespace="prod")
        >>> report.success
        True
    """

    def __init__(
        self,
        console: Console,
        project_root: Path,
        config: ProjectConfig,
        *,
        commands: ShellCommands | None = None,
        controller_factory: Callable[[str | None], KubernetesController] | None = None,
        constants: DeploymentConstants | None = None,
        strict: bool | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            console: Rich console for output
            project_root: Directory that build contexts resolve against
            config: Validated project configuration
            commands: Shell command executor (created for project_root if None)
            controller_factory: Returns the cluster controller for a kube context
            constants: Optional deployment constants
            strict: Override the config's strict edge checking
        """
        super().__init__(console, project_root)
        self.config = config
        self.constants = constants or DEFAULT_CONSTANTS
        self.commands = commands or ShellCommands(project_root)
        self.controller_factory = controller_factory or get_k8s_controller
        self.strict = strict
        self.manifests = ManifestBuilder(config.project, self.constants)
        self.images = ImageResolver(
            config.images, config.project, self.commands.git, self.constants
        )
        self.builder = ImageBuilder(self.commands, console, self.images)

    @cached_property
    def topology(self) -> ResolvedTopology:
        return TopologyResolver(self.config).resolve(self.strict)

    @cached_property
    def contexts(self) -> ContextProvider:
        return ContextProvider(self.config, self.topology)

    @cached_property
    def planner(self) -> Planner:
        return Planner(self.config, self.topology, self.contexts, self.images, self.constants)

    def deployer_for(self, context: str | None) -> ManifestDeployer:
        """Deployer bound to the controller of one kube context."""
        controller = self.controller_factory(context)
        return ManifestDeployer(
            controller,
            self.manifests,
            self.console,
            SecretManager(controller),
            TlsManager(controller, self.commands.openssl, self.constants),
            self.constants,
        )

    # =========================================================================
    # Planning and rendering
    # =========================================================================

    def plan(
        self,
        namespace: str | None = None,
        service: str | None = None,
        changed_files: Iterable[str] | None = None,
    ) -> DeploymentPlan:
        return self.planner.plan(namespace, service, changed_files)

    def render(self, plan: DeploymentPlan) -> list[Manifest]:
        """Every manifest of a plan: namespaces first, then each entry in order."""
        manifests = [self.manifests.namespace(ns) for ns in plan.namespaces]
        for entry in plan:
            manifests.extend(self.manifests.build_for_entry(entry))
        return manifests

    # =========================================================================
    # Modes
    # =========================================================================

    def run(
        self,
        mode: PipelineMode = "full",
        *,
        namespace: str | None = None,
        service: str | None = None,
        changed_files: Iterable[str] | None = None,
        force: bool = False,
        dry_run: bool = False,
        wait: bool = True,
        timeout_seconds: int | None = None,
    ) -> PipelineReport:
        """Run one pipeline mode.

        Args:
            mode: ``build``, ``deploy``, ``full`` (build then deploy) or ``diff``
            namespace: Target namespace (None or "all" for every namespace)
            service: Narrow to one service
            changed_files: Narrow to services whose build context changed
            force: Rebuild images that already exist
            dry_run: Do not push images; apply with a client-side dry run
            wait: Wait for rollouts
            timeout_seconds: Rollout wait bound

        Returns:
            PipelineReport with the stage reports for the mode

        Raises:
            ForgeError: Resolution or planning failed (nothing was executed)
        """
        plan = self.plan(namespace, service, changed_files)
        report = PipelineReport(mode=mode, plan=plan)
        logger.info(f"Pipeline {mode}: {len(plan)} entries")

        if not plan.entries:
            self.warning("Nothing to do: no services selected")
            return report

        if mode == "diff":
            report.diff = self._diff(plan)
            return report

        if mode in ("build", "full"):
            report.build = self.builder.build(
                plan.build_targets(),
                force=force,
                dry_run=dry_run,
                progress_factory=self.create_progress,
            )

        if mode in ("deploy", "full"):
            report.deploy = self._deploy(
                plan,
                report.build,
                dry_run=dry_run,
                wait=wait,
                timeout_seconds=timeout_seconds,
            )

        return report

    def _deploy(
        self,
        plan: DeploymentPlan,
        build: BuildReport | None,
        *,
        dry_run: bool,
        wait: bool,
        timeout_seconds: int | None,
    ) -> DeployReport:
        report = DeployReport()

        # Entries whose image failed to build are not deployed
        failed = {outcome.service: outcome.error for outcome in build.failed} if build else {}
        for entry in plan:
            if entry.service in failed:
                report.results.append(
                    EntryResult(entry.namespace, entry.service, error=failed[entry.service])
                )
        if failed:
            plan = plan.without_services(set(failed))

        for context, sub_plan in plan.by_context().items():
            deployer = self.deployer_for(context)
            partial = run_sync(
                deployer.deploy(
                    sub_plan,
                    wait=wait,
                    timeout_seconds=timeout_seconds,
                    dry_run=dry_run,
                )
            )
            report.results.extend(partial.results)
        return report

    def _diff(self, plan: DeploymentPlan) -> DiffReport:
        report = DiffReport()
        for context, sub_plan in plan.by_context().items():
            partial = run_sync(self.deployer_for(context).diff(sub_plan))
            report.changes.extend(partial.changes)
            report.errors.extend(partial.errors)
        return report

    # =========================================================================
    # BaseDeployer interface
    # =========================================================================

    def deploy(self, **kwargs: Any) -> PipelineReport:
        """Build and deploy (``skip_build=True`` deploys only)."""
        skip_build = kwargs.pop("skip_build", False)
        return self.run("deploy" if skip_build else "full", **kwargs)

    def teardown(self, **kwargs: Any) -> DeployReport:
        """Delete the app manifests of every planned entry."""
        plan = self.plan(
            kwargs.get("namespace"), kwargs.get("service"), kwargs.get("changed_files")
        )
        report = DeployReport()
        for context, sub_plan in plan.by_context().items():
            partial = run_sync(self.deployer_for(context).teardown(sub_plan))
            report.results.extend(partial.results)
        return report

    def show_status(self, **kwargs: Any) -> None:
        """Print the plan as a table."""
        plan = self.plan(
            kwargs.get("namespace"), kwargs.get("service"), kwargs.get("changed_files")
        )
        if not plan.entries:
            self.warning("No services selected")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Namespace", style="cyan")
        table.add_column("Service", style="cyan")
        table.add_column("Cluster")
        table.add_column("Image")
        table.add_column("Host", style="dim")
        table.add_column("Replicas", justify="right")

        for entry in plan:
            table.add_row(
                entry.namespace,
                entry.service,
                entry.cluster,
                entry.image,
                entry.host or "-",
                str(entry.replicas),
            )
        self.console.print(table)
