"""Manifest application, diffing and teardown.

The deployer synthesizes every entry's manifests before touching the cluster,
so an entry that cannot be synthesized (for example a missing host) aborts the
run with nothing applied. After that, failures are scoped to their entry:
an apply failure or rollout timeout is recorded and the remaining entries
are still deployed.

Apply order per entry:

1. the Namespace (once per namespace)
2. Secrets (placeholders validated against the cluster) and ConfigMaps
3. self-signed TLS secrets that do not exist yet
4. Deployment, Service, Ingress, IngressRoute, Certificate as one batch
5. rollout wait, bounded by a timeout
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.errors import ApplyFailure, ForgeError, RolloutTimeout
from topoforge.manifests.utils import Manifest, ManifestKey, manifest_id, manifest_key

if TYPE_CHECKING:
    from rich.console import Console

    from topoforge.infra.k8s import KubernetesController
    from topoforge.manifests import ManifestBuilder
    from topoforge.plan import DeploymentPlan, PlanEntry

    from .secret_manager import SecretManager
    from .tls_manager import TlsManager

ChangeAction = Literal["create", "update", "unchanged"]


# =============================================================================
# Reports
# =============================================================================


@dataclass
class EntryResult:
    """Outcome of one plan entry."""

    namespace: str
    service: str
    applied: list[str] = field(default_factory=list)
    error: ForgeError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def label(self) -> str:
        return f"{self.namespace}/{self.service}"


@dataclass
class DeployReport:
    results: list[EntryResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    @property
    def failed(self) -> list[EntryResult]:
        return [result for result in self.results if not result.success]


@dataclass(frozen=True)
class ManifestChange:
    namespace: str
    resource: str
    action: ChangeAction
    diff: str = ""


@dataclass
class DiffReport:
    changes: list[ManifestChange] = field(default_factory=list)
    errors: list[ForgeError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def has_changes(self) -> bool:
        return any(change.action != "unchanged" for change in self.changes)

    def by_action(self, action: ChangeAction) -> list[ManifestChange]:
        return [change for change in self.changes if change.action == action]


# =============================================================================
# Deployer
# =============================================================================


class ManifestDeployer:
    """Applies plan entries to their clusters.

    Attributes:
        controller: Cluster controller (apply, diff, rollout status)
        manifests: Manifest builder for the project
        console: Rich console for output
        secrets: Secret validator
        tls: Self-signed TLS issuer
    """

    def __init__(
        self,
        controller: KubernetesController,
        manifests: ManifestBuilder,
        console: Console,
        secrets: SecretManager,
        tls: TlsManager,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.controller = controller
        self.manifests = manifests
        self.console = console
        self.secrets = secrets
        self.tls = tls
        self.constants = constants or DEFAULT_CONSTANTS

    def synthesize(self, plan: DeploymentPlan) -> list[tuple[PlanEntry, list[Manifest]]]:
        """App manifests for every entry, or an exception before any I/O."""
        return [(entry, self.manifests.app_manifests(entry)) for entry in plan]

    # =========================================================================
    # Deploy
    # =========================================================================

    async def deploy(
        self,
        plan: DeploymentPlan,
        *,
        wait: bool = True,
        timeout_seconds: int | None = None,
        dry_run: bool = False,
    ) -> DeployReport:
        """Apply every plan entry in order.

        Args:
            plan: Deployment plan
            wait: Wait for each Deployment to roll out
            timeout_seconds: Rollout wait bound (defaults to ROLLOUT_TIMEOUT_SECONDS)
            dry_run: Apply with a client-side dry run

        Returns:
            DeployReport with one result per entry

        Raises:
            MissingHost: An entry's manifests cannot be synthesized
        """
        timeout = timeout_seconds or self.constants.ROLLOUT_TIMEOUT_SECONDS
        synthesized = self.synthesize(plan)

        report = DeployReport()
        namespaces_ready: set[str] = set()

        for entry, app_manifests in synthesized:
            result = EntryResult(entry.namespace, entry.service)
            report.results.append(result)
            self.console.print(f"[bold cyan]🚀 Deploying {entry.label}...[/bold cyan]")
            try:
                if entry.namespace not in namespaces_ready:
                    result.applied.append(
                        await self.controller.apply(
                            self.manifests.namespace(entry.namespace), dry_run=dry_run
                        )
                    )
                    namespaces_ready.add(entry.namespace)

                secrets = await self.secrets.validate(entry)
                data_manifests = self.manifests.data_manifests(replace(entry, secrets=secrets))
                if data_manifests:
                    result.applied.extend(
                        await self.controller.apply_batch(
                            data_manifests, entry.namespace, dry_run=dry_run
                        )
                    )
                result.applied.extend(await self.tls.ensure(entry, dry_run=dry_run))
                result.applied.extend(
                    await self.controller.apply_batch(
                        app_manifests, entry.namespace, dry_run=dry_run
                    )
                )

                if wait and not dry_run:
                    await self._wait_for_rollout(entry, timeout)
            except ForgeError as e:
                result.error = e
                logger.error(f"{entry.label}: {e.message}")
                self.console.print(f"[red]✗ {entry.label}: {e.message}[/red]")
                continue

            logger.info(f"{entry.label}: applied {', '.join(result.applied)}")
            self.console.print(f"[green]✓ {entry.label} deployed[/green]")

        return report

    async def _wait_for_rollout(self, entry: PlanEntry, timeout_seconds: int) -> None:
        workload = f"Deployment/{entry.service_name}"
        status = await self.controller.rollout_status(
            "deployment",
            entry.service_name,
            entry.namespace,
            timeout_seconds=timeout_seconds,
        )
        if status.success:
            return
        output = status.stderr.strip() or status.stdout.strip()
        if "timed out" in output.lower() or "exceeded" in output.lower():
            raise RolloutTimeout(workload, entry.namespace, timeout_seconds)
        raise ApplyFailure(workload, entry.namespace, output)

    # =========================================================================
    # Diff
    # =========================================================================

    async def diff(self, plan: DeploymentPlan) -> DiffReport:
        """Compare what ``deploy`` would apply with the live objects.

        Namespaces are diffed once each, shared secrets and config maps once
        per namespace. Placeholder secret values are swapped for their live
        values first, as ``deploy`` does, so they never show up as drift.

        Returns:
            DiffReport: ``create`` for missing objects, ``update`` for drifted
            objects and ``unchanged`` otherwise
        """
        synthesized = self.synthesize(plan)

        report = DiffReport()
        for namespace in dict.fromkeys(entry.namespace for entry, _ in synthesized):
            await self._diff_one(report, namespace, self.manifests.namespace(namespace))

        seen: set[ManifestKey] = set()
        for entry, app_manifests in synthesized:
            try:
                secrets = await self.secrets.validate(entry)
            except ForgeError as e:
                report.errors.append(e)
                logger.error(f"{entry.label}: {e.message}")
                manifests = app_manifests
            else:
                data_manifests = self.manifests.data_manifests(replace(entry, secrets=secrets))
                manifests = data_manifests + app_manifests

            for manifest in manifests:
                key = manifest_key(manifest)
                if key in seen:
                    continue
                seen.add(key)
                await self._diff_one(report, entry.namespace, manifest, entry.namespace)
        return report

    async def _diff_one(
        self,
        report: DiffReport,
        namespace: str,
        manifest: Manifest,
        target_namespace: str | None = None,
    ) -> None:
        try:
            text = await self.controller.diff(manifest, target_namespace)
        except ForgeError as e:
            report.errors.append(e)
            logger.error(f"{namespace}/{manifest_id(manifest)}: {e.message}")
            return

        if text is None:
            action: ChangeAction = "create"
        elif text == "":
            action = "unchanged"
        else:
            action = "update"
        report.changes.append(ManifestChange(namespace, manifest_id(manifest), action, text or ""))

    # =========================================================================
    # Teardown
    # =========================================================================

    async def teardown(self, plan: DeploymentPlan) -> DeployReport:
        """Delete every entry's app manifests in reverse apply order.

        Secrets, config maps and namespaces are left in place.
        """
        report = DeployReport()
        for entry, app_manifests in self.synthesize(plan):
            result = EntryResult(entry.namespace, entry.service)
            report.results.append(result)
            try:
                for manifest in reversed(app_manifests):
                    result.applied.append(
                        await self.controller.delete(
                            manifest["kind"], manifest["metadata"]["name"], entry.namespace
                        )
                    )
            except ForgeError as e:
                result.error = e
                logger.error(f"{entry.label}: {e.message}")
                continue
            self.console.print(f"[green]✓ {entry.label} removed[/green]")
        return report
