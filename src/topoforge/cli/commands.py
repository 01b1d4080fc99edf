"""Plan, render, build, deploy, diff and teardown commands."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from topoforge.deployment import BuildReport, DeployReport, DiffReport, PipelineReport
from topoforge.manifests import render_manifests

from .console import console, with_error_handling
from .context import get_cli_context

# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

NamespaceOption = Annotated[
    str | None,
    typer.Option("--namespace", "-n", help="Target namespace (default: all namespaces)"),
]
ServiceOption = Annotated[
    str | None,
    typer.Option("--service", "-s", help="Only this service"),
]
ChangedFilesOption = Annotated[
    list[str] | None,
    typer.Option(
        "--changed-files",
        help="Only services whose build context contains this path (repeatable)",
    ),
]
ChangedSinceOption = Annotated[
    str | None,
    typer.Option(
        "--changed-since",
        help="Only services with build changes since this git ref",
    ),
]
DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Do not push images; apply with a client-side dry run"),
]
ForceOption = Annotated[
    bool,
    typer.Option("--force", help="Rebuild images that already exist in the registry"),
]


# ---------------------------------------------------------------------------
# Report rendering
# ---------------------------------------------------------------------------


def _print_build_report(report: BuildReport) -> None:
    if not report.outcomes:
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Service", style="cyan")
    table.add_column("Image")
    table.add_column("Status")

    styles = {
        "built": "[bold green]✓ Built[/bold green]",
        "skipped": "[bold yellow]⏭ Skipped[/bold yellow]",
        "failed": "[bold red]✗ Failed[/bold red]",
    }
    for outcome in report.outcomes:
        table.add_row(outcome.service, outcome.image, styles[outcome.status])
    console.print(table)


def _print_deploy_report(report: DeployReport) -> None:
    if not report.results:
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Namespace", style="cyan")
    table.add_column("Service", style="cyan")
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for result in report.results:
        if result.success:
            table.add_row(
                result.namespace,
                result.service,
                "[bold green]✓ Applied[/bold green]",
                f"{len(result.applied)} resources",
            )
        else:
            table.add_row(
                result.namespace,
                result.service,
                "[bold red]✗ Failed[/bold red]",
                result.error.message if result.error else "",
            )
    console.print(table)


def _print_diff_report(report: DiffReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Namespace", style="cyan")
    table.add_column("Resource")
    table.add_column("Change")

    styles = {
        "create": "[bold green]+ create[/bold green]",
        "update": "[bold yellow]~ update[/bold yellow]",
        "unchanged": "[dim]= unchanged[/dim]",
    }
    for change in report.changes:
        table.add_row(change.namespace, change.resource, styles[change.action])
    console.print(table)

    for change in report.by_action("update"):
        console.print(f"\n[bold]{change.namespace}/{change.resource}[/bold]")
        console.console.print(change.diff, markup=False, highlight=False)

    for error in report.errors:
        console.error(error.message)


def _finish(report: PipelineReport) -> None:
    if report.build is not None:
        _print_build_report(report.build)
    if report.deploy is not None:
        _print_deploy_report(report.deploy)
    if report.diff is not None:
        _print_diff_report(report.diff)

    if not report.success:
        console.error(f"{report.mode} finished with failures")
        raise typer.Exit(1)
    console.ok(f"{report.mode} finished")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@with_error_handling
def plan(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    changed_files: ChangedFilesOption = None,
    changed_since: ChangedSinceOption = None,
) -> None:
    """Show which services would be deployed where.

    Examples:
        topoforge plan
        topoforge plan -n prod
        topoforge plan --changed-since origin/main
    """
    cli = get_cli_context(ctx)
    pipeline = cli.pipeline()
    pipeline.show_status(
        namespace=namespace,
        service=service,
        changed_files=cli.changed_files(changed_files, changed_since),
    )


@with_error_handling
def manifests(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write one <namespace>.yaml per namespace into this directory",
        ),
    ] = None,
) -> None:
    """Render the Kubernetes manifests without touching a cluster.

    Examples:
        topoforge manifests -n prod
        topoforge manifests -o build/manifests
    """
    cli = get_cli_context(ctx)
    pipeline = cli.pipeline()
    deployment_plan = pipeline.plan(namespace, service)

    if output is None:
        typer.echo(render_manifests(pipeline.render(deployment_plan)), nl=False)
        return

    output.mkdir(parents=True, exist_ok=True)
    for ns in deployment_plan.namespaces:
        ns_manifests = pipeline.render(deployment_plan.for_namespace(ns))
        path = output / f"{ns}.yaml"
        path.write_text(render_manifests(ns_manifests), encoding="utf-8")
        console.ok(f"Wrote {len(ns_manifests)} manifests to {path}")


@with_error_handling
def build(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    changed_files: ChangedFilesOption = None,
    changed_since: ChangedSinceOption = None,
    force: ForceOption = False,
    dry_run: DryRunOption = False,
) -> None:
    """Build and push images for services with a build definition.

    Examples:
        topoforge build
        topoforge build -s api --force
    """
    cli = get_cli_context(ctx)
    cli.console.print_header("Building Images")
    report = cli.pipeline().run(
        "build",
        namespace=namespace,
        service=service,
        changed_files=cli.changed_files(changed_files, changed_since),
        force=force,
        dry_run=dry_run,
    )
    _finish(report)


@with_error_handling
def deploy(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    changed_files: ChangedFilesOption = None,
    changed_since: ChangedSinceOption = None,
    force: ForceOption = False,
    dry_run: DryRunOption = False,
    skip_build: Annotated[
        bool, typer.Option("--skip-build", help="Deploy without building images")
    ] = False,
    no_wait: Annotated[
        bool, typer.Option("--no-wait", help="Don't wait for rollouts to finish")
    ] = False,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", help="Rollout wait timeout in seconds"),
    ] = None,
) -> None:
    """Build images and apply manifests.

    This command:
    - Resolves the topology and plans every (namespace, service) pair
    - Builds and pushes images that do not exist yet
    - Applies namespaces, secrets, config maps and app manifests
    - Waits for rollouts to complete

    Examples:
        topoforge deploy -n prod
        topoforge deploy -s api --skip-build
        topoforge deploy --changed-since origin/main --no-wait
    """
    cli = get_cli_context(ctx)
    cli.console.print_header("Deploying")
    report = cli.pipeline().run(
        "deploy" if skip_build else "full",
        namespace=namespace,
        service=service,
        changed_files=cli.changed_files(changed_files, changed_since),
        force=force,
        dry_run=dry_run,
        wait=not no_wait,
        timeout_seconds=timeout,
    )
    _finish(report)


@with_error_handling
def diff(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    changed_files: ChangedFilesOption = None,
    changed_since: ChangedSinceOption = None,
) -> None:
    """Compare planned manifests with the live cluster.

    Examples:
        topoforge diff -n prod
    """
    cli = get_cli_context(ctx)
    report = cli.pipeline().run(
        "diff",
        namespace=namespace,
        service=service,
        changed_files=cli.changed_files(changed_files, changed_since),
    )
    _finish(report)


@with_error_handling
def teardown(
    ctx: typer.Context,
    namespace: NamespaceOption = None,
    service: ServiceOption = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")
    ] = False,
) -> None:
    """Delete the workloads and network resources of planned services.

    Secrets, config maps and namespaces are kept.

    Examples:
        topoforge teardown -n staging
        topoforge teardown -n staging -s api -y
    """
    cli = get_cli_context(ctx)
    pipeline = cli.pipeline()
    deployment_plan = pipeline.plan(namespace, service)
    if not deployment_plan.entries:
        console.warn("No services selected")
        return

    targets = [entry.label for entry in deployment_plan]
    if not cli.console.confirm_teardown(targets, force=yes):
        console.print("[dim]Teardown cancelled.[/dim]")
        raise typer.Exit(0)

    report = pipeline.teardown(namespace=namespace, service=service)
    _print_deploy_report(report)
    if not report.success:
        raise typer.Exit(1)
    console.ok("Teardown finished")
