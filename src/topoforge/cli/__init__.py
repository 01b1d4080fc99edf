"""Main CLI application module.

This module provides the main entry point for the topoforge CLI.

Commands:
- plan: Show the (namespace, service) deployment plan
- manifests: Render manifests as YAML
- build: Build and push images
- deploy: Build images and apply manifests
- diff: Compare manifests with the live cluster
- teardown: Delete deployed workloads
"""

import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from .commands import build, deploy, diff, manifests, plan, teardown
from .context import build_cli_context

# Create the main CLI application
app = typer.Typer(
    help="🧭 topoforge - Compile service topologies into Kubernetes deployments",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Project config file (default: nearest topoforge.yaml)",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
) -> None:
    """Configure logging and the shared CLI context."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")
    ctx.obj = build_cli_context(config)


app.command()(plan)
app.command()(manifests)
app.command()(build)
app.command()(deploy)
app.command()(diff)
app.command()(teardown)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
