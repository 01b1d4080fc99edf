"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click
import typer

from topoforge.config import find_config, load_config
from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants, DeploymentPaths
from topoforge.deployment import Pipeline
from topoforge.deployment.shell_commands import ShellCommands

from .console import CLIConsole, console


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    project_root: Path
    config_path: Path | None
    commands: ShellCommands
    constants: DeploymentConstants
    paths: DeploymentPaths

    def resolve_config_path(self) -> Path:
        """The explicit ``--config`` path, else the nearest config file."""
        if self.config_path is not None:
            return self.config_path
        if self.paths.config_file.is_file():
            return self.paths.config_file
        return find_config(self.project_root, self.constants)

    def pipeline(self, *, strict: bool | None = None) -> Pipeline:
        """Load the project config and build a pipeline for it."""
        config_path = self.resolve_config_path()
        config = load_config(config_path)
        return Pipeline(
            self.console.console,
            config_path.parent,
            config,
            commands=self.commands,
            constants=self.constants,
            strict=strict,
        )

    def changed_files(
        self, files: list[str] | None, since: str | None
    ) -> list[str] | None:
        """Changed-file filter from ``--changed-files`` and ``--changed-since``.

        Returns None (no filtering) when neither option was given or when
        they name no files at all.
        """
        changed = list(files or [])
        if since is not None:
            changed.extend(self.commands.git.changed_files_since(since))
        if not changed:
            if since is not None:
                self.console.warn(f"No files changed since {since}, selecting every service")
            return None
        return changed


def build_cli_context(config_path: Path | None = None) -> CLIContext:
    """Build a fresh CLIContext."""
    project_root = config_path.resolve().parent if config_path else Path.cwd()
    constants = DEFAULT_CONSTANTS
    paths = DeploymentPaths(project_root, constants)

    return CLIContext(
        console=console,
        project_root=project_root,
        config_path=config_path,
        commands=ShellCommands(project_root),
        constants=constants,
        paths=paths,
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
