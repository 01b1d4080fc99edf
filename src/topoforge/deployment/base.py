"""Shared base for objects that drive a deployment from the CLI."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn


class BaseDeployer(ABC):
    """Console, project root and environment shared by deployment front-ends.

    Subclasses implement the three user-facing operations. Registry
    credentials and ``${VAR}`` values are read from ``<project_root>/.env``
    without overriding variables already set in the process.
    """

    def __init__(self, console: Console, project_root: Path):
        self.console = console
        self.project_root = project_root
        load_dotenv(self.project_root / ".env", override=False)

    @abstractmethod
    def deploy(self, **kwargs: Any) -> Any:
        """Build images and apply manifests for the selected plan entries."""

    @abstractmethod
    def teardown(self, **kwargs: Any) -> Any:
        """Delete the workloads of the selected plan entries."""

    @abstractmethod
    def show_status(self, **kwargs: Any) -> None:
        """Print the resolved plan without touching the cluster."""

    def create_progress(self, transient: bool = True) -> Progress:
        """Spinner used while images build and manifests apply."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=transient,
        )

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠️  {message}[/yellow]")
