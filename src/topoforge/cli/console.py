"""Console output and error handling shared by CLI commands."""

from collections.abc import Callable, Sequence
from functools import wraps

import typer
from rich.console import Console, ConsoleRenderable
from rich.panel import Panel

from topoforge.errors import RESOLUTION_ERRORS, ForgeError


class CLIConsole:
    """Rich console wrapper for consistent CLI output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def print(self, msg: ConsoleRenderable | str | None = None) -> None:
        self.console.print(msg)

    def ok(self, msg: str) -> None:
        self.console.print(f"[green]✅[/green] {msg}")

    def error(self, msg: str) -> None:
        self.console.print(f"[red]❌[/red] {msg}")

    def warn(self, msg: str) -> None:
        self.console.print(f"[yellow]⚠️[/yellow]  {msg}")

    def print_header(self, title: str, style: str = "blue") -> None:
        self.console.print(Panel.fit(f"[bold {style}]{title}[/bold {style}]", border_style=style))

    def confirm_teardown(self, targets: Sequence[str], *, force: bool = False) -> bool:
        """Ask before deleting the workloads of ``targets``.

        Args:
            targets: Plan entry labels (``namespace/service``) to be removed
            force: Skip the prompt and assume yes

        Returns:
            True when the teardown should go ahead
        """
        if force:
            return True

        listing = "\n".join(f"  • {target}" for target in targets)
        self.console.print(
            Panel(
                f"[bold red]⚠️  Remove deployed services[/bold red]\n\n{listing}\n\n"
                "[yellow]Secrets, config maps and namespaces are kept.[/yellow]",
                title="Confirmation Required",
                border_style="red",
            )
        )

        try:
            answer = self.console.input("\n[bold]Delete these workloads?[/bold] \\[y/N]: ")
        except (KeyboardInterrupt, EOFError):
            self.console.print("\n[dim]Cancelled.[/dim]")
            return False
        return answer.strip().lower() in ("y", "yes")

    def handle_error(self, error: ForgeError, exit_code: int = 1) -> None:
        """Print a domain error (with its details panel) and exit."""
        self.console.print(f"\n[bold red]❌ {error.message}[/bold red]\n")
        if error.details:
            self.console.print(Panel(error.details, title="Details", border_style="red"))
        if isinstance(error, RESOLUTION_ERRORS):
            self.console.print("[dim]Nothing was built or applied.[/dim]")
        raise typer.Exit(exit_code)


def with_error_handling(func: Callable[..., None]) -> Callable[..., None]:
    """Turn topoforge errors into a printed message and exit code 1.

    Ctrl-C exits with 130. Anything else propagates.
    """

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except ForgeError as e:
            console.handle_error(e)
        except KeyboardInterrupt:
            console.print("\n[dim]Operation cancelled by user.[/dim]")
            raise typer.Exit(130) from None

    return wrapper


# Shared console instance for consistent output
console = CLIConsole()
