"""Unit tests for CLI console helpers and error handling."""

from __future__ import annotations

from io import StringIO
from unittest.mock import patch

import pytest
import typer
from rich.console import Console

from topoforge.cli.console import CLIConsole, with_error_handling
from topoforge.errors import ApplyFailure, ForgeError, UnknownService


def make_console() -> tuple[CLIConsole, StringIO]:
    output = StringIO()
    return CLIConsole(Console(file=output, width=120)), output


class TestWithErrorHandling:
    """Tests for the with_error_handling decorator."""

    def test_forge_error_exits_with_one(self) -> None:
        """Domain errors print their message and exit 1."""

        @with_error_handling
        def command() -> None:
            raise UnknownService("cache", "web", ["api", "db"])

        with pytest.raises(typer.Exit) as excinfo:
            command()

        assert excinfo.value.exit_code == 1

    def test_keyboard_interrupt_exits_with_130(self) -> None:
        @with_error_handling
        def command() -> None:
            raise KeyboardInterrupt

        with pytest.raises(typer.Exit) as excinfo:
            command()

        assert excinfo.value.exit_code == 130

    def test_other_errors_propagate(self) -> None:
        """Unexpected errors are not swallowed."""

        @with_error_handling
        def command() -> None:
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            command()

    def test_success_passes_through(self) -> None:
        calls = []

        @with_error_handling
        def command(value: int) -> None:
            calls.append(value)

        command(3)
        assert calls == [3]


class TestCLIConsole:
    """Tests for CLIConsole."""

    def test_handle_error_prints_details(self) -> None:
        """Details are shown in a panel before exiting."""
        cli_console, output = make_console()

        with pytest.raises(typer.Exit):
            cli_console.handle_error(ForgeError("Deploy failed", details="kubectl said no"))

        text = output.getvalue()
        assert "Deploy failed" in text
        assert "kubectl said no" in text

    def test_resolution_error_notes_nothing_applied(self) -> None:
        cli_console, output = make_console()

        with pytest.raises(typer.Exit):
            cli_console.handle_error(UnknownService("cache", available=["api"]))

        assert "Nothing was built or applied" in output.getvalue()

    def test_pipeline_error_has_no_resolution_note(self) -> None:
        cli_console, output = make_console()

        with pytest.raises(typer.Exit):
            cli_console.handle_error(ApplyFailure("Deployment/shop-api", "prod", "denied"))

        assert "Nothing was built" not in output.getvalue()

    def test_confirm_with_force(self) -> None:
        """force skips the prompt."""
        cli_console, _ = make_console()
        with patch.object(cli_console.console, "input") as mock_input:
            assert cli_console.confirm_teardown(["prod/api"], force=True)
        mock_input.assert_not_called()

    @pytest.mark.parametrize(("answer", "expected"), [("y", True), ("YES", True), ("", False), ("n", False)])
    def test_confirm_answers(self, answer: str, expected: bool) -> None:
        cli_console, _ = make_console()
        with patch.object(cli_console.console, "input", return_value=answer):
            assert cli_console.confirm_teardown(["prod/api"]) is expected

    def test_confirm_lists_targets(self) -> None:
        cli_console, output = make_console()
        with patch.object(cli_console.console, "input", return_value="n"):
            cli_console.confirm_teardown(["prod/api", "prod/web"])
        text = output.getvalue()
        assert "prod/api" in text
        assert "prod/web" in text

    def test_confirm_interrupted(self) -> None:
        """An interrupted prompt counts as no."""
        cli_console, output = make_console()
        with patch.object(cli_console.console, "input", side_effect=EOFError):
            assert not cli_console.confirm_teardown(["prod/api"])
        assert "Cancelled" in output.getvalue()

    def test_forge_error_message(self) -> None:
        error = ForgeError("boom", details="more")
        assert str(error) == "boom"
        assert error.details == "more"
