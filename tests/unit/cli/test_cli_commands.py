"""Tests for the topoforge CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from topoforge.cli import app
from topoforge.cli.console import console
from topoforge.infra.k8s import CommandResult
from topoforge.manifests.utils import manifest_id

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep table cells unwrapped so output assertions see whole values."""
    monkeypatch.setattr(console.console, "width", 200)


@pytest.fixture
def config_file(tmp_path: Path, sample_config_data: dict[str, Any]) -> Path:
    path = tmp_path / "topoforge.yaml"
    path.write_text(yaml.safe_dump(sample_config_data))
    return path


@pytest.fixture
def controller() -> AsyncMock:
    controller = AsyncMock()
    controller.apply.side_effect = lambda manifest, namespace=None, **_: manifest_id(manifest)
    controller.apply_batch.side_effect = lambda manifests, namespace=None, **_: [
        manifest_id(m) for m in manifests
    ]
    controller.rollout_status.return_value = CommandResult(success=True)
    controller.delete.side_effect = lambda kind, name, namespace=None: f"{kind}/{name}"
    controller.get_secret_data.return_value = None
    return controller


@pytest.fixture
def patched_controller(controller: AsyncMock):
    with patch(
        "topoforge.deployment.pipeline.get_k8s_controller", return_value=controller
    ) as factory:
        yield factory


class TestPlanCommand:
    """Tests for `topoforge plan`."""

    def test_plan_table(self, config_file: Path) -> None:
        """The plan lists each entry with its image."""
        result = runner.invoke(app, ["--config", str(config_file), "plan", "-n", "prod"])

        assert result.exit_code == 0, result.output
        assert "ghcr.io/acme/shop-api:1.0.0" in result.output
        assert "api.example.com" in result.output

    def test_unknown_service(self, config_file: Path) -> None:
        """Unknown services fail with exit code 1."""
        result = runner.invoke(app, ["--config", str(config_file), "plan", "-s", "cache"])

        assert result.exit_code == 1
        assert "cache" in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "plan"])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestManifestsCommand:
    """Tests for `topoforge manifests`."""

    def test_stdout(self, config_file: Path) -> None:
        """Manifests are printed as a YAML stream."""
        result = runner.invoke(app, ["--config", str(config_file), "manifests", "-n", "prod"])

        assert result.exit_code == 0, result.output
        documents = [doc for doc in yaml.safe_load_all(result.stdout) if doc]
        assert [manifest_id(doc) for doc in documents][:2] == ["Namespace/prod", "Deployment/shop-db"]

    def test_output_directory(self, config_file: Path, tmp_path: Path) -> None:
        """One file is written per namespace."""
        out_dir = tmp_path / "rendered"

        result = runner.invoke(
            app, ["--config", str(config_file), "manifests", "-o", str(out_dir)]
        )

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out_dir.iterdir()) == ["prod.yaml", "staging.yaml"]
        staging = list(yaml.safe_load_all((out_dir / "staging.yaml").read_text()))
        assert staging[0]["metadata"]["name"] == "staging"


class TestDeployCommand:
    """Tests for `topoforge deploy`."""

    def test_deploy_skip_build(
        self, config_file: Path, controller: AsyncMock, patched_controller: Any
    ) -> None:
        """--skip-build applies manifests without building."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "deploy", "-n", "prod", "--skip-build", "--no-wait"],
        )

        assert result.exit_code == 0, result.output
        patched_controller.assert_called_once_with("prod-cluster")
        controller.rollout_status.assert_not_awaited()
        assert "deploy finished" in result.output

    def test_deploy_failure_exit_code(
        self, config_file: Path, controller: AsyncMock, patched_controller: Any
    ) -> None:
        """A failed entry makes the command exit 1."""
        controller.rollout_status.return_value = CommandResult(
            success=False, stderr="timed out waiting", returncode=1
        )

        result = runner.invoke(
            app, ["--config", str(config_file), "deploy", "-n", "prod", "--skip-build"]
        )

        assert result.exit_code == 1


class TestTeardownCommand:
    """Tests for `topoforge teardown`."""

    def test_teardown_confirmed(
        self, config_file: Path, controller: AsyncMock, patched_controller: Any
    ) -> None:
        result = runner.invoke(
            app, ["--config", str(config_file), "teardown", "-n", "staging", "-y"]
        )

        assert result.exit_code == 0, result.output
        assert controller.delete.await_count > 0
        assert "Teardown finished" in result.output

    def test_teardown_cancelled(
        self, config_file: Path, controller: AsyncMock, patched_controller: Any
    ) -> None:
        """Answering no deletes nothing."""
        result = runner.invoke(
            app, ["--config", str(config_file), "teardown", "-n", "staging"], input="n\n"
        )

        assert result.exit_code == 0
        assert "cancelled" in result.output
        controller.delete.assert_not_awaited()
