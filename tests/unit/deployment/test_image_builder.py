"""Unit tests for the image builder module."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from topoforge.deployment import BuildReport, ImageBuilder
from topoforge.errors import BuildFailure, BuildSkipped
from topoforge.infra.k8s import CommandResult
from topoforge.plan import PlanEntry
from topoforge.topology.models import BuildSpec

EntryFactory = Callable[..., PlanEntry]


class MockProgress:
    """Mock Rich Progress class for testing."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    def __enter__(self) -> MockProgress:
        return self

    def __exit__(self, *args: Any) -> None:
        pass

    def add_task(self, *args: Any, **kwargs: Any) -> int:
        return 0

    def update(self, *args: Any, **kwargs: Any) -> None:
        pass


class TestImageBuilder:
    """Tests for the ImageBuilder class."""

    @pytest.fixture
    def mock_commands(self, tmp_path: Path) -> MagicMock:
        """Create a mock shell commands instance where every docker call succeeds."""
        commands = MagicMock()
        commands.project_root = tmp_path
        commands.docker.login.return_value = None
        commands.docker.remote_image_exists.return_value = False
        commands.docker.build.return_value = CommandResult(success=True)
        commands.docker.push.return_value = CommandResult(success=True)
        return commands

    @pytest.fixture
    def mock_images(self) -> MagicMock:
        images = MagicMock()
        images.tag = "1.0.0"
        images.images.registry = "ghcr.io/acme"
        return images

    @pytest.fixture
    def builder(self, mock_commands: MagicMock, mock_images: MagicMock) -> ImageBuilder:
        return ImageBuilder(mock_commands, MagicMock(), mock_images)

    @pytest.fixture
    def targets(self, make_entry: EntryFactory) -> list[PlanEntry]:
        return [
            make_entry(service="api", image="ghcr.io/acme/shop-api:1.0.0", build=BuildSpec(context="api")),
            make_entry(service="worker", image="ghcr.io/acme/shop-worker:1.0.0", build=BuildSpec(context="worker")),
        ]

    def build(self, builder: ImageBuilder, targets: list[PlanEntry], **kwargs: Any) -> BuildReport:
        return builder.build(targets, progress_factory=MockProgress, **kwargs)

    def test_builds_and_pushes(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry], tmp_path: Path
    ) -> None:
        """Missing images are built from the project root and pushed."""
        report = self.build(builder, targets)

        assert report.success
        assert [o.service for o in report.built] == ["api", "worker"]
        mock_commands.docker.login.assert_called_once_with("ghcr.io")
        mock_commands.docker.build.assert_any_call(
            "ghcr.io/acme/shop-api:1.0.0", BuildSpec(context="api"), tmp_path
        )
        mock_commands.docker.push.assert_any_call("ghcr.io/acme/shop-worker:1.0.0")

    def test_existing_image_is_skipped(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry]
    ) -> None:
        """Images already in the registry are not rebuilt."""
        mock_commands.docker.remote_image_exists.return_value = True

        report = self.build(builder, targets)

        assert report.success
        assert len(report.skipped) == 2
        assert isinstance(report.skipped[0].error, BuildSkipped)
        mock_commands.docker.build.assert_not_called()

    def test_force_rebuilds_existing_images(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry]
    ) -> None:
        """force skips the registry check."""
        mock_commands.docker.remote_image_exists.return_value = True

        report = self.build(builder, targets, force=True)

        assert len(report.built) == 2
        mock_commands.docker.remote_image_exists.assert_not_called()

    def test_failure_does_not_stop_siblings(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry]
    ) -> None:
        """A failed build is recorded and the next service is still built."""
        mock_commands.docker.build.side_effect = [
            CommandResult(success=False, stderr="no space left on device", returncode=1),
            CommandResult(success=True),
        ]

        report = self.build(builder, targets)

        assert not report.success
        (failed,) = report.failed
        assert failed.service == "api"
        assert isinstance(failed.error, BuildFailure)
        assert failed.error.details == "no space left on device"
        assert [o.service for o in report.built] == ["worker"]
        mock_commands.docker.push.assert_called_once_with("ghcr.io/acme/shop-worker:1.0.0")

    def test_push_failure(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry]
    ) -> None:
        """A rejected push fails the service."""
        mock_commands.docker.push.return_value = CommandResult(
            success=False, stderr="denied", returncode=1
        )

        report = self.build(builder, targets)

        assert len(report.failed) == 2

    def test_dry_run_does_not_push(
        self, builder: ImageBuilder, mock_commands: MagicMock, targets: list[PlanEntry]
    ) -> None:
        """Dry runs build locally without logging in or pushing."""
        report = self.build(builder, targets, dry_run=True)

        assert len(report.built) == 2
        mock_commands.docker.login.assert_not_called()
        mock_commands.docker.push.assert_not_called()

    def test_no_targets(
        self, builder: ImageBuilder, mock_commands: MagicMock, make_entry: EntryFactory
    ) -> None:
        """Entries without a build block are ignored."""
        report = self.build(builder, [make_entry()])

        assert report.outcomes == []
        assert report.success
        mock_commands.docker.build.assert_not_called()
