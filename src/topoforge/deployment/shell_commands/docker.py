"""Docker command abstractions.

This module provides commands for building, checking and pushing images
against a remote registry.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from loguru import logger

from .types import CommandResult

if TYPE_CHECKING:
    from pathlib import Path

    from topoforge.topology.models import BuildSpec

    from .runner import CommandRunner


class DockerCommands:
    """Docker-related shell commands.

    Provides operations for:
    - Registry login (credentials from the environment)
    - Remote image existence checks
    - Dockerfile builds and pushes
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Docker commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner
        self._logged_in: set[str] = set()

    # =========================================================================
    # Registry
    # =========================================================================

    def login(self, registry: str | None = None) -> CommandResult | None:
        """Log in to a registry with DOCKER_USERNAME and DOCKER_PASSWORD.

        ``DOCKER_TOKEN`` is accepted in place of ``DOCKER_PASSWORD``. Login is
        skipped when no credentials are set or the registry was already
        logged in during this run.

        Args:
            registry: Registry host (defaults to DOCKER_REGISTRY or docker.io)

        Returns:
            CommandResult of the login, or None when login was skipped
        """
        registry = registry or os.environ.get("DOCKER_REGISTRY", "docker.io")
        username = os.environ.get("DOCKER_USERNAME")
        password = os.environ.get("DOCKER_PASSWORD") or os.environ.get("DOCKER_TOKEN")

        if registry in self._logged_in:
            logger.debug(f"Already logged in to {registry}")
            return None
        if not username or not password:
            logger.debug(f"No Docker credentials found, skipping login to {registry}")
            return None

        logger.info(f"Docker login to {registry} as {username}")
        result = self._runner.run(
            ["docker", "login", registry, "-u", username, "--password-stdin"],
            input_data=password,
        )
        if result.success:
            self._logged_in.add(registry)
        return result

    def remote_image_exists(self, image_ref: str) -> bool:
        """Check if an image exists in its registry without pulling it.

        Args:
            image_ref: Full image reference (e.g., "ghcr.io/acme/shop-api:abc123")

        Returns:
            True if ``docker manifest inspect`` finds the image
        """
        result = self._runner.run(["docker", "manifest", "inspect", image_ref])
        return result.success

    # =========================================================================
    # Build and push
    # =========================================================================

    def build(self, image_ref: str, spec: BuildSpec, context: Path) -> CommandResult:
        """Build an image from a Dockerfile.

        Args:
            image_ref: Tag to apply to the built image
            spec: Build definition (context, dockerfile, target, args, platform)
            context: Directory that relative build paths resolve against

        Returns:
            CommandResult with build status
        """
        cmd = [
            "docker",
            "build",
            str(context / spec.context),
            "--file",
            str(context / spec.dockerfile),
            "--tag",
            image_ref,
        ]
        if spec.platform:
            cmd.extend(["--platform", spec.platform])
        for key, value in spec.args.items():
            cmd.extend(["--build-arg", f"{key}={value}"])
        if spec.target:
            cmd.extend(["--target", spec.target])

        logger.info(f"Docker build {image_ref}")
        return self._runner.run(cmd, cwd=context)

    def push(self, image_ref: str) -> CommandResult:
        """Push an image to its registry.

        Args:
            image_ref: Full image reference including registry

        Returns:
            CommandResult with push status
        """
        logger.info(f"Docker push {image_ref}")
        return self._runner.run(["docker", "push", image_ref])
