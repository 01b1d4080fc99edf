"""Image reference resolution.

Services with a ``build`` block get an image in the project registry:
``<registry>/<project>-<service>:<tag>``. The tag comes from the configured
strategy:

- ``git-sha``: first characters of HEAD's sha; ``GIT_SHA`` env or ``dev`` when
  git is unavailable
- ``git-tag``: the latest git tag, else ``latest``
- ``timestamp``: UTC build time (``YYYYMMDDHHMMSS``)
- anything else: used literally
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.errors import ConfigurationError

if TYPE_CHECKING:
    from topoforge.topology.models import ImagesConfig, ServiceFields

    from .shell_commands import GitCommands


class ImageResolver:
    """Computes image references for services.

    The tag is computed once per resolver so every service in one run shares
    the same tag.
    """

    def __init__(
        self,
        images: ImagesConfig | None,
        project: str,
        git: GitCommands | None = None,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.images = images
        self.project = project
        self.git = git
        self.constants = constants or DEFAULT_CONSTANTS
        self._tag: str | None = None

        if images is not None and not self.constants.REGISTRY_PATTERN.match(
            images.registry
        ):
            raise ConfigurationError(
                f"Invalid image registry '{images.registry}'",
                details="Expected host[:port][/path], e.g. ghcr.io/acme",
            )

    @property
    def tag(self) -> str:
        if self._tag is None:
            self._tag = self._compute_tag()
            logger.debug(f"Using image tag {self._tag}")
        return self._tag

    def _compute_tag(self) -> str:
        strategy = self.images.tag_strategy if self.images else "git-sha"

        if strategy == "git-sha":
            metadata = self.git.get_metadata() if self.git else None
            if metadata is not None and not metadata.is_fallback:
                return metadata.sha[: self.constants.GIT_SHA_TAG_LENGTH]
            env_sha = os.environ.get("GIT_SHA")
            if env_sha:
                return env_sha[: self.constants.GIT_SHA_TAG_LENGTH]
            return self.constants.FALLBACK_TAG

        if strategy == "git-tag":
            metadata = self.git.get_metadata() if self.git else None
            return (metadata.tag if metadata else None) or "latest"

        if strategy == "timestamp":
            return datetime.now(UTC).strftime("%Y%m%d%H%M%S")

        return strategy

    def repository(self, service: str) -> str:
        """Registry repository for a built service."""
        if self.images is None:
            raise ConfigurationError(
                f"Service '{service}' has a build definition but no image registry is configured",
                details="Add an images block, e.g.\nimages:\n  registry: ghcr.io/acme",
            )
        name = (
            f"{self.project}-{service}"
            if self.images.include_project_in_name
            else service
        )
        return f"{self.images.registry}/{name}"

    def reference(self, service: str) -> str:
        """Full ``repository:tag`` reference for a built service."""
        return f"{self.repository(service)}:{self.tag}"

    def for_service(self, service: str, spec: ServiceFields) -> str:
        """Image a service runs: its external ``image``, else its build reference.

        Raises:
            ConfigurationError: The service has neither an image nor a build
        """
        if spec.image:
            return spec.image
        if spec.build is not None:
            return self.reference(service)
        raise ConfigurationError(
            f"Service '{service}' needs either an image or a build definition"
        )
