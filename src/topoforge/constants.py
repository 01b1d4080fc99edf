"""Deployment constants and configuration.

This module centralizes the magic strings, label keys and policy values
used throughout resolution, manifest synthesis and deployment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DeploymentConstants:
    """Constants for manifest synthesis and deployment.

    All attributes are immutable; pass a customized instance to override
    a value in tests.
    """

    # Config discovery
    CONFIG_FILE: str = "topoforge.yaml"
    ENV_FILE: str = ".env"

    # Networking
    DEFAULT_CLUSTER_DOMAIN: str = "cluster.local"
    DEFAULT_HTTP_PORT: int = 80
    DEFAULT_INGRESS_PATH: str = "/"
    LOCAL_DOMAINS: tuple[str, ...] = ("localhost", "localtest.me")
    LOCAL_DOMAIN_SUFFIX: str = ".local"

    # Replica policy
    DEFAULT_REPLICAS: int = 1
    PRODUCTION_REPLICAS: int = 3
    PRODUCTION_MARKER: str = "prod"

    # Timeouts
    ROLLOUT_TIMEOUT_SECONDS: int = 300

    # Labels
    MANAGED_LABEL: str = "topoforge/managed"
    PROJECT_LABEL: str = "topoforge/project"
    APP_LABEL_PREFIX: str = "app.kubernetes.io"

    # TLS
    DEFAULT_CLUSTER_ISSUER: str = "letsencrypt-prod"
    TLS_SECRET_SUFFIX: str = "-tls"
    SELF_SIGNED_KEY_SIZE: int = 2048
    SELF_SIGNED_VALID_DAYS: int = 365

    # Image tags
    GIT_SHA_TAG_LENGTH: int = 12
    FALLBACK_TAG: str = "dev"

    # Registry URL validation pattern
    # Matches: host.com/path, host:port/path, localhost:5000
    REGISTRY_PATTERN: re.Pattern[str] = re.compile(
        r"^[a-zA-Z0-9][-a-zA-Z0-9.]*[a-zA-Z0-9](:[0-9]+)?(/[a-zA-Z0-9._-]+)*$"
    )


DEFAULT_CONSTANTS = DeploymentConstants()


class DeploymentPaths:
    """Path resolver for files the deployment reads from the project directory."""

    def __init__(
        self, project_root: Path, constants: DeploymentConstants | None = None
    ) -> None:
        """Initialize deployment paths.

        Args:
            project_root: Path to the project root directory
            constants: Optional deployment constants (uses defaults if not provided)
        """
        self.project_root = project_root
        self._constants = constants or DEFAULT_CONSTANTS

    @property
    def config_file(self) -> Path:
        """Get path to the default project configuration file."""
        return self.project_root / self._constants.CONFIG_FILE

    @property
    def env_file(self) -> Path:
        """Get path to .env file."""
        return self.project_root / self._constants.ENV_FILE
