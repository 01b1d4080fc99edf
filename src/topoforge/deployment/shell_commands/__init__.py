"""Wrappers around the external tools a deployment needs.

- docker: registry login, remote image lookup, build and push
- git: metadata for image tags and the changed-file filter
- openssl: self-signed certificates for ingress TLS

Example:
    commands = ShellCommands(Path("."))
    if not commands.docker.remote_image_exists("ghcr.io/acme/shop-api:abc123"):
        commands.docker.push("ghcr.io/acme/shop-api:abc123")
"""

from pathlib import Path

from .docker import DockerCommands
from .git import GitCommands
from .openssl import OpenSSLCommands
from .runner import CommandRunner
from .types import CommandResult, GitMetadata


class ShellCommands:
    """One runner, shared by the docker, git and openssl wrappers.

    Every tool runs with the project root as its working directory unless
    a call passes its own ``cwd`` (docker builds use the service context).
    """

    def __init__(self, project_root: Path) -> None:
        self._project_root = Path(project_root)
        runner = CommandRunner(self._project_root)
        self.docker = DockerCommands(runner)
        self.git = GitCommands(runner)
        self.openssl = OpenSSLCommands(runner)

    @property
    def project_root(self) -> Path:
        return self._project_root


__all__ = [
    "CommandResult",
    "CommandRunner",
    "DockerCommands",
    "GitCommands",
    "GitMetadata",
    "OpenSSLCommands",
    "ShellCommands",
]
