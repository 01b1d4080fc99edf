"""Abstract Kubernetes controller interface.

Defines the contract for cluster operations used by the deployer. It can be
implemented by different backends (kubectl subprocess, kr8s library, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CommandResult:
    """Result of a command execution."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


# =============================================================================
# Abstract Controller
# =============================================================================


class KubernetesController(ABC):
    """Abstract base class for Kubernetes operations.

    All methods are async to support both sync (kubectl) and async (kr8s)
    implementations. Use `run_sync()` to call from synchronous code.

    Manifests are plain dicts; applied resources are identified as
    ``Kind/name`` strings.

    Example:
        from topoforge.infra.k8s import KubectlController, run_sync

        controller = KubectlController(context="prod-cluster")
        applied = run_sync(controller.apply(manifest, namespace="prod"))
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def get_current_context(self) -> str:
        """Get the kube context this controller talks to.

        Returns:
            Context name, or "unknown" if detection fails
        """
        ...

    @abstractmethod
    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        ...

    # =========================================================================
    # Resource Operations
    # =========================================================================

    @abstractmethod
    async def apply(
        self,
        manifest: dict[str, Any],
        namespace: str | None = None,
        *,
        dry_run: bool = False,
    ) -> str:
        """Apply one manifest.

        Args:
            manifest: Resource description
            namespace: Target namespace (None for cluster-scoped resources)
            dry_run: Validate without persisting

        Returns:
            Applied id (``Kind/name``, suffixed with `` (dry-run)`` in dry-run mode)

        Raises:
            ApplyFailure: The cluster rejected the manifest
        """
        ...

    @abstractmethod
    async def apply_batch(
        self,
        manifests: Sequence[dict[str, Any]],
        namespace: str | None = None,
        *,
        dry_run: bool = False,
    ) -> list[str]:
        """Apply several manifests in one call, in order.

        Raises:
            ApplyFailure: The cluster rejected the batch
        """
        ...

    @abstractmethod
    async def diff(
        self, manifest: dict[str, Any], namespace: str | None = None
    ) -> str | None:
        """Compare a manifest with the live object without mutating anything.

        Returns:
            None when the object does not exist, an empty string when it is
            unchanged, otherwise the diff text
        """
        ...

    @abstractmethod
    async def get(
        self, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Fetch a live object, or None if it does not exist."""
        ...

    @abstractmethod
    async def delete(self, kind: str, name: str, namespace: str | None = None) -> str:
        """Delete an object (missing objects are ignored).

        Returns:
            Deleted id (``Kind/name``)
        """
        ...

    # =========================================================================
    # Rollouts
    # =========================================================================

    @abstractmethod
    async def rollout_status(
        self,
        kind: str,
        name: str,
        namespace: str,
        *,
        timeout_seconds: int = 300,
    ) -> CommandResult:
        """Wait for a workload rollout to complete.

        Returns:
            CommandResult; ``success`` is False when the rollout did not
            converge within the timeout
        """
        ...

    # =========================================================================
    # Secrets
    # =========================================================================

    @abstractmethod
    async def secret_exists(self, name: str, namespace: str) -> bool:
        """Check if a secret exists in a namespace."""
        ...

    @abstractmethod
    async def get_secret_data(self, name: str, namespace: str) -> dict[str, str] | None:
        """Read and base64-decode a secret's data, or None if it does not exist."""
        ...
