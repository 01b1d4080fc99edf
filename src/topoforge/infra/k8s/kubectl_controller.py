"""Kubectl-based implementation of KubernetesController.

Uses subprocess calls to kubectl for all operations.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import subprocess
from collections.abc import Sequence
from typing import Any

from loguru import logger

from topoforge.errors import ApplyFailure, ClusterUnavailable

from .controller import CommandResult, KubernetesController

DRY_RUN_SUFFIX = " (dry-run)"


def resource_id(manifest: dict[str, Any]) -> str:
    return f"{manifest['kind']}/{manifest['metadata']['name']}"


class KubectlController(KubernetesController):
    """Kubernetes controller using kubectl subprocess calls.

    All methods are async but internally use asyncio.to_thread()
    to run blocking subprocess calls without blocking the event loop.

    Args:
        context: Kube context to target (uses the current context if None)
    """

    def __init__(self, context: str | None = None) -> None:
        self.context = context

    async def _run_kubectl(
        self,
        args: list[str],
        *,
        capture_output: bool = True,
        input_data: str | None = None,
    ) -> CommandResult:
        """Run a kubectl command asynchronously.

        Args:
            args: Command arguments (without 'kubectl' prefix)
            capture_output: Whether to capture stdout/stderr
            input_data: Optional input to send to stdin

        Returns:
            CommandResult with execution results

        Raises:
            ClusterUnavailable: If kubectl is not installed
        """
        cmd = ["kubectl", *args]
        if self.context:
            cmd.extend(["--context", self.context])

        def _run() -> CommandResult:
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=capture_output,
                    text=True,
                    input=input_data,
                )
            except FileNotFoundError as e:
                raise ClusterUnavailable(self.context, f"kubectl is not installed: {e}") from e
            return CommandResult(
                success=result.returncode == 0,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                returncode=result.returncode,
            )

        return await asyncio.to_thread(_run)

    @staticmethod
    def _namespace_args(namespace: str | None) -> list[str]:
        return ["-n", namespace] if namespace else []

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the kube context name."""
        if self.context:
            return self.context
        result = await self._run_kubectl(["config", "current-context"])
        return result.stdout.strip() if result.success else "unknown"

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        result = await self._run_kubectl(["get", "namespace", namespace])
        return result.success

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def apply(
        self,
        manifest: dict[str, Any],
        namespace: str | None = None,
        *,
        dry_run: bool = False,
    ) -> str:
        """Apply one manifest through ``kubectl apply -f -``."""
        return (await self.apply_batch([manifest], namespace, dry_run=dry_run))[0]

    async def apply_batch(
        self,
        manifests: Sequence[dict[str, Any]],
        namespace: str | None = None,
        *,
        dry_run: bool = False,
    ) -> list[str]:
        """Apply manifests as one multi-document stream."""
        if not manifests:
            return []

        ids = [resource_id(m) for m in manifests]
        args = ["apply", *self._namespace_args(namespace), "-f", "-"]
        if dry_run:
            args.append("--dry-run=client")

        stream = "\n---\n".join(json.dumps(m, sort_keys=True) for m in manifests)
        result = await self._run_kubectl(args, input_data=stream)
        if not result.success:
            raise ApplyFailure(", ".join(ids), namespace or "-", result.stderr.strip())

        logger.debug(f"Applied {', '.join(ids)} in {namespace or 'cluster scope'}")
        if dry_run:
            return [f"{i}{DRY_RUN_SUFFIX}" for i in ids]
        return ids

    async def diff(
        self, manifest: dict[str, Any], namespace: str | None = None
    ) -> str | None:
        """Run ``kubectl diff``; exit code 1 means differences were found."""
        metadata = manifest["metadata"]
        live = await self.get(
            manifest["kind"], metadata["name"], namespace or metadata.get("namespace")
        )
        if live is None:
            return None

        result = await self._run_kubectl(
            ["diff", *self._namespace_args(namespace), "-f", "-"],
            input_data=json.dumps(manifest, sort_keys=True),
        )
        if result.returncode == 0:
            return ""
        if result.returncode == 1:
            return result.stdout
        raise ApplyFailure(resource_id(manifest), namespace or "-", result.stderr.strip())

    async def get(
        self, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Fetch a live object as JSON."""
        result = await self._run_kubectl(
            ["get", kind, name, *self._namespace_args(namespace), "-o", "json"]
        )
        if not result.success or not result.stdout:
            return None
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            return None

    async def delete(self, kind: str, name: str, namespace: str | None = None) -> str:
        """Delete an object, ignoring objects that are already gone."""
        result = await self._run_kubectl(
            ["delete", kind, name, *self._namespace_args(namespace), "--ignore-not-found"]
        )
        if not result.success:
            raise ApplyFailure(f"{kind}/{name}", namespace or "-", result.stderr.strip())
        return f"{kind}/{name}"

    # =========================================================================
    # Rollouts
    # =========================================================================

    async def rollout_status(
        self,
        kind: str,
        name: str,
        namespace: str,
        *,
        timeout_seconds: int = 300,
    ) -> CommandResult:
        """Wait for a rollout to complete."""
        return await self._run_kubectl(
            [
                "rollout",
                "status",
                f"{kind.lower()}/{name}",
                "-n",
                namespace,
                f"--timeout={timeout_seconds}s",
            ]
        )

    # =========================================================================
    # Secrets
    # =========================================================================

    async def secret_exists(self, name: str, namespace: str) -> bool:
        result = await self._run_kubectl(["get", "secret", name, "-n", namespace])
        return result.success

    async def get_secret_data(self, name: str, namespace: str) -> dict[str, str] | None:
        secret = await self.get("secret", name, namespace)
        if secret is None:
            return None
        return decode_secret_data(secret.get("data") or {})


def decode_secret_data(data: dict[str, str]) -> dict[str, str]:
    """Decode a live secret's ``data``; binary values are left out."""
    decoded: dict[str, str] = {}
    for key, value in data.items():
        try:
            decoded[key] = base64.b64decode(value).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.debug(f"Skipping non-text secret key {key}")
    return decoded
