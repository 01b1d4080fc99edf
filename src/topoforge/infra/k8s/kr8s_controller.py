"""Kr8s-based implementation of KubernetesController.

Reads (context, namespaces, secrets, built-in objects) go through the kr8s
library's native async API. kr8s has no server-side ``apply``/``diff``
equivalent, so those operations and rollout waits reuse the kubectl backend.
"""

from __future__ import annotations

from typing import Any

import kr8s
from kr8s.asyncio.objects import (
    ConfigMap,
    Deployment,
    Ingress,
    Namespace,
    Secret,
    Service,
)

from topoforge.errors import ClusterUnavailable

from .kubectl_controller import KubectlController, decode_secret_data

_NATIVE_KINDS: dict[str, Any] = {
    "configmap": ConfigMap,
    "deployment": Deployment,
    "ingress": Ingress,
    "namespace": Namespace,
    "secret": Secret,
    "service": Service,
}


class Kr8sController(KubectlController):
    """Kubernetes controller using the kr8s library for reads.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. When using run_sync() which calls asyncio.run(),
    each call creates a new event loop, making the cached API unusable.
    """

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Create a kr8s API client for the configured context."""
        if self.context:
            return await kr8s.asyncio.api(context=self.context)
        return await kr8s.asyncio.api()

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the kube context name."""
        if self.context:
            return self.context
        try:
            api = await self._get_api()
            return api.auth.active_context or "unknown"
        except Exception:
            return "unknown"

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        return await self.get("namespace", namespace) is not None

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def get(
        self, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Fetch a live object; custom resources fall back to kubectl."""
        object_class = _NATIVE_KINDS.get(kind.lower())
        if object_class is None:
            return await super().get(kind, name, namespace)

        try:
            api = await self._get_api()
            if object_class is Namespace:
                obj = await Namespace.get(name, api=api)
            else:
                obj = await object_class.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            # kr8s surfaces API and transport failures with their own types
            raise ClusterUnavailable(self.context, f"{kind}/{name}: {e}") from e
        return obj.raw

    # =========================================================================
    # Secrets
    # =========================================================================

    async def secret_exists(self, name: str, namespace: str) -> bool:
        return await self.get("secret", name, namespace) is not None

    async def get_secret_data(self, name: str, namespace: str) -> dict[str, str] | None:
        secret = await self.get("secret", name, namespace)
        if secret is None:
            return None
        return decode_secret_data(secret.get("data") or {})
