from __future__ import annotations

from cachetools.func import lru_cache  # type: ignore

from topoforge.infra.k8s.controller import KubernetesController


@lru_cache(maxsize=8)
def get_k8s_controller(context: str | None = None) -> KubernetesController:
    """Get the KubernetesController for a kube context.

    Args:
        context: Kube context name (None uses the current context)

    Returns:
        An instance of KubernetesController
    """
    from topoforge.infra.k8s.kr8s_controller import Kr8sController

    return Kr8sController(context=context)
