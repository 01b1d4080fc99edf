"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over Kubernetes operations,
supporting multiple backends (kubectl subprocess, kr8s library).

Example:
    from topoforge.infra.k8s import KubectlController, run_sync

    # Create controller
    controller = KubectlController(context="prod-cluster")

    # Use async methods in sync context
    exists = run_sync(controller.namespace_exists("prod"))
"""

from .controller import CommandResult, KubernetesController
from .helpers import get_k8s_controller
from .kubectl_controller import KubectlController
from .utils import run_sync

__all__ = [
    # Controller classes
    "KubernetesController",
    "KubectlController",
    # Data classes
    "CommandResult",
    # Utilities
    "get_k8s_controller",
    "run_sync",
]
