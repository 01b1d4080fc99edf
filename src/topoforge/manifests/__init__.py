"""Kubernetes manifest builders.

All builders are pure: identical plan entries give identical manifests, and
``render_manifest`` serializes them with sorted keys for byte-stable output.
"""

from .builder import ManifestBuilder
from .data import build_config_map, build_namespace, build_secret, build_tls_secret
from .network import build_certificate, build_ingress, build_ingress_route
from .normalizers import resolve_network
from .utils import (
    Manifest,
    default_replicas,
    manifest_id,
    manifest_key,
    render_manifest,
    render_manifests,
)
from .workloads import build_deployment, build_service

__all__ = [
    "ManifestBuilder",
    "Manifest",
    # Builders
    "build_namespace",
    "build_deployment",
    "build_service",
    "build_ingress",
    "build_ingress_route",
    "build_certificate",
    "build_secret",
    "build_tls_secret",
    "build_config_map",
    # Helpers
    "resolve_network",
    "default_replicas",
    "manifest_key",
    "manifest_id",
    "render_manifest",
    "render_manifests",
]
