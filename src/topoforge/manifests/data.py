"""Namespace, Secret and ConfigMap manifests."""

from __future__ import annotations

from collections.abc import Mapping

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .utils import Manifest, create_metadata, encode_secret_data


def build_namespace(
    name: str, project: str, constants: DeploymentConstants = DEFAULT_CONSTANTS
) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": create_metadata(
            name,
            labels={constants.MANAGED_LABEL: "true", constants.PROJECT_LABEL: project},
        ),
    }


def build_secret(
    name: str,
    namespace: str,
    data: Mapping[str, str],
    labels: Mapping[str, str] | None = None,
) -> Manifest:
    """Opaque Secret; values are base64 encoded in ``data``."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": create_metadata(name, namespace, labels),
        "type": "Opaque",
        "data": encode_secret_data(data),
    }


def build_tls_secret(
    name: str,
    namespace: str,
    certificate_pem: str,
    key_pem: str,
    labels: Mapping[str, str] | None = None,
) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": create_metadata(name, namespace, labels),
        "type": "kubernetes.io/tls",
        "data": encode_secret_data({"tls.crt": certificate_pem, "tls.key": key_pem}),
    }


def build_config_map(
    name: str,
    namespace: str,
    data: Mapping[str, str],
    labels: Mapping[str, str] | None = None,
) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": create_metadata(name, namespace, labels),
        "data": {key: str(value) for key, value in data.items()},
    }
