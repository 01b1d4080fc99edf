"""Shared helpers for manifest builders."""

from __future__ import annotations

import base64
from collections.abc import Iterable, Mapping
from typing import Any

import yaml

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.topology.models import ConfigMapRef, EnvMapping, SecretRef

Manifest = dict[str, Any]
ManifestKey = tuple[str, str, str | None, str]


def base_labels(project: str, service: str) -> dict[str, str]:
    prefix = DEFAULT_CONSTANTS.APP_LABEL_PREFIX
    return {
        f"{prefix}/name": service,
        f"{prefix}/part-of": project,
    }


def create_metadata(
    name: str,
    namespace: str | None = None,
    labels: Mapping[str, str] | None = None,
    annotations: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build ``metadata``; empty label and annotation maps are omitted."""
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = dict(labels)
    if annotations:
        metadata["annotations"] = dict(annotations)
    return metadata


def prune(value: Any) -> Any:
    """Drop ``None`` values recursively so unset fields never reach a manifest."""
    if isinstance(value, dict):
        return {k: prune(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [prune(v) for v in value if v is not None]
    return value


def encode_secret_data(data: Mapping[str, str]) -> dict[str, str]:
    return {
        key: base64.b64encode(str(value).encode()).decode()
        for key, value in data.items()
    }


def create_env(
    env: EnvMapping | SecretRef | ConfigMapRef | None,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Turn resolved env into container ``env`` and ``envFrom`` lists.

    References without a key use the variable name as the key. A whole
    ``SecretRef``/``ConfigMapRef`` becomes a single ``envFrom`` source.
    """
    if env is None:
        return [], []
    if isinstance(env, SecretRef):
        return [], [{"secretRef": {"name": env.name}}]
    if isinstance(env, ConfigMapRef):
        return [], [{"configMapRef": {"name": env.name}}]

    variables: list[dict[str, Any]] = []
    for name, value in env.items():
        if isinstance(value, SecretRef):
            source = {"secretKeyRef": {"name": value.name, "key": value.key or name}}
            variables.append({"name": name, "valueFrom": source})
        elif isinstance(value, ConfigMapRef):
            source = {"configMapKeyRef": {"name": value.name, "key": value.key or name}}
            variables.append({"name": name, "valueFrom": source})
        elif isinstance(value, bool):
            variables.append({"name": name, "value": "true" if value else "false"})
        else:
            variables.append({"name": name, "value": str(value)})
    return variables, []


def default_replicas(
    namespace: str,
    stateful: bool,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> int:
    """Replica policy when a service does not declare ``replicas``."""
    if stateful:
        return constants.DEFAULT_REPLICAS
    if constants.PRODUCTION_MARKER in namespace:
        return constants.PRODUCTION_REPLICAS
    return constants.DEFAULT_REPLICAS


def manifest_key(manifest: Manifest) -> ManifestKey:
    """``(apiVersion, kind, namespace, name)`` identity of a manifest."""
    metadata = manifest.get("metadata", {})
    return (
        manifest["apiVersion"],
        manifest["kind"],
        metadata.get("namespace"),
        metadata["name"],
    )


def manifest_id(manifest: Manifest) -> str:
    return f"{manifest['kind']}/{manifest['metadata']['name']}"


def render_manifest(manifest: Manifest) -> str:
    """Serialize with sorted keys so identical input gives identical bytes."""
    return yaml.safe_dump(manifest, sort_keys=True, default_flow_style=False)


def render_manifests(manifests: Iterable[Manifest]) -> str:
    return "---\n".join(render_manifest(m) for m in manifests)
