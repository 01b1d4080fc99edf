"""Deployment and Service manifests."""

from __future__ import annotations

from typing import Any

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.plan import PlanEntry

from .utils import Manifest, base_labels, create_env, create_metadata, prune


def container_ports(
    entry: PlanEntry, constants: DeploymentConstants = DEFAULT_CONSTANTS
) -> list[dict[str, Any]]:
    """Declared ports first, then the ``PORT`` env value, then the default port."""
    if entry.ports:
        ports = []
        for spec in entry.ports:
            number = spec.target_port if isinstance(spec.target_port, int) else spec.port
            ports.append({"name": spec.name, "containerPort": number, "protocol": spec.protocol})
        return ports

    env_port = entry.env.get("PORT") if isinstance(entry.env, dict) else None
    if isinstance(env_port, (int, str)) and str(env_port).isdigit():
        return [{"name": "http", "containerPort": int(env_port), "protocol": "TCP"}]

    return [{"name": "http", "containerPort": constants.DEFAULT_HTTP_PORT, "protocol": "TCP"}]


def build_deployment(
    entry: PlanEntry, constants: DeploymentConstants = DEFAULT_CONSTANTS
) -> Manifest:
    """Build the Deployment for a plan entry."""
    labels = base_labels(entry.project, entry.service_name)
    env, env_from = create_env(entry.env)

    container: dict[str, Any] = {
        "name": entry.service_name,
        "image": entry.image,
        "imagePullPolicy": "IfNotPresent",
        "ports": container_ports(entry, constants),
        "env": env or None,
        "envFrom": env_from or None,
        "args": list(entry.args) or None,
        "volumeMounts": [m.to_k8s() for m in entry.volume_mounts] or None,
        "resources": entry.resources.to_k8s() if entry.resources else None,
    }

    template_labels = {**labels, f"{constants.APP_LABEL_PREFIX}/component": entry.service}
    pod_metadata: dict[str, Any] = {"labels": template_labels}
    if entry.pod_annotations:
        pod_metadata["annotations"] = dict(entry.pod_annotations)

    return prune(
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": create_metadata(entry.service_name, entry.namespace, labels),
            "spec": {
                "replicas": entry.replicas,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": pod_metadata,
                    "spec": {
                        "containers": [container],
                        "volumes": [v.to_k8s() for v in entry.volumes] or None,
                    },
                },
            },
        }
    )


def build_service(
    entry: PlanEntry, constants: DeploymentConstants = DEFAULT_CONSTANTS
) -> Manifest:
    """Build the Service; one port per declared port, else ``http: 80 -> http``."""
    labels = base_labels(entry.project, entry.service_name)

    if entry.ports:
        ports = [
            {
                "name": spec.name,
                "port": spec.port,
                "targetPort": spec.target_port if spec.target_port is not None else spec.name,
                "protocol": spec.protocol,
            }
            for spec in entry.ports
        ]
    else:
        ports = [
            {
                "name": "http",
                "port": constants.DEFAULT_HTTP_PORT,
                "targetPort": "http",
                "protocol": "TCP",
            }
        ]

    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": create_metadata(entry.service_name, entry.namespace, labels),
        "spec": {
            "selector": labels,
            "ports": ports,
        },
    }
