"""Ingress, IngressRoute and Certificate manifests."""

from __future__ import annotations

from typing import Any

from topoforge.constants import DEFAULT_CONSTANTS
from topoforge.errors import MissingHost
from topoforge.plan import CertificatePlan, IngressPlan, IngressRoutePlan, PlanEntry

from .utils import Manifest, base_labels, create_metadata, prune

BACKEND_PROTOCOL_ANNOTATION = "nginx.ingress.kubernetes.io/backend-protocol"


def backend_port(
    entry: PlanEntry, default: int = DEFAULT_CONSTANTS.DEFAULT_HTTP_PORT
) -> int:
    return entry.ports[0].port if entry.ports else default


def build_ingress(entry: PlanEntry, ingress: IngressPlan | None = None) -> Manifest:
    """Build a networking.k8s.io/v1 Ingress.

    Raises:
        MissingHost: The entry has no resolvable host
    """
    ingress = ingress or entry.network.ingress
    if ingress is None or not ingress.host:
        raise MissingHost(entry.service, entry.namespace)

    annotations = {BACKEND_PROTOCOL_ANNOTATION: "HTTP", **dict(ingress.annotations)}
    spec: dict[str, Any] = {
        "ingressClassName": ingress.class_name,
        "rules": [
            {
                "host": ingress.host,
                "http": {
                    "paths": [
                        {
                            "path": ingress.path,
                            "pathType": ingress.path_type,
                            "backend": {
                                "service": {
                                    "name": entry.service_name,
                                    "port": {"number": backend_port(entry)},
                                }
                            },
                        }
                    ]
                },
            }
        ],
    }
    if ingress.tls:
        spec["tls"] = [
            {"secretName": tls.secret_name, "hosts": list(tls.hosts)}
            for tls in ingress.tls
        ]

    return prune(
        {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": create_metadata(
                f"{entry.service_name}-ingress",
                entry.namespace,
                base_labels(entry.project, entry.service_name),
                annotations,
            ),
            "spec": spec,
        }
    )


def build_ingress_route(
    entry: PlanEntry, route: IngressRoutePlan | None = None
) -> Manifest:
    """Build a Traefik IngressRoute; every route fans out to its backends."""
    route = route or entry.network.ingress_route
    if route is None:
        raise MissingHost(entry.service, entry.namespace)

    routes = []
    for rule in route.routes:
        services = rule.services or ((entry.service_name, backend_port(entry)),)
        routes.append(
            {
                "match": rule.match,
                "kind": "Rule",
                "services": [{"name": name, "port": port} for name, port in services],
                "middlewares": [{"name": m} for m in rule.middlewares] or None,
            }
        )

    tls = None
    if route.tls_secret or route.cert_resolver:
        tls = {"secretName": route.tls_secret, "certResolver": route.cert_resolver}

    return prune(
        {
            "apiVersion": "traefik.io/v1alpha1",
            "kind": "IngressRoute",
            "metadata": create_metadata(
                f"{entry.service_name}-ingressroute",
                entry.namespace,
                base_labels(entry.project, entry.service_name),
            ),
            "spec": {
                "entryPoints": list(route.entry_points),
                "routes": routes,
                "tls": tls,
            },
        }
    )


def build_certificate(
    entry: PlanEntry, certificate: CertificatePlan | None = None
) -> Manifest:
    """Build a cert-manager Certificate named after its secret."""
    certificate = certificate or entry.network.certificate
    if certificate is None or not certificate.dns_names:
        raise MissingHost(entry.service, entry.namespace)

    return prune(
        {
            "apiVersion": "cert-manager.io/v1",
            "kind": "Certificate",
            "metadata": create_metadata(
                certificate.secret_name,
                entry.namespace,
                base_labels(entry.project, entry.service_name),
            ),
            "spec": {
                "secretName": certificate.secret_name,
                "issuerRef": {
                    "name": certificate.issuer_name,
                    "kind": certificate.issuer_kind,
                },
                "dnsNames": list(certificate.dns_names),
                "commonName": certificate.common_name,
                "duration": certificate.duration,
                "renewBefore": certificate.renew_before,
            },
        }
    )
