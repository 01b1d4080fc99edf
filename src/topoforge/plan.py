"""Plan entry types shared by the planner, manifest builders and deployer."""

from __future__ import annotations

from dataclasses import dataclass, field

from topoforge.topology.models import (
    BuildSpec,
    ConfigMapRef,
    EnvMapping,
    PortSpec,
    ResourceProfile,
    SecretRef,
    Volume,
    VolumeMount,
)

# =============================================================================
# Network
# =============================================================================


@dataclass(frozen=True)
class TlsEntry:
    secret_name: str
    hosts: tuple[str, ...]


@dataclass(frozen=True)
class IngressPlan:
    host: str
    path: str = "/"
    path_type: str = "Prefix"
    class_name: str | None = None
    annotations: tuple[tuple[str, str], ...] = ()
    tls: tuple[TlsEntry, ...] = ()


@dataclass(frozen=True)
class RoutePlan:
    match: str
    services: tuple[tuple[str, int | str], ...]
    middlewares: tuple[str, ...] = ()


@dataclass(frozen=True)
class IngressRoutePlan:
    entry_points: tuple[str, ...]
    routes: tuple[RoutePlan, ...]
    tls_secret: str | None = None
    cert_resolver: str | None = None


@dataclass(frozen=True)
class CertificatePlan:
    secret_name: str
    dns_names: tuple[str, ...]
    common_name: str
    issuer_name: str
    issuer_kind: str = "ClusterIssuer"
    duration: str | None = None
    renew_before: str | None = None


@dataclass(frozen=True)
class NetworkPlan:
    """Network resources for one service in one namespace."""

    ingress: IngressPlan | None = None
    ingress_route: IngressRoutePlan | None = None
    certificate: CertificatePlan | None = None
    self_signed: tuple[TlsEntry, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.ingress or self.ingress_route or self.certificate)


# =============================================================================
# Plan entries
# =============================================================================


@dataclass(frozen=True)
class PlanEntry:
    """One fully resolved (namespace, service) deployment intent.

    Attributes:
        namespace: Target namespace
        service: Declared service name
        service_name: Kubernetes resource name (project-prefixed)
        cluster: Name of the cluster that claims the namespace
        context: Kube context of that cluster
        image: Image reference to run
        build: Build definition when the image is produced by this project
        env: Environment mapping, or a whole secret/config map reference
        secrets: Secret name to data, for secrets referenced by ``env``
        config_maps: ConfigMap name to data, for config maps referenced by ``env``
    """

    project: str
    namespace: str
    service: str
    service_name: str
    cluster: str
    context: str
    image: str
    host: str | None = None
    build: BuildSpec | None = None
    env: EnvMapping | SecretRef | ConfigMapRef | None = None
    secrets: dict[str, dict[str, str]] = field(default_factory=dict)
    config_maps: dict[str, dict[str, str]] = field(default_factory=dict)
    network: NetworkPlan = field(default_factory=NetworkPlan)
    ports: tuple[PortSpec, ...] = ()
    volumes: tuple[Volume, ...] = ()
    volume_mounts: tuple[VolumeMount, ...] = ()
    args: tuple[str, ...] = ()
    pod_annotations: dict[str, str] = field(default_factory=dict)
    replicas: int = 1
    stateful: bool = False
    resources: ResourceProfile | None = None

    @property
    def label(self) -> str:
        return f"{self.namespace}/{self.service}"


@dataclass(frozen=True)
class DeploymentPlan:
    """Ordered plan entries plus the services selected for building."""

    entries: tuple[PlanEntry, ...]
    services: tuple[str, ...]
    namespaces: tuple[str, ...]

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def by_context(self) -> dict[str, DeploymentPlan]:
        """Split the plan per kube context, keeping entry order."""
        grouped: dict[str, list[PlanEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.context, []).append(entry)
        return {
            context: DeploymentPlan(
                entries=tuple(entries),
                services=self.services,
                namespaces=tuple(dict.fromkeys(e.namespace for e in entries)),
            )
            for context, entries in grouped.items()
        }

    def for_namespace(self, namespace: str) -> DeploymentPlan:
        return DeploymentPlan(
            entries=tuple(e for e in self.entries if e.namespace == namespace),
            services=self.services,
            namespaces=(namespace,),
        )

    def without_services(self, services: set[str]) -> DeploymentPlan:
        return DeploymentPlan(
            entries=tuple(e for e in self.entries if e.service not in services),
            services=tuple(s for s in self.services if s not in services),
            namespaces=self.namespaces,
        )

    def build_targets(self) -> list[PlanEntry]:
        """One entry per selected service that has a build definition."""
        seen: set[str] = set()
        targets = []
        for entry in self.entries:
            if entry.build is not None and entry.service not in seen:
                seen.add(entry.service)
                targets.append(entry)
        return targets
