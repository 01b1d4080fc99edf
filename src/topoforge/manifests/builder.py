"""Manifest synthesis for plan entries."""

from __future__ import annotations

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.plan import PlanEntry

from .data import build_config_map, build_namespace, build_secret
from .network import build_certificate, build_ingress, build_ingress_route
from .utils import Manifest, base_labels
from .workloads import build_deployment, build_service


class ManifestBuilder:
    """Builds the resource descriptions for plan entries.

    Output order is the apply order: secrets, config maps, then the app
    manifests (Deployment, Service, Ingress, IngressRoute, Certificate).
    Synthesis for an entry either returns every manifest or raises; nothing
    partial is ever returned.
    """

    def __init__(
        self, project: str, constants: DeploymentConstants | None = None
    ) -> None:
        self.project = project
        self.constants = constants or DEFAULT_CONSTANTS

    def namespace(self, name: str) -> Manifest:
        return build_namespace(name, self.project, self.constants)

    def data_manifests(self, entry: PlanEntry) -> list[Manifest]:
        """Secrets and config maps referenced by the entry's environment."""
        labels = base_labels(self.project, entry.service_name)
        manifests = [
            build_secret(name, entry.namespace, data, labels)
            for name, data in sorted(entry.secrets.items())
        ]
        manifests.extend(
            build_config_map(name, entry.namespace, data, labels)
            for name, data in sorted(entry.config_maps.items())
        )
        return manifests

    def app_manifests(self, entry: PlanEntry) -> list[Manifest]:
        """Workload and network manifests for the entry."""
        manifests = [
            build_deployment(entry, self.constants),
            build_service(entry, self.constants),
        ]
        network = entry.network
        if network.ingress is not None:
            manifests.append(build_ingress(entry))
        if network.ingress_route is not None:
            manifests.append(build_ingress_route(entry))
        if network.certificate is not None:
            manifests.append(build_certificate(entry))
        return manifests

    def build_for_entry(self, entry: PlanEntry) -> list[Manifest]:
        manifests = self.data_manifests(entry) + self.app_manifests(entry)
        logger.debug(f"Synthesized {len(manifests)} manifests for {entry.label}")
        return manifests
