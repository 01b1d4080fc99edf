"""Deployment planning.

The planner walks the namespace x service product and produces one
``PlanEntry`` per pair that should be deployed. Selection precedence:

1. an explicit service name narrows to that service;
2. otherwise a changed-file list narrows to services whose build context
   (or dockerfile) contains a changed path;
3. otherwise every service is selected.

Each (namespace, service) pair is then filtered by the service's ``deploy``
predicate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.errors import ClusterAssignmentError, ConfigurationError
from topoforge.manifests.normalizers import resolve_network
from topoforge.manifests.utils import default_replicas
from topoforge.plan import DeploymentPlan, PlanEntry
from topoforge.topology.context import ContextProvider, NamespaceContext
from topoforge.topology.models import (
    BuildSpec,
    ConfigMapRef,
    EnvMapping,
    PortSpec,
    SecretRef,
    coerce_env,
)
from topoforge.topology.project import ProjectConfig
from topoforge.topology.resolver import ResolvedService, ResolvedTopology

from .images import ImageResolver


def _normalize_path(path: str) -> str:
    """``./web/`` -> ``web``; ``.`` -> empty string."""
    parts = [part for part in path.replace("\\", "/").split("/") if part not in ("", ".")]
    return "/".join(parts)


def path_contains(directory: str, path: str) -> bool:
    """Whether ``path`` is ``directory`` or lies beneath it (``.`` contains everything)."""
    directory = _normalize_path(directory)
    path = _normalize_path(path)
    if not directory:
        return True
    return path == directory or path.startswith(f"{directory}/")


def build_touched(build: BuildSpec, changed_files: Iterable[str]) -> bool:
    """Whether any changed path overlaps a build's context or dockerfile."""
    dockerfile = _normalize_path(build.dockerfile)
    for changed in changed_files:
        if path_contains(build.context, changed) or _normalize_path(changed) == dockerfile:
            return True
    return False


class Planner:
    """Builds deployment plans from a resolved topology.

    Example:
        >>> planner = Planner(config, topology, contexts, images)
        >>> plan = planner.plan(namespace="prod", service="api")
        >>> [entry.label for entry in plan]
        ['prod/api']
    """

    def __init__(
        self,
        config: ProjectConfig,
        topology: ResolvedTopology,
        contexts: ContextProvider,
        images: ImageResolver,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.config = config
        self.topology = topology
        self.contexts = contexts
        self.images = images
        self.constants = constants or DEFAULT_CONSTANTS

    # =========================================================================
    # Selection
    # =========================================================================

    def select_services(
        self,
        service: str | None = None,
        changed_files: Iterable[str] | None = None,
    ) -> list[str]:
        """Services selected for this run, in dependency order.

        Raises:
            UnknownService: An explicit service name is not declared
        """
        order = self.topology.dependency_order()

        if service is not None:
            self.topology.get(service)
            return [service]

        changed = list(changed_files or ())
        if changed:
            selected = [
                name
                for name in order
                if (build := self.topology.services[name].spec.build) is not None
                and build_touched(build, changed)
            ]
            logger.debug(f"Changed files select services: {selected or 'none'}")
            return selected

        return order

    def _cluster(self, namespace: str) -> tuple[str, str]:
        clusters = self.config.cluster_for(namespace)
        if len(clusters) != 1:
            raise ClusterAssignmentError(namespace, clusters)
        name = clusters[0]
        return name, self.config.clusters[name].context

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(
        self,
        namespace: str | None = None,
        service: str | None = None,
        changed_files: Iterable[str] | None = None,
    ) -> DeploymentPlan:
        """Plan every selected (namespace, service) pair.

        Args:
            namespace: A namespace name, ``"all"`` or None for every namespace
            service: Narrow the plan to one service
            changed_files: Narrow the plan to services touched by these paths

        Returns:
            DeploymentPlan with entries ordered by namespace, then dependency order

        Raises:
            UnknownNamespace: ``namespace`` is not declared
            UnknownService: ``service`` is not declared
            ClusterAssignmentError: A selected namespace has no single cluster
        """
        namespaces = self.contexts.select(namespace)
        services = self.select_services(service, changed_files)

        clusters = {ns: self._cluster(ns) for ns in namespaces}

        entries: list[PlanEntry] = []
        for ns in namespaces:
            ctx = self.contexts.for_namespace(ns)
            for name in services:
                resolved = self.topology.services[name]
                if not resolved.spec.deploys_to(ns):
                    logger.debug(f"Skipping {ns}/{name}: deploy predicate excludes namespace")
                    continue
                cluster, kube_context = clusters[ns]
                entries.append(self._entry(ctx, resolved, cluster, kube_context))

        logger.debug(f"Planned {len(entries)} entries across {len(namespaces)} namespaces")
        return DeploymentPlan(
            entries=tuple(entries),
            services=tuple(services),
            namespaces=tuple(namespaces),
        )

    def _entry(
        self,
        ctx: NamespaceContext,
        resolved: ResolvedService,
        cluster: str,
        kube_context: str,
    ) -> PlanEntry:
        spec = resolved.spec
        service_name = self.config.service_name(resolved.name)
        env = self._env(ctx, resolved)
        ports = self._ports(resolved)

        host = None
        tls = None
        if resolved.public is not None and resolved.public.namespace == ctx.namespace:
            host = resolved.public.host
            tls = resolved.public.tls

        network = resolve_network(
            resolved.name,
            service_name,
            ctx.namespace,
            host,
            spec.network,
            tls=tls,
            port=ports[0].port if ports else self.constants.DEFAULT_HTTP_PORT,
            constants=self.constants,
        )

        return PlanEntry(
            project=self.config.project,
            namespace=ctx.namespace,
            service=resolved.name,
            service_name=service_name,
            cluster=cluster,
            context=kube_context,
            image=self.images.for_service(resolved.name, spec),
            host=host,
            build=spec.build,
            env=env,
            secrets=self._data(ctx, self.config.secrets, _referenced(env, SecretRef)),
            config_maps=self._data(
                ctx, self.config.config_maps, _referenced(env, ConfigMapRef)
            ),
            network=network,
            ports=ports,
            volumes=tuple(spec.volumes),
            volume_mounts=tuple(spec.volume_mounts),
            args=tuple(spec.args),
            pod_annotations=dict(spec.pod_annotations),
            replicas=(
                spec.replicas
                if spec.replicas is not None
                else default_replicas(ctx.namespace, spec.stateful, self.constants)
            ),
            stateful=spec.stateful,
            resources=spec.resources,
        )

    @staticmethod
    def _env(
        ctx: NamespaceContext, resolved: ResolvedService
    ) -> EnvMapping | SecretRef | ConfigMapRef | None:
        env = resolved.spec.env
        if callable(env):
            try:
                env = env(ctx)
            except Exception as e:
                raise ConfigurationError(
                    f"env of service '{resolved.name}' failed in namespace '{ctx.namespace}'",
                    details=str(e),
                ) from e
        if env is None:
            return None
        try:
            return coerce_env(env)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid env for service '{resolved.name}' in namespace '{ctx.namespace}'",
                details=str(e),
            ) from e

    @staticmethod
    def _ports(resolved: ResolvedService) -> tuple[PortSpec, ...]:
        if resolved.spec.ports:
            return tuple(resolved.spec.ports)
        listen = resolved.listen
        if listen is None:
            return ()
        name = "http" if listen.kind == "http" else listen.protocol
        return (
            PortSpec(
                name=name,
                port=listen.port,
                target_port=listen.port,
                protocol="UDP" if listen.protocol == "udp" else "TCP",
            ),
        )

    @staticmethod
    def _data(
        ctx: NamespaceContext, sources: Mapping[str, Any], names: list[str]
    ) -> dict[str, dict[str, str]]:
        """Evaluate declared secret/config map data for referenced names.

        Names that are referenced but not declared are assumed to exist in the
        cluster already.
        """
        data: dict[str, dict[str, str]] = {}
        for name in names:
            source = sources.get(name)
            if source is None:
                continue
            try:
                values = source(ctx) if callable(source) else source
            except Exception as e:
                raise ConfigurationError(
                    f"data for '{name}' failed in namespace '{ctx.namespace}'",
                    details=str(e),
                ) from e
            if not isinstance(values, Mapping):
                raise ConfigurationError(
                    f"data for '{name}' in namespace '{ctx.namespace}' must be a mapping, "
                    f"got {type(values).__name__}"
                )
            data[name] = {str(k): "" if v is None else str(v) for k, v in values.items()}
        return data


def _referenced(
    env: EnvMapping | SecretRef | ConfigMapRef | None, ref_type: type
) -> list[str]:
    """Names of the secrets or config maps an env block references, in order."""
    if env is None:
        return []
    if isinstance(env, ref_type):
        return [env.name]
    if not isinstance(env, dict):
        return []
    names: list[str] = []
    for value in env.values():
        if isinstance(value, ref_type) and value.name not in names:
            names.append(value.name)
    return names
