"""Namespace-scoped host context.

A ``NamespaceContext`` bundles pure helpers closed over one namespace's
resolved state: DNS names, URLs, secret/config map references and the
namespace's own variables. It is handed to env and secret callables.

Contexts are built on request for an explicit namespace; nothing is cached
between namespaces.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from topoforge.constants import DEFAULT_CONSTANTS
from topoforge.errors import UnknownNamespace

from .models import HTTP_PROTOCOLS, ConfigMapRef, SecretRef
from .project import ProjectConfig
from .resolver import ResolvedService, ResolvedTopology

DnsKind = Literal["service", "cluster", "ingress"]


@dataclass(frozen=True)
class NamespaceContext:
    """Helpers for one namespace.

    Namespace variables are available through ``variables``, ``var()`` and
    attribute access::

        ctx.dns("db")                  # "shop-db.prod.svc.cluster.local"
        ctx.url("api")                 # "http://shop-api.prod.svc.cluster.local:8080"
        ctx.url("api", kind="ingress") # "https://api.example.com/"
        ctx.secret_ref("db", "password")
        ctx.log_level                  # namespace variable
    """

    project: str
    namespace: str
    region: str
    domain: str
    cluster_domain: str
    variables: Mapping[str, Any]
    topology: ResolvedTopology
    service_names: Mapping[str, str]

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not dataclass fields or methods
        variables = object.__getattribute__(self, "variables")
        if name in variables:
            return variables[name]
        raise AttributeError(
            f"{type(self).__name__!s} has no attribute or namespace variable {name!r}"
        )

    def var(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    # =========================================================================
    # DNS and URLs
    # =========================================================================

    def dns(
        self,
        service: str,
        kind: DnsKind = "cluster",
        *,
        port: int | None = None,
        headless: bool = False,
        pod_index: int | None = None,
        cluster_domain: str | None = None,
    ) -> str:
        """Build a DNS name for a service in this namespace.

        Args:
            service: Declared service name
            kind: ``service`` (bare name), ``cluster`` (fully qualified) or
                ``ingress`` (public host when the service has one)
            port: Append ``:port`` to the result
            headless: Address a single pod of a headless service
            pod_index: Pod ordinal for headless addressing (default 0)
            cluster_domain: Override the project's cluster domain

        Raises:
            UnknownService: The service is not declared
        """
        resolved = self.topology.get(service)
        name = self.service_names[service]

        if kind == "ingress":
            result = resolved.host or name
        elif kind == "service":
            result = name
        else:
            domain = cluster_domain or self.cluster_domain
            result = f"{name}.{self.namespace}.svc.{domain}"
            if headless:
                result = f"{name}-{pod_index or 0}.{result}"

        if port is not None:
            result = f"{result}:{port}"
        return result

    def url(
        self,
        service: str,
        kind: DnsKind = "cluster",
        *,
        protocol: str | None = None,
    ) -> str:
        """Build a URL for a service.

        Cluster and service kinds include the service's first declared port.
        The ingress kind has no port, defaults to https and ends with the
        public base path.
        """
        resolved = self.topology.get(service)

        if kind == "ingress":
            scheme = protocol or "https"
            if resolved.public is None:
                return f"{scheme}://{self.dns(service, 'ingress')}"
            return f"{scheme}://{resolved.public.host}{resolved.public.base_path}"

        scheme = protocol or _default_scheme(resolved)
        host = self.dns(service, kind)
        port = resolved.first_port
        return f"{scheme}://{host}:{port}" if port is not None else f"{scheme}://{host}"

    # =========================================================================
    # References and labels
    # =========================================================================

    def secret_ref(self, name: str, key: str | None = None) -> SecretRef:
        return SecretRef(name, key)

    def config_map_ref(self, name: str, key: str | None = None) -> ConfigMapRef:
        return ConfigMapRef(name, key)

    def label(self, key: str, value: str | None = None) -> str:
        return f"{DEFAULT_CONSTANTS.APP_LABEL_PREFIX}/{key}={value or self.project}"

    def resource(self, name: str) -> str:
        """Project-scoped resource name, e.g. ``resource("db")`` -> ``shop-db``."""
        return f"{self.project}-{name}"

    def env(self, key: str, default: str | None = None) -> str | None:
        """Read a process environment variable at resolution time."""
        return os.environ.get(key, default)


def _default_scheme(service: ResolvedService) -> str:
    if service.listen is not None and service.listen.protocol in HTTP_PROTOCOLS:
        return service.listen.protocol
    return "http"


class ContextProvider:
    """Builds ``NamespaceContext`` objects for explicit namespaces."""

    def __init__(self, config: ProjectConfig, topology: ResolvedTopology) -> None:
        self.config = config
        self.topology = topology
        self._service_names = {
            name: config.service_name(name) for name in topology.services
        }

    def select(self, target: str | None = None) -> list[str]:
        """Namespace names for a target (``None`` or ``"all"`` means every one).

        Raises:
            UnknownNamespace: The target is not declared
        """
        if target is None or target == "all":
            return list(self.config.namespaces)
        if target not in self.config.namespaces:
            raise UnknownNamespace(target, list(self.config.namespaces))
        return [target]

    def for_namespace(self, namespace: str) -> NamespaceContext:
        try:
            ns = self.config.namespaces[namespace]
        except KeyError:
            raise UnknownNamespace(namespace, list(self.config.namespaces)) from None

        return NamespaceContext(
            project=self.config.project,
            namespace=namespace,
            region=ns.region,
            domain=self.config.regions[ns.region],
            cluster_domain=self.config.cluster_domain,
            variables=dict(ns.variables),
            topology=self.topology,
            service_names=self._service_names,
        )
