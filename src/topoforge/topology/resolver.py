"""Topology resolution.

Turns the declared service map into one canonical, validated graph:

1. derive public hosts from namespace + subdomain pairs (any authoring form);
2. synthesize listen endpoints from ``port`` + ``protocol`` shorthand;
3. reject unknown dependency targets and dependency cycles;
4. in strict mode, check every edge against its target's listen endpoint;
5. validate the TLS policy of every public endpoint.

Resolution is all-or-nothing: the first error aborts and nothing is returned.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS
from topoforge.errors import (
    DependencyCycle,
    TopologyMismatch,
    UnknownNamespace,
    UnknownService,
)

from . import brands
from .forms import DeclarativeForm, HelperForm, TemplateForm
from .models import (
    HTTP_PROTOCOLS,
    Dependency,
    IngressRule,
    ListenEndpoint,
    PublicEndpoint,
    ServiceFields,
)
from .project import ProjectConfig


@dataclass(frozen=True)
class ResolvedService:
    """A service after expansion. ``spec`` keeps the declared fields."""

    name: str
    spec: ServiceFields
    listen: ListenEndpoint | None
    public: PublicEndpoint | None
    needs: tuple[Dependency, ...]

    @property
    def host(self) -> str | None:
        return self.public.host if self.public else None

    @property
    def first_port(self) -> int | None:
        """First declared port: the listen port, else the first port entry."""
        if self.listen is not None:
            return self.listen.port
        if self.spec.ports:
            return self.spec.ports[0].port
        return None


@dataclass(frozen=True)
class ResolvedTopology:
    """Fully expanded, internally consistent service graph."""

    project: str
    services: dict[str, ResolvedService]
    ingress_rules: tuple[IngressRule, ...] = field(default_factory=tuple)

    def get(self, name: str) -> ResolvedService:
        try:
            return self.services[name]
        except KeyError:
            raise UnknownService(name, available=list(self.services)) from None

    def dependency_order(self) -> list[str]:
        """Service names with every dependency before its dependents.

        Ties are broken by name so the order is stable across runs.
        """
        order: list[str] = []
        done: set[str] = set()

        def needs(name: str) -> Iterator[str]:
            return iter(sorted(d.service for d in self.services[name].needs))

        for root in sorted(self.services):
            if root in done:
                continue
            done.add(root)
            stack = [(root, needs(root))]
            while stack:
                name, pending = stack[-1]
                for dep in pending:
                    if dep not in done:
                        done.add(dep)
                        stack.append((dep, needs(dep)))
                        break
                else:
                    stack.pop()
                    order.append(name)
        return order


class TopologyResolver:
    """Validate and expand a project's service map.

    Example:
        >>> topology = TopologyResolver(config).resolve()
        >>> topology.get("api").host
        'api.example.com'
    """

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    def resolve(self, strict: bool | None = None) -> ResolvedTopology:
        """Resolve the declared services.

        Args:
            strict: Check edge ports/protocols (defaults to ``config.strict``)

        Returns:
            ResolvedTopology with every service expanded

        Raises:
            UnknownNamespace: A host refers to an undeclared namespace
            UnknownService: An edge targets an undeclared service
            DependencyCycle: The ``needs`` graph has a cycle
            TopologyMismatch: Strict mode and an edge disagrees with its target
            InvalidTlsConfig: A public endpoint carries an inconsistent TLS policy
        """
        strict = self.config.strict if strict is None else strict

        services = {
            name: self._expand(name, form) for name, form in self.config.services.items()
        }
        logger.debug(f"Expanded {len(services)} services for {self.config.project}")

        self._check_targets(services)
        self._check_cycles(services)
        if strict:
            self._check_edges(services)

        rules = tuple(
            IngressRule(
                namespace=svc.public.namespace,
                host=svc.public.host,
                tls=svc.public.tls,
                paths=(svc.public.base_path,),
            )
            for svc in services.values()
            if svc.public is not None
        )

        return ResolvedTopology(
            project=self.config.project, services=services, ingress_rules=rules
        )

    # =========================================================================
    # Expansion
    # =========================================================================

    def _expand(
        self, name: str, form: DeclarativeForm | TemplateForm | HelperForm
    ) -> ResolvedService:
        listen = form.listen
        if listen is None and form.port is not None and form.protocol is not None:
            listen = ListenEndpoint.from_shorthand(form.port, form.protocol)

        return ResolvedService(
            name=name,
            spec=form,
            listen=listen,
            public=self._public_endpoint(form),
            needs=tuple(form.needs),
        )

    def _public_endpoint(
        self, form: DeclarativeForm | TemplateForm | HelperForm
    ) -> PublicEndpoint | None:
        base_path = form.path or DEFAULT_CONSTANTS.DEFAULT_INGRESS_PATH

        if form.form == "declarative" and form.public is not None:
            self._region_domain(form.public.namespace)
            return form.public
        if form.form == "declarative" and form.host is not None:
            # A literal host belongs to the service's namespace, else the first one
            namespace = form.namespace or next(iter(self.config.namespaces))
            self._region_domain(namespace)
            return PublicEndpoint(
                namespace=namespace, host=form.host, base_path=base_path, tls=form.tls
            )

        target = form.host_target()
        if target is None:
            return None
        namespace, subdomain = target
        return PublicEndpoint(
            namespace=namespace,
            host=derive_host(subdomain, self._region_domain(namespace)),
            base_path=base_path,
            tls=form.tls,
        )

    def _region_domain(self, namespace: str) -> str:
        try:
            ns = self.config.namespaces[namespace]
        except KeyError:
            raise UnknownNamespace(namespace, list(self.config.namespaces)) from None
        return self.config.regions[ns.region]

    # =========================================================================
    # Graph checks
    # =========================================================================

    @staticmethod
    def _check_targets(services: dict[str, ResolvedService]) -> None:
        for name, svc in services.items():
            for dep in svc.needs:
                if dep.service not in services:
                    raise UnknownService(
                        dep.service, referenced_by=name, available=list(services)
                    )

    @staticmethod
    def _check_cycles(services: dict[str, ResolvedService]) -> None:
        """Iterative depth-first walk keeping the current path; O(V + E)."""
        visited: set[str] = set()

        for root in sorted(services):
            if root in visited:
                continue
            visited.add(root)
            path = [root]
            on_path = {root}
            pending = [iter(services[root].needs)]
            while pending:
                for dep in pending[-1]:
                    if dep.service in on_path:
                        start = path.index(dep.service)
                        raise DependencyCycle(
                            path[-1], dep.service, path=[*path[start:], dep.service]
                        )
                    if dep.service not in visited:
                        visited.add(dep.service)
                        path.append(dep.service)
                        on_path.add(dep.service)
                        pending.append(iter(services[dep.service].needs))
                        break
                else:
                    pending.pop()
                    on_path.discard(path.pop())

    @staticmethod
    def _check_edges(services: dict[str, ResolvedService]) -> None:
        for name, svc in services.items():
            for dep in svc.needs:
                if dep.port is None and dep.protocol is None:
                    continue
                target = services[dep.service]
                listen = target.listen
                if dep.port is not None:
                    actual_port = listen.port if listen else None
                    if actual_port != dep.port:
                        raise TopologyMismatch(
                            name, dep.service, "port", dep.port, actual_port
                        )
                if dep.protocol is not None:
                    actual_protocol = listen.protocol if listen else None
                    if not protocols_compatible(dep, actual_protocol):
                        raise TopologyMismatch(
                            name, dep.service, "protocol", dep.protocol, actual_protocol
                        )


def derive_host(subdomain: str, region_domain: str) -> str:
    """``<subdomain>.<region domain>``, validated as a host."""
    return brands.host(f"{subdomain}.{region_domain}")


def protocols_compatible(dep: Dependency, actual: str | None) -> bool:
    """Exact match, or http/https when the edge sets ``override_protocol``."""
    if dep.protocol == actual:
        return True
    return (
        dep.override_protocol
        and dep.protocol in HTTP_PROTOCOLS
        and actual in HTTP_PROTOCOLS
    )
