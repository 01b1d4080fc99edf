"""Resolve a service's network declaration into a ``NetworkPlan``.

Accepted declarations:

- nothing: a default Ingress when the service has a public host;
- ``False``: no network resources;
- ``True``: a default Ingress, which requires a host;
- ``"<domain>"``: automatic HTTPS for that host (no TLS for local domains);
- ``NetworkOptions``: explicit ingress, ingress route and certificate blocks.

The public endpoint's TLS policy decides the certificate source:
``letsencrypt`` adds a Certificate, ``custom`` uses the given secret and
``self-signed`` registers the secret for issuance by the TLS manager.
"""

from __future__ import annotations

from dataclasses import dataclass

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.errors import MissingHost
from topoforge.plan import (
    CertificatePlan,
    IngressPlan,
    IngressRoutePlan,
    NetworkPlan,
    RoutePlan,
    TlsEntry,
)
from topoforge.topology.models import (
    CertificateOptions,
    IngressOptions,
    IngressRouteOptions,
    NetworkOptions,
    NetworkSpec,
    TlsConfig,
)


@dataclass(frozen=True)
class _TlsChoice:
    secret_name: str
    issuer: str | None = None
    self_signed: bool = False


def is_local_domain(
    domain: str, constants: DeploymentConstants = DEFAULT_CONSTANTS
) -> bool:
    return any(
        domain == local or domain.endswith(f".{local}")
        for local in constants.LOCAL_DOMAINS
    ) or domain.endswith(constants.LOCAL_DOMAIN_SUFFIX)


def resolve_network(
    service: str,
    service_name: str,
    namespace: str,
    host: str | None,
    spec: NetworkSpec | None,
    *,
    tls: TlsConfig | None = None,
    port: int = DEFAULT_CONSTANTS.DEFAULT_HTTP_PORT,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> NetworkPlan:
    """Build the network plan for one service in one namespace.

    Args:
        service: Declared service name (used in errors)
        service_name: Kubernetes name of the service
        namespace: Target namespace (used in errors)
        host: Public host in this namespace, if any
        spec: The service's ``network`` declaration
        tls: TLS policy of the public endpoint
        port: Backend service port

    Raises:
        MissingHost: A resource that needs a host was requested without one
    """
    if spec is False:
        return NetworkPlan()
    if isinstance(spec, str):
        return auto_https(service_name, spec, constants=constants)

    if isinstance(spec, NetworkOptions):
        options = spec
    elif spec is True or host:
        options = NetworkOptions(ingress=True)
    else:
        return NetworkPlan()

    choice = _tls_choice(service_name, tls, constants)

    def require_host() -> str:
        if not host:
            raise MissingHost(service, namespace)
        return host

    ingress = None
    if options.ingress:
        ingress_options = (
            options.ingress if isinstance(options.ingress, IngressOptions) else IngressOptions()
        )
        ingress = normalize_ingress(require_host(), ingress_options, choice)

    route = None
    if options.ingress_route:
        route_options = (
            options.ingress_route
            if isinstance(options.ingress_route, IngressRouteOptions)
            else IngressRouteOptions()
        )
        route_host = host if route_options.routes else require_host()
        route = normalize_ingress_route(
            service_name, route_host, route_options, choice, port=port
        )

    certificate = None
    if isinstance(options.certificate, CertificateOptions):
        certificate = normalize_certificate(
            service_name, host, options.certificate, constants
        )
        if not certificate.dns_names:
            raise MissingHost(service, namespace)
    elif options.certificate is True or (
        options.certificate is None and choice is not None and choice.issuer
    ):
        issuer = choice.issuer if choice and choice.issuer else constants.DEFAULT_CLUSTER_ISSUER
        certificate = normalize_certificate(
            service_name,
            require_host(),
            CertificateOptions(
                issuer_ref={"name": issuer},
                secret_name=choice.secret_name if choice else None,
            ),
            constants,
        )

    self_signed = ()
    if choice is not None and choice.self_signed and host:
        self_signed = (TlsEntry(choice.secret_name, (host,)),)

    return NetworkPlan(
        ingress=ingress,
        ingress_route=route,
        certificate=certificate,
        self_signed=self_signed,
    )


def _tls_choice(
    service_name: str, tls: TlsConfig | None, constants: DeploymentConstants
) -> _TlsChoice | None:
    if tls is None:
        return None
    default_secret = f"{service_name}{constants.TLS_SECRET_SUFFIX}"
    if tls.policy == "letsencrypt":
        return _TlsChoice(default_secret, issuer=tls.issuer or constants.DEFAULT_CLUSTER_ISSUER)
    if tls.policy == "custom":
        return _TlsChoice(tls.secret_name or default_secret)
    return _TlsChoice(tls.secret_name or default_secret, self_signed=True)


def normalize_ingress(
    host: str, options: IngressOptions, tls: _TlsChoice | None = None
) -> IngressPlan:
    """Apply ingress defaults: path ``/``, ``Prefix`` matching, policy TLS."""
    entries = tuple(
        TlsEntry(entry.secret_name, tuple(entry.hosts) or (host,)) for entry in options.tls
    )
    if not entries and tls is not None:
        entries = (TlsEntry(tls.secret_name, (host,)),)
    return IngressPlan(
        host=host,
        path=options.path,
        path_type=options.path_type,
        class_name=options.class_name,
        annotations=tuple(sorted(options.annotations.items())),
        tls=entries,
    )


def normalize_ingress_route(
    service_name: str,
    host: str | None,
    options: IngressRouteOptions,
    tls: _TlsChoice | None = None,
    *,
    port: int = DEFAULT_CONSTANTS.DEFAULT_HTTP_PORT,
) -> IngressRoutePlan:
    """Default route: ``Host(`<host>`)`` to the service's own backend."""
    default_backend = ((service_name, port),)
    if options.routes:
        routes = tuple(
            RoutePlan(
                match=route.match,
                services=tuple((s.name, s.port) for s in route.services) or default_backend,
                middlewares=tuple(route.middlewares),
            )
            for route in options.routes
        )
    else:
        routes = (RoutePlan(match=f"Host(`{host}`)", services=default_backend),)

    tls_secret = options.tls.secret_name if options.tls else None
    cert_resolver = options.tls.cert_resolver if options.tls else None
    if tls_secret is None and cert_resolver is None and tls is not None:
        tls_secret = tls.secret_name

    return IngressRoutePlan(
        entry_points=tuple(options.entry_points),
        routes=routes,
        tls_secret=tls_secret,
        cert_resolver=cert_resolver,
    )


def normalize_certificate(
    service_name: str,
    host: str | None,
    options: CertificateOptions,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> CertificatePlan:
    """Certificate defaults: ``<svc>-tls`` secret, ``[host]`` names, first name as CN."""
    dns_names = tuple(options.dns_names) or ((host,) if host else ())
    return CertificatePlan(
        secret_name=options.secret_name or f"{service_name}{constants.TLS_SECRET_SUFFIX}",
        dns_names=dns_names,
        common_name=options.common_name or (dns_names[0] if dns_names else ""),
        issuer_name=options.issuer_ref.name,
        issuer_kind=options.issuer_ref.kind,
        duration=options.duration,
        renew_before=options.renew_before,
    )


def auto_https(
    service_name: str,
    domain: str,
    *,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> NetworkPlan:
    """Ingress for ``domain``; TLS through cert-manager unless the domain is local."""
    if is_local_domain(domain, constants):
        return NetworkPlan(ingress=IngressPlan(host=domain))

    annotations = {
        "cert-manager.io/cluster-issuer": constants.DEFAULT_CLUSTER_ISSUER,
        "traefik.ingress.kubernetes.io/router.entrypoints": "websecure",
        "traefik.ingress.kubernetes.io/router.tls": "true",
    }
    secret_name = f"{service_name}{constants.TLS_SECRET_SUFFIX}"
    return NetworkPlan(
        ingress=IngressPlan(
            host=domain,
            annotations=tuple(sorted(annotations.items())),
            tls=(TlsEntry(secret_name, (domain,)),),
        )
    )
