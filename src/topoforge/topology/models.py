"""Declared data model for projects, namespaces, clusters and services.

The pydantic models in this module validate what an author writes in the
project configuration. Values that feed hosts, paths and ports are checked
through the branded constructors so later stages can trust them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from topoforge.constants import DEFAULT_CONSTANTS
from topoforge.errors import InvalidTlsConfig

from . import brands

Protocol = Literal["http", "https", "tcp", "udp", "grpc"]
TlsPolicy = Literal["letsencrypt", "custom", "self-signed"]

HTTP_PROTOCOLS: frozenset[str] = frozenset({"http", "https"})


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Environment references
# =============================================================================


@dataclass(frozen=True)
class SecretRef:
    """Reference to a Secret (whole secret when ``key`` is None)."""

    name: str
    key: str | None = None

    def __str__(self) -> str:
        if self.key is None:
            return f"{brands.SECRET_SCHEME}{self.name}"
        return brands.secret_ref(self.name, self.key)


@dataclass(frozen=True)
class ConfigMapRef:
    """Reference to a ConfigMap (whole config map when ``key`` is None)."""

    name: str
    key: str | None = None

    def __str__(self) -> str:
        if self.key is None:
            return f"{brands.CONFIG_MAP_SCHEME}{self.name}"
        return brands.config_map_ref(self.name, self.key)


EnvValue = str | int | float | bool | SecretRef | ConfigMapRef
EnvMapping = dict[str, EnvValue]


def coerce_env_value(value: Any) -> EnvValue:
    """Turn ``secret://`` and ``configmap://`` strings into reference objects."""
    if isinstance(value, (SecretRef, ConfigMapRef)):
        return value
    if brands.is_ref_string(value):
        scheme, name, key = brands.parse_ref(value)
        return SecretRef(name, key) if scheme == "secret" else ConfigMapRef(name, key)
    if isinstance(value, (str, int, float, bool)):
        return value
    raise ValueError(f"Unsupported environment value: {value!r}")


def coerce_env(value: Any) -> EnvMapping | SecretRef | ConfigMapRef:
    """Normalize the result of an env declaration (mapping or whole reference)."""
    if isinstance(value, (SecretRef, ConfigMapRef)):
        return value
    if isinstance(value, str) and brands.is_ref_string(value):
        return coerce_env_value(value)
    if isinstance(value, Mapping):
        return {str(k): coerce_env_value(v) for k, v in value.items()}
    raise ValueError(f"Environment must be a mapping or a reference, got {value!r}")


# =============================================================================
# Endpoints and edges
# =============================================================================


class ListenEndpoint(_Model):
    """Where a service accepts traffic inside the cluster."""

    kind: Literal["http", "tcp"]
    protocol: Protocol
    port: int
    path: str | None = None

    @field_validator("port")
    @classmethod
    def valid_port(cls, value: int) -> int:
        return brands.port(value)

    @field_validator("path")
    @classmethod
    def valid_path(cls, value: str | None) -> str | None:
        return None if value is None else brands.url_path(value)

    @model_validator(mode="after")
    def kind_matches_protocol(self) -> ListenEndpoint:
        expected = "http" if self.protocol in HTTP_PROTOCOLS else "tcp"
        if self.kind != expected:
            raise ValueError(
                f"listen kind '{self.kind}' does not fit protocol '{self.protocol}'"
            )
        return self

    @classmethod
    def from_shorthand(cls, port: int, protocol: Protocol) -> ListenEndpoint:
        """Synthesize a listen endpoint from ``port`` + ``protocol``."""
        kind: Literal["http", "tcp"] = "http" if protocol in HTTP_PROTOCOLS else "tcp"
        return cls(kind=kind, protocol=protocol, port=port)


class Dependency(_Model):
    """A ``needs`` edge from one service to another.

    ``port`` and ``protocol`` are optional; when set they must agree with the
    target's listen endpoint. ``override_protocol`` lets an http edge reach an
    https listener (and the reverse).
    """

    service: str
    port: int | None = None
    protocol: Protocol | None = None
    override_protocol: bool = False

    @field_validator("port")
    @classmethod
    def valid_port(cls, value: int | None) -> int | None:
        return None if value is None else brands.port(value)


class TlsConfig(_Model):
    policy: TlsPolicy
    secret_name: str | None = None
    issuer: str | None = None


class PublicEndpoint(_Model):
    """Externally reachable side of a service."""

    namespace: str
    host: str
    base_path: str = "/"
    tls: TlsConfig | None = None

    @field_validator("host")
    @classmethod
    def valid_host(cls, value: str) -> str:
        return brands.host(value)

    @field_validator("base_path")
    @classmethod
    def valid_base_path(cls, value: str) -> str:
        return brands.url_path(value)


@dataclass(frozen=True)
class IngressRule:
    """Resolved routing rule for one public host.

    Raises:
        InvalidTlsConfig: When a ``letsencrypt`` policy names a secret, or a
            ``custom`` policy does not.
    """

    namespace: str
    host: str
    tls: TlsConfig | None = None
    paths: tuple[str, ...] = ("/",)

    def __post_init__(self) -> None:
        if self.tls is None:
            return
        if self.tls.policy == "letsencrypt" and self.tls.secret_name:
            raise InvalidTlsConfig(
                self.host,
                "letsencrypt certificates are issuer-managed and must not name a secret",
            )
        if self.tls.policy == "custom" and not self.tls.secret_name:
            raise InvalidTlsConfig(self.host, "custom TLS requires a secret_name")


# =============================================================================
# Workload details
# =============================================================================


class ResourceProfile(_Model):
    cpu: str | None = None
    memory: str | None = None
    cpu_limit: str | None = None
    memory_limit: str | None = None

    def to_k8s(self) -> dict[str, dict[str, str]] | None:
        requests = {k: v for k, v in (("cpu", self.cpu), ("memory", self.memory)) if v}
        limits = {
            k: v
            for k, v in (("cpu", self.cpu_limit), ("memory", self.memory_limit))
            if v
        }
        resources: dict[str, dict[str, str]] = {}
        if requests:
            resources["requests"] = requests
        if limits:
            resources["limits"] = limits
        return resources or None


class BuildSpec(_Model):
    """Dockerfile build definition; paths are relative to the project root."""

    type: Literal["dockerfile"] = "dockerfile"
    context: str = "."
    dockerfile: str = "Dockerfile"
    target: str | None = None
    args: dict[str, str] = Field(default_factory=dict)
    platform: str | None = None


class PortSpec(_Model):
    name: str
    port: int
    target_port: int | str | None = None
    protocol: Literal["TCP", "UDP"] = "TCP"

    @field_validator("port")
    @classmethod
    def valid_port(cls, value: int) -> int:
        return brands.port(value)


class VolumeMount(_Model):
    name: str
    mount_path: str
    read_only: bool = False
    sub_path: str | None = None

    def to_k8s(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "mountPath": self.mount_path,
            "readOnly": self.read_only or None,
            "subPath": self.sub_path,
        }


class Volume(_Model):
    """Pod volume; exactly one source should be set."""

    name: str
    config_map: str | None = None
    secret: str | None = None
    persistent_volume_claim: str | None = None
    empty_dir: bool = False

    def to_k8s(self) -> dict[str, Any]:
        volume: dict[str, Any] = {"name": self.name}
        if self.config_map:
            volume["configMap"] = {"name": self.config_map}
        elif self.secret:
            volume["secret"] = {"secretName": self.secret}
        elif self.persistent_volume_claim:
            volume["persistentVolumeClaim"] = {"claimName": self.persistent_volume_claim}
        else:
            volume["emptyDir"] = {}
        return volume


class DeployFilter(_Model):
    include: list[str] | None = None
    exclude: list[str] = Field(default_factory=list)


DeploySelection = Literal["all"] | list[str] | DeployFilter


# =============================================================================
# Network options
# =============================================================================


class IngressTls(_Model):
    secret_name: str
    hosts: list[str] = Field(default_factory=list)


class IngressOptions(_Model):
    class_name: str | None = None
    annotations: dict[str, str] = Field(default_factory=dict)
    path: str = DEFAULT_CONSTANTS.DEFAULT_INGRESS_PATH
    path_type: Literal["Prefix", "Exact", "ImplementationSpecific"] = "Prefix"
    tls: list[IngressTls] = Field(default_factory=list)


class RouteBackend(_Model):
    name: str
    port: int | str


class RouteOptions(_Model):
    match: str
    services: list[RouteBackend] = Field(default_factory=list)
    middlewares: list[str] = Field(default_factory=list)


class IngressRouteTls(_Model):
    secret_name: str | None = None
    cert_resolver: str | None = None


class IngressRouteOptions(_Model):
    entry_points: list[str] = Field(default_factory=lambda: ["websecure"])
    routes: list[RouteOptions] = Field(default_factory=list)
    tls: IngressRouteTls | None = None


class IssuerRef(_Model):
    name: str
    kind: Literal["Issuer", "ClusterIssuer"] = "ClusterIssuer"


class CertificateOptions(_Model):
    issuer_ref: IssuerRef
    secret_name: str | None = None
    dns_names: list[str] = Field(default_factory=list)
    common_name: str | None = None
    duration: str | None = None
    renew_before: str | None = None


class NetworkOptions(_Model):
    ingress: bool | IngressOptions | None = None
    ingress_route: bool | IngressRouteOptions | None = None
    certificate: bool | CertificateOptions | None = None


NetworkSpec = bool | str | NetworkOptions


# =============================================================================
# Service fields (shared by all authoring forms)
# =============================================================================


class ServiceFields(_Model):
    """Attributes every authoring form shares.

    ``env`` is a mapping, a whole ``SecretRef``/``ConfigMapRef``, or a callable
    that receives the namespace context and returns one of those.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    port: int | None = None
    protocol: Protocol | None = None
    listen: ListenEndpoint | None = None
    needs: list[Dependency] = Field(default_factory=list)
    path: str | None = None
    tls: TlsConfig | None = None
    resources: ResourceProfile | None = None
    replicas: int | None = Field(default=None, ge=0)
    stateful: bool = False
    build: BuildSpec | None = None
    image: str | None = None
    env: Any = None
    ports: list[PortSpec] = Field(default_factory=list)
    volumes: list[Volume] = Field(default_factory=list)
    volume_mounts: list[VolumeMount] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    pod_annotations: dict[str, str] = Field(default_factory=dict)
    deploy: DeploySelection = "all"
    network: NetworkSpec | None = None

    @field_validator("port")
    @classmethod
    def valid_port(cls, value: int | None) -> int | None:
        return None if value is None else brands.port(value)

    @field_validator("path")
    @classmethod
    def valid_path(cls, value: str | None) -> str | None:
        return None if value is None else brands.url_path(value)

    @field_validator("needs", mode="before")
    @classmethod
    def expand_needs(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [{"service": item} if isinstance(item, str) else item for item in value]

    @field_validator("env", mode="before")
    @classmethod
    def valid_env(cls, value: Any) -> Any:
        if value is None or callable(value):
            return value
        return coerce_env(value)

    @model_validator(mode="after")
    def shorthand_is_complete(self) -> ServiceFields:
        if self.listen is None and (self.port is None) != (self.protocol is None):
            raise ValueError("port and protocol shorthand must be given together")
        return self

    def deploys_to(self, namespace: str) -> bool:
        """Evaluate the ``deploy`` predicate for a namespace."""
        selection = self.deploy
        if selection == "all":
            return True
        if isinstance(selection, list):
            return namespace in selection
        if selection.include is not None and namespace not in selection.include:
            return False
        return namespace not in selection.exclude


# =============================================================================
# Project-level declarations
# =============================================================================


class NamespaceConfig(_Model):
    """A deployment scope: a region reference plus author variables.

    Any key besides ``region`` is treated as a variable, so both of these
    declare ``debug``::

        prod: {region: us, debug: false}
        prod: {region: us, vars: {debug: false}}
    """

    region: str
    variables: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_variables(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "variables" in data:
            return data
        data = dict(data)
        region = data.pop("region", None)
        variables = dict(data.pop("vars", None) or {})
        variables.update(data)
        return {"region": region, "variables": variables}


class ClusterConfig(_Model):
    context: str
    namespaces: list[str]
    api_server: str | None = None


class ImagesConfig(_Model):
    registry: str
    tag_strategy: str = "git-sha"
    include_project_in_name: bool = True


@dataclass(frozen=True)
class HostRef:
    """Host produced by the host helper: ``<subdomain>.<region domain of namespace>``."""

    namespace: str
    subdomain: str

    @property
    def template(self) -> str:
        return f"@{self.namespace}/{self.subdomain}"


class HostHelper:
    """Helper handed to callable ``services`` blocks.

    Example:
        >>> services = lambda h: {"api": {"host": h("prod", "api"), "port": 80, "protocol": "http"}}
    """

    def __call__(self, namespace: str, subdomain: str) -> HostRef:
        return HostRef(namespace, subdomain)

    at = __call__
