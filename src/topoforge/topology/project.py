"""Top-level project declaration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from topoforge.constants import DEFAULT_CONSTANTS

from . import brands
from .forms import ServiceForm, normalize_services
from .models import ClusterConfig, ImagesConfig, NamespaceConfig


class ProjectConfig(BaseModel):
    """A validated project: regions, namespaces, clusters and services.

    ``services`` accepts a mapping of raw declarations or a callable that
    receives the host helper; either way every service is normalized into one
    of the authoring forms before validation.

    ``secrets`` and ``config_maps`` map a resource name to its data, given as a
    mapping or as a callable receiving the namespace context.

    Example:
        ```yaml
        project: shop
        regions: {us: example.com}
        namespaces:
          prod: {region: us, log_level: info}
        clusters:
          main: {context: prod-cluster, namespaces: [prod]}
        images: {registry: ghcr.io/acme}
        services:
          api: {namespace: prod, subdomain: api, port: 8080, protocol: http}
        ```
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    project: str
    regions: dict[str, str]
    namespaces: dict[str, NamespaceConfig]
    clusters: dict[str, ClusterConfig] = Field(default_factory=dict)
    images: ImagesConfig | None = None
    services: dict[str, ServiceForm] = Field(default_factory=dict)
    secrets: dict[str, Any] = Field(default_factory=dict)
    config_maps: dict[str, Any] = Field(default_factory=dict)
    cluster_domain: str = DEFAULT_CONSTANTS.DEFAULT_CLUSTER_DOMAIN
    strict: bool = True

    @field_validator("regions")
    @classmethod
    def valid_regions(cls, value: dict[str, str]) -> dict[str, str]:
        return {name: brands.fqdn(domain) for name, domain in value.items()}

    @field_validator("services", mode="before")
    @classmethod
    def normalize_forms(cls, value: Any) -> Any:
        return normalize_services(value)

    @field_validator("secrets", "config_maps")
    @classmethod
    def valid_data_sources(cls, value: dict[str, Any]) -> dict[str, Any]:
        for name, source in value.items():
            if callable(source):
                continue
            if not isinstance(source, Mapping):
                raise ValueError(f"{name}: data must be a mapping or a callable")
        return value

    @model_validator(mode="after")
    def check_references(self) -> ProjectConfig:
        if not self.namespaces:
            raise ValueError("at least one namespace must be declared")

        for name, namespace in self.namespaces.items():
            if namespace.region not in self.regions:
                raise ValueError(
                    f"namespace '{name}' references unknown region '{namespace.region}'"
                )

        self._check_variable_shape()

        claimed: dict[str, str] = {}
        for cluster_name, cluster in self.clusters.items():
            for namespace in cluster.namespaces:
                if namespace not in self.namespaces:
                    raise ValueError(
                        f"cluster '{cluster_name}' references unknown namespace '{namespace}'"
                    )
                if namespace in claimed:
                    raise ValueError(
                        f"namespace '{namespace}' is claimed by clusters "
                        f"'{claimed[namespace]}' and '{cluster_name}'"
                    )
                claimed[namespace] = cluster_name
        return self

    def _check_variable_shape(self) -> None:
        """Every namespace must declare the same variable keys with the same types."""
        items = list(self.namespaces.items())
        reference_name, reference = items[0]
        expected = {k: type(v) for k, v in reference.variables.items()}
        for name, namespace in items[1:]:
            actual = {k: type(v) for k, v in namespace.variables.items()}
            if actual.keys() != expected.keys():
                missing = sorted(expected.keys() - actual.keys())
                extra = sorted(actual.keys() - expected.keys())
                raise ValueError(
                    f"namespace '{name}' variables differ from '{reference_name}': "
                    f"missing {missing}, unexpected {extra}"
                )
            for key, value_type in expected.items():
                if actual[key] is not value_type:
                    raise ValueError(
                        f"namespace variable '{key}' is {value_type.__name__} in "
                        f"'{reference_name}' but {actual[key].__name__} in '{name}'"
                    )

    def service_name(self, service: str) -> str:
        """Kubernetes resource name for a service (project-prefixed)."""
        prefix = f"{self.project}-"
        return service if service.startswith(prefix) else f"{prefix}{service}"

    def cluster_for(self, namespace: str) -> list[str]:
        """Names of the clusters that claim a namespace."""
        return [
            name
            for name, cluster in self.clusters.items()
            if namespace in cluster.namespaces
        ]
