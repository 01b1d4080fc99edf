"""Unit tests for namespace contexts."""

from __future__ import annotations

import pytest

from topoforge.errors import UnknownNamespace, UnknownService
from topoforge.topology import (
    ConfigMapRef,
    ContextProvider,
    NamespaceContext,
    ProjectConfig,
    SecretRef,
    TopologyResolver,
)


@pytest.fixture
def provider(sample_config: ProjectConfig) -> ContextProvider:
    return ContextProvider(sample_config, TopologyResolver(sample_config).resolve())


@pytest.fixture
def prod(provider: ContextProvider) -> NamespaceContext:
    return provider.for_namespace("prod")


class TestContextProvider:
    """Tests for namespace selection."""

    def test_select_all(self, provider: ContextProvider) -> None:
        """None and 'all' select every namespace in declaration order."""
        assert provider.select() == ["prod", "staging"]
        assert provider.select("all") == ["prod", "staging"]

    def test_select_one(self, provider: ContextProvider) -> None:
        """A declared namespace selects only itself."""
        assert provider.select("staging") == ["staging"]

    def test_select_unknown(self, provider: ContextProvider) -> None:
        """Unknown namespaces are rejected."""
        with pytest.raises(UnknownNamespace):
            provider.select("qa")
        with pytest.raises(UnknownNamespace):
            provider.for_namespace("qa")

    def test_contexts_are_namespace_scoped(self, provider: ContextProvider) -> None:
        """Each namespace sees its own variables."""
        assert provider.for_namespace("prod").log_level == "info"
        assert provider.for_namespace("staging").log_level == "debug"

    def test_context_carries_region(self, prod: NamespaceContext) -> None:
        """The context knows its region and domain."""
        assert prod.region == "us"
        assert prod.domain == "example.com"


class TestDns:
    """Tests for dns()."""

    def test_cluster_dns(self, prod: NamespaceContext) -> None:
        """The default kind is the fully qualified service name."""
        assert prod.dns("db") == "shop-db.prod.svc.cluster.local"

    def test_service_dns(self, prod: NamespaceContext) -> None:
        """The service kind is the bare Kubernetes name."""
        assert prod.dns("db", "service") == "shop-db"

    def test_dns_with_port(self, prod: NamespaceContext) -> None:
        """A port is appended when given."""
        assert prod.dns("db", port=5432) == "shop-db.prod.svc.cluster.local:5432"

    def test_headless_dns(self, prod: NamespaceContext) -> None:
        """Headless addressing prefixes the pod ordinal."""
        assert prod.dns("db", headless=True, pod_index=1) == (
            "shop-db-1.shop-db.prod.svc.cluster.local"
        )
        assert prod.dns("db", headless=True).startswith("shop-db-0.")

    def test_cluster_domain_override(self, prod: NamespaceContext) -> None:
        """A custom cluster domain replaces cluster.local."""
        assert prod.dns("db", cluster_domain="k8s.internal") == "shop-db.prod.svc.k8s.internal"

    def test_ingress_dns(self, prod: NamespaceContext) -> None:
        """The ingress kind is the public host, else the service name."""
        assert prod.dns("api", "ingress") == "api.example.com"
        assert prod.dns("db", "ingress") == "shop-db"

    def test_unknown_service(self, prod: NamespaceContext) -> None:
        """DNS names can only be built for declared services."""
        with pytest.raises(UnknownService):
            prod.dns("cache")


class TestUrls:
    """Tests for url()."""

    def test_cluster_url_includes_port(self, prod: NamespaceContext) -> None:
        """Internal URLs use the listen protocol and first port."""
        assert prod.url("api") == "http://shop-api.prod.svc.cluster.local:8080"

    def test_service_url(self, prod: NamespaceContext) -> None:
        """The service kind uses the bare name."""
        assert prod.url("api", "service") == "http://shop-api:8080"

    def test_ingress_url_uses_https_and_base_path(self, prod: NamespaceContext) -> None:
        """Public URLs default to https and end with the base path."""
        assert prod.url("api", "ingress") == "https://api.example.com/"

    def test_protocol_override(self, prod: NamespaceContext) -> None:
        """An explicit protocol replaces the default scheme."""
        assert prod.url("db", protocol="postgres") == (
            "postgres://shop-db.prod.svc.cluster.local:5432"
        )


class TestHelpers:
    """Tests for references, labels and variables."""

    def test_secret_and_config_map_refs(self, prod: NamespaceContext) -> None:
        """Reference helpers return reference objects."""
        assert prod.secret_ref("db", "password") == SecretRef("db", "password")
        assert str(prod.secret_ref("db", "password")) == "secret://db/password"
        assert prod.config_map_ref("settings") == ConfigMapRef("settings")

    def test_resource_and_label(self, prod: NamespaceContext) -> None:
        """Resource names and labels are project-scoped."""
        assert prod.resource("db") == "shop-db"
        assert prod.label("part-of") == "app.kubernetes.io/part-of=shop"

    def test_variables(self, prod: NamespaceContext) -> None:
        """Variables are reachable by attribute and var()."""
        assert prod.log_level == "info"
        assert prod.var("log_level") == "info"
        assert prod.var("missing", "fallback") == "fallback"

    def test_missing_variable_attribute(self, prod: NamespaceContext) -> None:
        """Unknown attributes raise AttributeError."""
        with pytest.raises(AttributeError, match="missing"):
            _ = prod.missing

    def test_env_reads_process_environment(
        self, prod: NamespaceContext, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """env() reads os.environ at call time."""
        monkeypatch.setenv("TOPOFORGE_TEST_VALUE", "42")
        assert prod.env("TOPOFORGE_TEST_VALUE") == "42"
        assert prod.env("TOPOFORGE_TEST_UNSET", "default") == "default"
