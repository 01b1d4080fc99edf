"""Shared fixtures: a small three-service project and plan entry factories."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import pytest

from topoforge.deployment import ImageResolver, Planner
from topoforge.plan import DeploymentPlan, PlanEntry
from topoforge.topology import ContextProvider, ProjectConfig, TopologyResolver

SAMPLE_CONFIG: dict[str, Any] = {
    "project": "shop",
    "regions": {"us": "example.com"},
    "namespaces": {
        "prod": {"region": "us", "log_level": "info"},
        "staging": {"region": "us", "log_level": "debug"},
    },
    "clusters": {
        "main": {"context": "prod-cluster", "namespaces": ["prod", "staging"]},
    },
    "images": {"registry": "ghcr.io/acme", "tag_strategy": "1.0.0"},
    "services": {
        "api": {
            "namespace": "prod",
            "subdomain": "api",
            "port": 8080,
            "protocol": "http",
            "needs": ["db"],
            "build": {"context": "api"},
            "env": {"DB_PASSWORD": "secret://db/password", "LOG_LEVEL": "info"},
        },
        "web": {
            "image": "nginx:1.27",
            "port": 80,
            "protocol": "http",
            "needs": [{"service": "api", "port": 8080, "protocol": "http"}],
        },
        "db": {
            "image": "postgres:16",
            "port": 5432,
            "protocol": "tcp",
            "stateful": True,
        },
    },
    "secrets": {"db": {"password": "s3cr3t"}},
}


@pytest.fixture
def sample_config_data() -> dict[str, Any]:
    """Raw config for the sample project (a fresh copy per test)."""
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def make_config(sample_config_data: dict[str, Any]) -> Callable[..., ProjectConfig]:
    """Build a ProjectConfig from the sample data with top-level overrides."""

    def _make(**overrides: Any) -> ProjectConfig:
        return ProjectConfig.model_validate({**sample_config_data, **overrides})

    return _make


@pytest.fixture
def sample_config(make_config: Callable[..., ProjectConfig]) -> ProjectConfig:
    return make_config()


@pytest.fixture
def planner(sample_config: ProjectConfig) -> Planner:
    """Planner for the sample project with a literal image tag."""
    topology = TopologyResolver(sample_config).resolve()
    contexts = ContextProvider(sample_config, topology)
    images = ImageResolver(sample_config.images, sample_config.project)
    return Planner(sample_config, topology, contexts, images)


@pytest.fixture
def make_entry() -> Callable[..., PlanEntry]:
    """Build a PlanEntry for ``prod/api`` with field overrides."""

    def _make(**overrides: Any) -> PlanEntry:
        values: dict[str, Any] = {
            "project": "shop",
            "namespace": "prod",
            "service": "api",
            "service_name": "shop-api",
            "cluster": "main",
            "context": "prod-cluster",
            "image": "ghcr.io/acme/shop-api:1.0.0",
        }
        values.update(overrides)
        return PlanEntry(**values)

    return _make


def single_entry_plan(entry: PlanEntry) -> DeploymentPlan:
    return DeploymentPlan(
        entries=(entry,), services=(entry.service,), namespaces=(entry.namespace,)
    )


@pytest.fixture
def plan_for() -> Callable[[PlanEntry], DeploymentPlan]:
    """Wrap one entry in a DeploymentPlan."""
    return single_entry_plan
