"""Topology declaration, resolution and namespace contexts.

Example:
    from topoforge.topology import ContextProvider, TopologyResolver

    topology = TopologyResolver(config).resolve()
    ctx = ContextProvider(config, topology).for_namespace("prod")
    ctx.url("api")
"""

from .context import ContextProvider, NamespaceContext
from .forms import DeclarativeForm, HelperForm, TemplateForm
from .models import (
    ConfigMapRef,
    Dependency,
    HostHelper,
    HostRef,
    IngressRule,
    ListenEndpoint,
    PublicEndpoint,
    SecretRef,
    TlsConfig,
)
from .project import ProjectConfig
from .resolver import ResolvedService, ResolvedTopology, TopologyResolver

__all__ = [
    # Declaration
    "ProjectConfig",
    "DeclarativeForm",
    "TemplateForm",
    "HelperForm",
    "HostHelper",
    "HostRef",
    "ListenEndpoint",
    "Dependency",
    "PublicEndpoint",
    "TlsConfig",
    "IngressRule",
    "SecretRef",
    "ConfigMapRef",
    # Resolution
    "TopologyResolver",
    "ResolvedTopology",
    "ResolvedService",
    "ContextProvider",
    "NamespaceContext",
]
