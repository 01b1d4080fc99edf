"""topoforge: compile declarative service topologies into Kubernetes deployments.

Example:
    from topoforge import Pipeline, load_config

    config = load_config(Path("topoforge.yaml"))
    report = Pipeline(console, Path("."), config).run("diff", namespace="prod")
"""

from .config import load_config
from .deployment import Pipeline, Planner
from .errors import ForgeError
from .manifests import ManifestBuilder
from .topology import ContextProvider, ProjectConfig, TopologyResolver

__version__ = "0.1.0"

__all__ = [
    "load_config",
    "ProjectConfig",
    "TopologyResolver",
    "ContextProvider",
    "ManifestBuilder",
    "Planner",
    "Pipeline",
    "ForgeError",
]
