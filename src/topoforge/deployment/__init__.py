"""Planning, image building and manifest deployment."""

from .base import BaseDeployer
from .deployer import (
    DeployReport,
    DiffReport,
    EntryResult,
    ManifestChange,
    ManifestDeployer,
)
from .image_builder import BuildOutcome, BuildReport, ImageBuilder
from .images import ImageResolver
from .pipeline import Pipeline, PipelineReport
from .planner import Planner
from .secret_manager import SecretManager, is_placeholder
from .shell_commands import ShellCommands
from .tls_manager import TlsManager

__all__ = [
    "BaseDeployer",
    "Pipeline",
    "PipelineReport",
    "Planner",
    "ImageResolver",
    "ImageBuilder",
    "BuildOutcome",
    "BuildReport",
    "ManifestDeployer",
    "DeployReport",
    "DiffReport",
    "EntryResult",
    "ManifestChange",
    "SecretManager",
    "TlsManager",
    "ShellCommands",
    "is_placeholder",
]
