"""Project configuration loading.

Two formats are accepted:

- YAML (``.yaml``/``.yml``): environment placeholders are substituted before
  parsing, then the document is validated as a ``ProjectConfig``.
- Python (``.py``): the module is executed and its ``config`` attribute (a
  ``ProjectConfig`` or a mapping) is used. This is the format for callable
  ``env``, ``secrets`` and ``services`` blocks.

The ``.env`` file next to the config is loaded first (existing environment
variables win).
"""

from __future__ import annotations

import importlib.util
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.errors import ConfigurationError, ForgeError
from topoforge.topology.project import ProjectConfig

from .utils import substitute_env_vars

PYTHON_SUFFIXES = (".py",)
YAML_SUFFIXES = (".yaml", ".yml")


def find_config(
    start: Path | None = None, constants: DeploymentConstants | None = None
) -> Path:
    """Locate the project config by walking up from ``start``.

    Raises:
        ConfigurationError: No config file was found
    """
    constants = constants or DEFAULT_CONSTANTS
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / constants.CONFIG_FILE
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        f"No {constants.CONFIG_FILE} found in {current} or its parents",
        details="Pass the config file explicitly with --config",
    )


def load_config(file_path: Path, *, load_env: bool = True) -> ProjectConfig:
    """Load and validate a project config file.

    Args:
        file_path: YAML or Python config file
        load_env: Load the ``.env`` file next to the config first

    Returns:
        Validated ProjectConfig

    Raises:
        ConfigurationError: The file is missing, unparsable or invalid
    """
    if not file_path.is_file():
        raise ConfigurationError(f"Config file not found: {file_path}")

    if load_env:
        env_file = file_path.parent / DEFAULT_CONSTANTS.ENV_FILE
        if env_file.exists():
            logger.debug(f"Loading environment from {env_file}")
            load_dotenv(env_file, override=False)

    logger.info(f"Loading configuration from {file_path}")
    if file_path.suffix in PYTHON_SUFFIXES:
        raw = _load_python(file_path)
    elif file_path.suffix in YAML_SUFFIXES:
        raw = _load_yaml(file_path)
    else:
        raise ConfigurationError(
            f"Unsupported config format: {file_path.name}",
            details="Use a .yaml, .yml or .py file",
        )

    if isinstance(raw, ProjectConfig):
        return raw
    return validate_config(raw, source=file_path)


def validate_config(raw: Mapping[str, Any], *, source: Path | str = "<config>") -> ProjectConfig:
    """Validate raw config data, converting pydantic errors to ConfigurationError."""
    try:
        return ProjectConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}",
            details=_format_validation_error(e),
        ) from e
    except ForgeError as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}: {e.message}", details=e.details
        ) from e


def _load_yaml(file_path: Path) -> Any:
    content = file_path.read_text(encoding="utf-8")
    try:
        content = substitute_env_vars(content)
    except ValueError as e:
        raise ConfigurationError(f"Error substituting environment in {file_path}: {e}") from e

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML in {file_path}", details=str(e)) from e

    if not isinstance(loaded, Mapping):
        raise ConfigurationError(f"Invalid YAML structure in {file_path}: expected a mapping")
    return loaded


def _load_python(file_path: Path) -> Any:
    spec = importlib.util.spec_from_file_location(f"topoforge_config_{file_path.stem}", file_path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot import config module {file_path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except ForgeError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Error executing {file_path}", details=str(e)) from e

    config = getattr(module, "config", None)
    if config is None:
        raise ConfigurationError(
            f"{file_path} does not define a 'config' variable",
            details="Assign a ProjectConfig or a dict to a module-level 'config'",
        )
    if not isinstance(config, (ProjectConfig, Mapping)):
        raise ConfigurationError(
            f"'config' in {file_path} must be a ProjectConfig or a mapping, "
            f"got {type(config).__name__}"
        )
    return config


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"{location}: {item['msg']}")
    return "\n".join(lines)
