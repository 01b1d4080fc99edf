"""Project configuration loading."""

from .loader import find_config, load_config, validate_config
from .utils import substitute_env_vars

__all__ = ["find_config", "load_config", "validate_config", "substitute_env_vars"]
