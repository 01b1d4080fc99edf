"""Secret validation for Kubernetes deployments.

Declared secret data often carries placeholders (``change-me``, ``<token>``,
``${DB_PASSWORD}``) in files that are committed to version control. Such a
value is only acceptable when the cluster already holds a real value for that
key; the live value is then reused so deploying never overwrites a real
secret with a placeholder.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

from topoforge.errors import SecretValidationError

if TYPE_CHECKING:
    from topoforge.infra.k8s import KubernetesController
    from topoforge.plan import PlanEntry

PLACEHOLDER_VALUES = frozenset({"change-me", "changeme", "todo", "placeholder"})
PLACEHOLDER_PATTERNS = (
    re.compile(r"^<.*>$"),
    re.compile(r"^\$\{.*\}$"),
)


def is_placeholder(value: str | None) -> bool:
    """Check if a secret value is empty or a placeholder.

    Example:
        >>> is_placeholder("change-me")
        True
        >>> is_placeholder("s3cr3t")
        False
    """
    if value is None:
        return True
    stripped = value.strip()
    if not stripped:
        return True
    if stripped.lower() in PLACEHOLDER_VALUES:
        return True
    return any(pattern.match(stripped) for pattern in PLACEHOLDER_PATTERNS)


class SecretManager:
    """Validates declared secret values before they are applied.

    Handles:
    - Detecting empty and placeholder values
    - Reusing live cluster values for placeholder keys
    - Rejecting entries whose placeholders have no live value
    """

    def __init__(self, controller: KubernetesController) -> None:
        """Initialize the secret manager.

        Args:
            controller: Cluster controller used to read live secrets
        """
        self.controller = controller

    async def validate(self, entry: PlanEntry) -> dict[str, dict[str, str]]:
        """Return the entry's secret data with placeholders replaced by live values.

        Args:
            entry: Plan entry whose ``secrets`` are checked

        Returns:
            Secret name to data, safe to apply

        Raises:
            SecretValidationError: A placeholder key has no live value in the cluster
        """
        resolved: dict[str, dict[str, str]] = {}
        for name, data in entry.secrets.items():
            placeholders = sorted(key for key, value in data.items() if is_placeholder(value))
            if not placeholders:
                resolved[name] = dict(data)
                continue

            live = await self.controller.get_secret_data(name, entry.namespace) or {}
            missing = [key for key in placeholders if not live.get(key)]
            if missing:
                raise SecretValidationError(name, entry.namespace, missing)

            logger.warning(
                f"Secret {entry.namespace}/{name}: reusing cluster values for "
                f"placeholder keys {', '.join(placeholders)}"
            )
            resolved[name] = {
                key: live[key] if key in placeholders else value
                for key, value in data.items()
            }
        return resolved
