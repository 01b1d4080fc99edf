"""Data types for shell command results.

Note: CommandResult is re-exported from topoforge.infra.k8s.controller so the
shell and cluster layers share one result type.
"""

from __future__ import annotations

from dataclasses import dataclass

from topoforge.infra.k8s.controller import CommandResult

__all__ = [
    "CommandResult",
    "GitMetadata",
]


@dataclass(frozen=True)
class GitMetadata:
    """Git repository facts used to derive image tags.

    Attributes:
        branch: Current branch name ("unknown" when git is unavailable)
        sha: Full commit SHA of HEAD (a random pseudo-sha on fallback)
        short_sha: Abbreviated commit SHA
        tag: Most recent tag reachable from HEAD, if any
        has_uncommitted_changes: Whether the working tree is dirty
        is_fallback: True when git could not be queried
    """

    branch: str
    sha: str
    short_sha: str
    tag: str | None = None
    has_uncommitted_changes: bool = False
    is_fallback: bool = False
