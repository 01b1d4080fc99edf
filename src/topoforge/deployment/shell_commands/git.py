"""Git command abstractions.

This module provides commands for Git repository operations, used for
deriving image tags and for change-based service selection.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from loguru import logger

from .types import GitMetadata

if TYPE_CHECKING:
    from .runner import CommandRunner


class GitCommands:
    """Git-related shell commands.

    Provides operations for:
    - Commit, branch and tag metadata
    - Working tree cleanliness checks
    - Files changed since a reference
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Git commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def _capture(self, *args: str) -> str | None:
        result = self._runner.run(["git", *args])
        return result.stdout.strip() if result.success else None

    def get_metadata(self) -> GitMetadata:
        """Get branch, commit, tag and dirty state of the repository.

        When git is unavailable (no binary or not a repository) a random
        pseudo-sha is returned so image tags remain unique.

        Returns:
            GitMetadata for HEAD

        Example:
            >>> meta = git.get_metadata()
            >>> meta.short_sha
            'a1b2c3d'
        """
        branch = self._capture("rev-parse", "--abbrev-ref", "HEAD")
        sha = self._capture("rev-parse", "HEAD")
        short_sha = self._capture("rev-parse", "--short", "HEAD")
        status = self._capture("status", "--porcelain")

        if branch is None or not sha or short_sha is None or status is None:
            return self._fallback_metadata()

        # No tags is not an error
        tag = self._capture("describe", "--tags", "--abbrev=0") or None

        return GitMetadata(
            branch=branch,
            sha=sha,
            short_sha=short_sha,
            tag=tag,
            has_uncommitted_changes=bool(status),
        )

    @staticmethod
    def _fallback_metadata() -> GitMetadata:
        fallback_id = uuid.uuid4().hex
        sha = (fallback_id + fallback_id)[:40]
        short_sha = sha[:7]
        logger.warning(
            f"Failed to detect git information; using fallback metadata ({short_sha})"
        )
        return GitMetadata(
            branch="unknown",
            sha=sha,
            short_sha=short_sha,
            is_fallback=True,
        )

    def changed_files_since(self, ref: str) -> list[str]:
        """List files changed between ``ref`` and the working tree.

        Args:
            ref: Any git revision (branch, tag or sha)

        Returns:
            Repository-relative paths, empty if git fails
        """
        output = self._capture("diff", "--name-only", ref)
        if output is None:
            logger.warning(f"Could not list changes since {ref}")
            return []
        return [line for line in output.splitlines() if line]
