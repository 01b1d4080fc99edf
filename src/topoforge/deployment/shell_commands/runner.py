"""Subprocess execution shared by the docker, git and openssl wrappers."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

from .types import CommandResult


class CommandRunner:
    """Runs external tools from the project root and captures their output.

    Failures never raise: a non-zero exit becomes an unsuccessful
    ``CommandResult`` and a missing executable is reported as exit code 127,
    leaving it to the caller to pick the right domain error.
    """

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        input_data: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run ``cmd`` and return its captured result.

        Args:
            cmd: Executable and arguments
            cwd: Working directory, the project root when omitted
            input_data: Text written to stdin (registry passwords go here,
                never on the command line)
            env: Variables layered over the current process environment
        """
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            completed = subprocess.run(
                list(cmd),
                cwd=cwd or self.project_root,
                capture_output=True,
                text=True,
                input=input_data,
                env={**os.environ, **env} if env else None,
            )
        except FileNotFoundError as e:
            logger.debug(f"{cmd[0]} is not installed")
            return CommandResult(success=False, stderr=str(e), returncode=127)

        return CommandResult(
            success=completed.returncode == 0,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode,
        )
