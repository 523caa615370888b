"""Thin wrapper over ``subprocess.run`` for the cluster CLIs."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

from ks_cluster_ops.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command invocation."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for error messages."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part).strip()


class CommandRunner:
    """Runs a command to completion and captures its text output.

    Non-zero exit codes are returned, not raised; callers decide what a
    failure means.  A binary that cannot be started raises ``CommandError``.
    """

    def run(self, args: list[str], *, merge_stderr: bool = False) -> CommandResult:
        logger.debug("Running: %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise CommandError(f"failed to execute {args[0]}: {exc}") from exc
        return CommandResult(
            args=list(args),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
