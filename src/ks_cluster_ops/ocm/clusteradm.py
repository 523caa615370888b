"""``clusteradm`` adapters: join-token generation and cluster join."""

from __future__ import annotations

import logging
import shlex

from ks_cluster_ops.errors import CommandError, JoinError, TokenGenerationError
from ks_cluster_ops.ocm.commands import CommandRunner

logger = logging.getLogger(__name__)

JOIN_MARKER = "clusteradm join"

# Flags the plugin always supplies itself.
_OVERRIDDEN_FLAGS = ("--cluster-name", "--kubeconfig")


def parse_join_command(output: str) -> str | None:
    """Return the first line of *output* that holds a join command."""
    for line in output.splitlines():
        if JOIN_MARKER in line:
            return line.strip()
    return None


def build_join_args(
    join_command: str,
    cluster_name: str,
    kubeconfig_path: str,
    clusteradm_path: str = "clusteradm",
) -> list[str]:
    """Turn a hub-issued join line into an argv for this managed cluster.

    Any ``--cluster-name``/``--kubeconfig`` already in the line (clusteradm
    prints a ``<cluster_name>`` placeholder) is replaced.
    """
    if JOIN_MARKER not in join_command:
        raise JoinError("invalid join token format")

    try:
        parts = shlex.split(join_command)
    except ValueError as exc:
        raise JoinError(f"invalid join token format: {exc}") from exc
    # Drop any shell prompt or prefix before the binary name.
    for start, part in enumerate(parts[:-1]):
        if part.endswith("clusteradm") and parts[start + 1] == "join":
            break
    else:
        raise JoinError("invalid join token format")
    parts = parts[start:]

    args: list[str] = [clusteradm_path]
    skip_next = False
    for part in parts[1:]:
        if skip_next:
            skip_next = False
            continue
        if part in _OVERRIDDEN_FLAGS:
            skip_next = True
            continue
        if part.startswith(tuple(f"{flag}=" for flag in _OVERRIDDEN_FLAGS)):
            continue
        args.append(part)

    args.extend(["--cluster-name", cluster_name, "--kubeconfig", kubeconfig_path])
    return args


class ClusteradmTokenProvider:
    """Generates join commands with ``clusteradm get token`` on the hub context."""

    def __init__(
        self,
        context: str,
        runner: CommandRunner | None = None,
        clusteradm_path: str = "clusteradm",
    ) -> None:
        self._context = context
        self._runner = runner or CommandRunner()
        self._clusteradm = clusteradm_path

    def join_command(self) -> str:
        try:
            result = self._runner.run(
                [self._clusteradm, "get", "token", "--context", self._context],
            )
        except CommandError as exc:
            raise TokenGenerationError(str(exc)) from exc
        if not result.ok:
            raise TokenGenerationError(
                f"clusteradm get token failed (exit {result.returncode}): {result.output}"
            )

        command = parse_join_command(result.stdout)
        if command is None:
            raise TokenGenerationError(
                "failed to parse join token from clusteradm output"
            )
        return command


class ClusteradmJoiner:
    """Runs the hub-issued ``clusteradm join`` against a managed cluster."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        clusteradm_path: str = "clusteradm",
    ) -> None:
        self._runner = runner or CommandRunner()
        self._clusteradm = clusteradm_path

    def join(self, join_command: str, cluster_name: str, kubeconfig_path: str) -> str:
        args = build_join_args(
            join_command, cluster_name, kubeconfig_path,
            clusteradm_path=self._clusteradm,
        )
        try:
            result = self._runner.run(args, merge_stderr=True)
        except CommandError as exc:
            raise JoinError(str(exc)) from exc
        if not result.ok:
            raise JoinError(
                f"clusteradm join failed (exit {result.returncode}), output: {result.stdout}",
                output=result.stdout,
            )
        logger.info("clusteradm join output for %s: %s", cluster_name, result.stdout.strip())
        return result.stdout
