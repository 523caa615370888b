"""Adapter protocols between the orchestrator and the cluster CLIs.

Any object with the right methods satisfies a protocol -- no inheritance
required.  Tests substitute in-memory fakes; production uses the
``clusteradm`` and ``kubectl`` implementations.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class JoinTokenProvider(Protocol):
    def join_command(self) -> str:
        """Return the ``clusteradm join ...`` line issued by the hub.

        Raises ``TokenGenerationError``.
        """
        ...


@runtime_checkable
class ClusterJoiner(Protocol):
    def join(self, join_command: str, cluster_name: str, kubeconfig_path: str) -> str:
        """Run the join command against the managed cluster; return its output.

        Raises ``JoinError``.
        """
        ...


@runtime_checkable
class CSRApprover(Protocol):
    def approve(self, cluster_name: str) -> list[str]:
        """Approve pending CSRs for *cluster_name*; return approved names.

        Raises ``CSRApprovalError``.
        """
        ...


@runtime_checkable
class ManagedClusterChecker(Protocol):
    def exists(self, cluster_name: str) -> bool:
        """Whether a ManagedCluster resource exists on the hub."""
        ...

    def verify(self, cluster_name: str) -> None:
        """Raise ``VerificationError`` unless the cluster is available."""
        ...

    def delete(self, cluster_name: str) -> None:
        """Delete the ManagedCluster resource; raises ``RemovalError``."""
        ...
