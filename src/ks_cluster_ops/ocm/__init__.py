"""Adapters for the OCM hub tooling (``clusteradm`` and ``kubectl``)."""

from ks_cluster_ops.ocm.adapters import (
    ClusterJoiner,
    CSRApprover,
    JoinTokenProvider,
    ManagedClusterChecker,
)
from ks_cluster_ops.ocm.clusteradm import ClusteradmJoiner, ClusteradmTokenProvider
from ks_cluster_ops.ocm.commands import CommandResult, CommandRunner
from ks_cluster_ops.ocm.kubectl import KubectlCSRApprover, KubectlManagedClusterClient

__all__ = [
    "CSRApprover",
    "ClusterJoiner",
    "ClusteradmJoiner",
    "ClusteradmTokenProvider",
    "CommandResult",
    "CommandRunner",
    "JoinTokenProvider",
    "KubectlCSRApprover",
    "KubectlManagedClusterClient",
    "ManagedClusterChecker",
]
