"""Exception hierarchy for cluster onboarding and detachment.

Synchronous errors (``ValidationError`` and ``NotFoundError`` raised while
resolving a local kubeconfig) are surfaced to the HTTP caller.  Everything
under ``WorkflowError`` is raised inside an asynchronous workflow and is
only ever reported through the status store and the event log.
"""

from __future__ import annotations


class ClusterOpsError(Exception):
    """Base class for all plugin errors."""


class ValidationError(ClusterOpsError):
    """A request is missing fields or carries malformed values."""


class KubeconfigError(ValidationError):
    """A kubeconfig file or payload could not be read or parsed."""


class NotFoundError(ClusterOpsError):
    """A cluster, context, or user entry does not exist."""


class PluginError(ClusterOpsError):
    """Raised for plugin lifecycle misuse (double initialize, not initialized)."""


class CommandError(ClusterOpsError):
    """An external command could not be executed at all."""


class WorkflowError(ClusterOpsError):
    """Base class for failures inside an onboarding or detachment workflow."""


class ConnectivityError(WorkflowError):
    """The target cluster API server could not be reached."""


class TokenGenerationError(WorkflowError):
    """``clusteradm get token`` failed or printed no join command."""


class JoinError(WorkflowError):
    """``clusteradm join`` exited non-zero.

    ``output`` carries the combined stdout/stderr of the join process.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class CSRApprovalError(WorkflowError):
    """Listing or approving certificate signing requests failed (non-fatal)."""


class VerificationError(WorkflowError):
    """The ManagedCluster resource is missing or not available."""


class RemovalError(WorkflowError):
    """Deleting the ManagedCluster resource failed."""


class CleanupError(WorkflowError):
    """Local artifacts for a cluster could not be removed (non-fatal)."""
