"""KubeStellar cluster operations: onboard and detach clusters on an OCM hub."""

__version__ = "1.1.0"

from ks_cluster_ops.config import PluginConfig, load_config
from ks_cluster_ops.errors import (
    ClusterOpsError,
    NotFoundError,
    PluginError,
    ValidationError,
    WorkflowError,
)
from ks_cluster_ops.models import (
    ClusterDetachRequest,
    ClusterOnboardRequest,
    ClusterStatus,
    EventPhase,
    OnboardingEvent,
    PluginMetadata,
)
from ks_cluster_ops.plugin import ClusterOpsPlugin, new_plugin

__all__ = [
    "ClusterDetachRequest",
    "ClusterOnboardRequest",
    "ClusterOpsError",
    "ClusterOpsPlugin",
    "ClusterStatus",
    "EventPhase",
    "load_config",
    "new_plugin",
    "NotFoundError",
    "OnboardingEvent",
    "PluginConfig",
    "PluginError",
    "PluginMetadata",
    "ValidationError",
    "WorkflowError",
    "__version__",
]
