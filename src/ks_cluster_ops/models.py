"""Core data models for the cluster operations plugin.

Defines the schemas for:
- Cluster lifecycle status (coarse per-cluster state)
- Event phases and onboarding events (fine-grained progress log)
- Onboarding / detachment requests
- Plugin metadata advertised to the host
"""

from __future__ import annotations

import enum
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ks_cluster_ops.errors import ValidationError

# --- Enums ---


class ClusterStatus(enum.StrEnum):
    PENDING = "Pending"
    ONBOARDING = "Onboarding"
    ONBOARDED = "Onboarded"
    FAILED = "Failed"
    DETACHING = "Detaching"
    DETACHMENT_FAILED = "DetachmentFailed"


# Statuses during which a workflow is still running for the cluster.
IN_FLIGHT_STATUSES = frozenset({
    ClusterStatus.PENDING,
    ClusterStatus.ONBOARDING,
    ClusterStatus.DETACHING,
})


class EventPhase(enum.StrEnum):
    # onboarding
    INITIATED = "Initiated"
    STARTING = "Starting"
    VALIDATING = "Validating"
    VALIDATED = "Validated"
    PREPARING = "Preparing"
    GENERATING_TOKEN = "GeneratingToken"
    TOKEN_GENERATED = "TokenGenerated"
    JOINING = "Joining"
    JOINED = "Joined"
    APPROVING_CSR = "ApprovingCSR"
    CSR_APPROVED = "CSRApproved"
    VERIFYING = "Verifying"
    # detachment
    DETACHING = "Detaching"
    CHECKING = "Checking"
    REMOVING = "Removing"
    REMOVED = "Removed"
    CLEANUP = "Cleanup"
    # shared
    WARNING = "Warning"
    SUCCESS = "Success"
    ERROR = "Error"


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Events ---


class OnboardingEvent(WireModel):
    """A single immutable entry in a cluster's event log."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    cluster_name: str
    status: str
    message: str
    error: str | None = None


# --- Cluster records ---


class ClusterRecord(BaseModel):
    """Status store entry for a cluster."""

    name: str
    status: ClusterStatus
    type: str = "workload"
    labels: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


# --- Requests ---

# ManagedCluster names are DNS-1123 subdomains.
CLUSTER_NAME_MAX_LENGTH = 253
_CLUSTER_NAME_RE = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$",
)


def validate_cluster_name(name: str) -> str:
    """Return *name* stripped, or raise ``ValidationError``.

    The name ends up in kubectl argv and in a file name under
    ``kubeconfig_dir``, so only DNS-1123 subdomains are accepted.
    """
    name = name.strip()
    if not name:
        raise ValidationError("Cluster name is required")
    if len(name) > CLUSTER_NAME_MAX_LENGTH or not _CLUSTER_NAME_RE.match(name):
        raise ValidationError(
            f"Invalid cluster name '{name}': must be a lowercase RFC 1123 subdomain"
        )
    return name



class ClusterOnboardRequest(BaseModel):
    """JSON body for ``POST /onboard``.

    An empty ``kubeconfig`` means "resolve it from the local kubeconfig".
    """

    name: str = Field(
        default="", validation_alias=AliasChoices("name", "clusterName"),
    )
    kubeconfig: str = ""
    type: str = "workload"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class ClusterDetachRequest(BaseModel):
    """JSON body for ``POST /detach``."""

    name: str = Field(validation_alias=AliasChoices("name", "clusterName"))
    force: bool = False
    cleanup: bool = False
    backup: bool = False


# --- Plugin metadata ---


class EndpointConfig(BaseModel):
    path: str
    method: str
    handler: str
    description: str = ""


class PluginMetadata(BaseModel):
    """Descriptor the host uses to register the plugin."""

    id: str
    name: str
    version: str
    description: str
    author: str
    endpoints: list[EndpointConfig] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    configuration: dict[str, Any] = Field(default_factory=dict)
