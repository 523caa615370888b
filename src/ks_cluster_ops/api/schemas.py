"""Pydantic response schemas for the plugin API.

Keys go out camelCase (``lastSeen``, ``logsEndpoint``) to match what the
host UI reads.
"""

from __future__ import annotations

from datetime import datetime

from ks_cluster_ops.models import ClusterRecord, ClusterStatus, OnboardingEvent, WireModel

# --- Submissions ---


class OperationAck(WireModel):
    """Acknowledgement for ``/onboard`` and ``/detach``.

    The endpoint fields are omitted when no workflow was started.
    """

    message: str
    status: ClusterStatus
    logs_endpoint: str | None = None
    websocket_endpoint: str | None = None


# --- Status ---


class ClusterSummary(WireModel):
    name: str
    status: ClusterStatus
    last_seen: datetime


class ClusterStatusResponse(WireModel):
    cluster: ClusterSummary
    events: list[OnboardingEvent]


# --- Listing ---


class ClusterListEntry(WireModel):
    name: str
    status: ClusterStatus
    type: str
    onboarded_at: datetime

    @classmethod
    def from_record(cls, record: ClusterRecord) -> ClusterListEntry:
        return cls(
            name=record.name,
            status=record.status,
            type=record.type,
            onboarded_at=record.created_at,
        )


class ClusterListResponse(WireModel):
    clusters: list[ClusterListEntry]
    total: int
    connected: int
    disconnected: int

    @classmethod
    def from_records(cls, records: list[ClusterRecord]) -> ClusterListResponse:
        connected = sum(1 for r in records if r.status == ClusterStatus.ONBOARDED)
        return cls(
            clusters=[ClusterListEntry.from_record(r) for r in records],
            total=len(records),
            connected=connected,
            disconnected=len(records) - connected,
        )


# --- Events ---


class ClusterEventsResponse(WireModel):
    cluster_name: str
    events: list[OnboardingEvent]
    count: int


# --- Health ---


class HealthResponse(WireModel):
    status: str = "healthy"
    timestamp: datetime
    version: str
    initialized: bool
