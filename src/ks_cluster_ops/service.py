"""Cluster operations service.

Sits between the HTTP handlers and the orchestrator: validates what can
be checked synchronously, records the initial status, hands the workflow
to the runner, and builds the read-side views.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ks_cluster_ops.config import PluginConfig
from ks_cluster_ops.errors import PluginError, ValidationError
from ks_cluster_ops.kubeconfig.resolver import KubeconfigResolver
from ks_cluster_ops.models import (
    IN_FLIGHT_STATUSES,
    ClusterDetachRequest,
    ClusterOnboardRequest,
    ClusterRecord,
    ClusterStatus,
    EventPhase,
    OnboardingEvent,
    validate_cluster_name,
)
from ks_cluster_ops.orchestrator import Orchestrator
from ks_cluster_ops.store.events import EventLog
from ks_cluster_ops.store.status import InMemoryStatusStore
from ks_cluster_ops.tasks import WorkflowHandle, WorkflowRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Submission:
    """Outcome of an onboarding/detachment submission.

    ``accepted`` is False when an existing status blocked a new workflow;
    ``status`` is then that existing status.
    """

    accepted: bool
    status: ClusterStatus
    handle: WorkflowHandle | None = None


class ClusterOpsService:
    """Submits workflows and answers status queries."""

    def __init__(
        self,
        config: PluginConfig,
        statuses: InMemoryStatusStore,
        events: EventLog,
        orchestrator: Orchestrator,
        runner: WorkflowRunner,
        resolver: KubeconfigResolver,
    ) -> None:
        self._config = config
        self._statuses = statuses
        self._events = events
        self._orchestrator = orchestrator
        self._runner = runner
        self._resolver = resolver

    @property
    def runner(self) -> WorkflowRunner:
        return self._runner

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def resolve_local_kubeconfig(self, cluster_name: str) -> bytes:
        """Extract *cluster_name* from the local kubeconfig.

        Raises ``NotFoundError`` or ``KubeconfigError``.
        """
        return self._resolver.resolve_bytes(cluster_name)

    def submit_onboarding(
        self,
        request: ClusterOnboardRequest,
        kubeconfig: bytes,
    ) -> Submission:
        name = validate_cluster_name(request.name)
        if not kubeconfig:
            raise ValidationError("Kubeconfig is required")

        existing = self._statuses.set_if_absent(
            name, ClusterStatus.PENDING,
            cluster_type=request.type, labels=request.labels,
        )
        if existing is not None:
            logger.info("Cluster '%s' already tracked (status: %s)", name, existing)
            return Submission(accepted=False, status=existing)

        self._events.clear(name)
        self._events.append(
            name, EventPhase.INITIATED,
            "Onboarding process initiated by plugin API request",
        )
        handle = self._submit(
            name, "onboarding", self._orchestrator.run_onboarding, name, kubeconfig,
        )
        return Submission(accepted=True, status=ClusterStatus.PENDING, handle=handle)

    def submit_detachment(self, request: ClusterDetachRequest) -> Submission:
        name = validate_cluster_name(request.name)

        logger.info(
            "Detaching cluster: %s (force: %s, cleanup: %s, backup: %s)",
            name, request.force, request.cleanup, request.backup,
        )
        blocking = self._statuses.set_unless(
            name, ClusterStatus.DETACHING, IN_FLIGHT_STATUSES,
        )
        if blocking is not None:
            logger.info("Cluster '%s' has a workflow in progress (status: %s)", name, blocking)
            return Submission(accepted=False, status=blocking)

        handle = self._submit(
            name, "detachment", self._orchestrator.run_detachment, name, force=request.force,
        )
        return Submission(accepted=True, status=ClusterStatus.DETACHING, handle=handle)

    def _submit(
        self, name: str, kind: str, fn: Callable[..., Any], *args: Any, **kwargs: Any,
    ) -> WorkflowHandle:
        try:
            return self._runner.submit(name, kind, fn, *args, **kwargs)
        except RuntimeError as exc:
            self._statuses.delete(name)
            raise PluginError(f"cannot start {kind} for '{name}': {exc}") from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_cluster(self, cluster_name: str) -> ClusterRecord | None:
        return self._statuses.get_record(cluster_name)

    def list_clusters(self) -> list[ClusterRecord]:
        return sorted(self._statuses.records(), key=lambda r: r.name)

    def cluster_events(self, cluster_name: str) -> list[OnboardingEvent]:
        return self._events.events(cluster_name)

    def logs_endpoint(self, cluster_name: str) -> str:
        return f"{self._config.api_prefix}/logs/{cluster_name}"

    def websocket_endpoint(self, operation: str, cluster_name: str) -> str:
        return f"{self._config.ws_prefix}/{operation}?cluster={cluster_name}"
