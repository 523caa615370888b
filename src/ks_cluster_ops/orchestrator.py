"""Onboarding and detachment workflows.

Drives the OCM join/detach sequence through the adapter protocols and
records every phase in the event log.  Workflows are synchronous; the
``WorkflowRunner`` runs them off the request path.

Onboarding:
    Starting -> Validating -> Validated -> Preparing -> GeneratingToken ->
    TokenGenerated -> Joining -> Joined -> ApprovingCSR ->
    (CSRApproved | Warning) -> Verifying -> Success

Detachment:
    Detaching -> Checking -> Removing -> Removed -> Cleanup -> Success

A CSR approval failure is logged as a Warning and onboarding carries on
to verification; onboarding still ends ``Onboarded`` if verification
passes.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ks_cluster_ops.errors import (
    CleanupError,
    CommandError,
    CSRApprovalError,
    NotFoundError,
    WorkflowError,
)
from ks_cluster_ops.kubeconfig.connectivity import ConnectivityValidator
from ks_cluster_ops.models import ClusterStatus, EventPhase, validate_cluster_name
from ks_cluster_ops.ocm.adapters import (
    ClusterJoiner,
    CSRApprover,
    JoinTokenProvider,
    ManagedClusterChecker,
)
from ks_cluster_ops.store.events import EventLog
from ks_cluster_ops.store.status import InMemoryStatusStore

logger = logging.getLogger(__name__)


def staged_kubeconfig_path(kubeconfig_dir: str | Path, cluster_name: str) -> Path:
    return Path(kubeconfig_dir) / f"{validate_cluster_name(cluster_name)}-kubeconfig.yaml"


def write_private_file(path: Path, data: bytes) -> None:
    """Write *data* to *path* readable only by the current user (0600)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    os.chmod(path, 0o600)


def discard_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to remove temporary kubeconfig %s: %s", path, exc)


class Orchestrator:
    """Runs the onboarding and detachment workflows for one hub."""

    def __init__(
        self,
        statuses: InMemoryStatusStore,
        events: EventLog,
        validator: ConnectivityValidator,
        token_provider: JoinTokenProvider,
        joiner: ClusterJoiner,
        csr_approver: CSRApprover,
        managed_clusters: ManagedClusterChecker,
        kubeconfig_dir: str | Path,
    ) -> None:
        self._statuses = statuses
        self._events = events
        self._validator = validator
        self._tokens = token_provider
        self._joiner = joiner
        self._csr = csr_approver
        self._clusters = managed_clusters
        self._kubeconfig_dir = Path(kubeconfig_dir)

    # ------------------------------------------------------------------
    # Task entry points (set the final status)
    # ------------------------------------------------------------------

    def run_onboarding(self, cluster_name: str, kubeconfig: bytes) -> ClusterStatus:
        """Onboard and record the terminal status. Returns that status."""
        cluster_name = validate_cluster_name(cluster_name)
        self._statuses.set(cluster_name, ClusterStatus.ONBOARDING)
        try:
            self.onboard(cluster_name, kubeconfig)
        except WorkflowError as exc:
            logger.error("Cluster '%s' onboarding failed: %s", cluster_name, exc)
            self._statuses.set(cluster_name, ClusterStatus.FAILED)
            return ClusterStatus.FAILED
        except Exception as exc:
            self._events.append(
                cluster_name, EventPhase.ERROR,
                f"Unexpected onboarding failure: {exc}",
                error=type(exc).__name__,
            )
            self._statuses.set(cluster_name, ClusterStatus.FAILED)
            raise

        self._statuses.set(cluster_name, ClusterStatus.ONBOARDED)
        logger.info("Cluster '%s' onboarded successfully", cluster_name)
        return ClusterStatus.ONBOARDED

    def run_detachment(self, cluster_name: str, force: bool = False) -> ClusterStatus | None:
        """Detach and update the store.

        Returns ``None`` when the cluster entry was removed, otherwise
        ``DetachmentFailed``.
        """
        cluster_name = validate_cluster_name(cluster_name)
        self._statuses.set(cluster_name, ClusterStatus.DETACHING)
        try:
            self.detach(cluster_name, force=force)
        except (WorkflowError, NotFoundError, CommandError) as exc:
            logger.error("Cluster '%s' detachment failed: %s", cluster_name, exc)
            self._statuses.set(cluster_name, ClusterStatus.DETACHMENT_FAILED)
            return ClusterStatus.DETACHMENT_FAILED
        except Exception as exc:
            self._events.append(
                cluster_name, EventPhase.ERROR,
                f"Unexpected detachment failure: {exc}",
                error=type(exc).__name__,
            )
            self._statuses.set(cluster_name, ClusterStatus.DETACHMENT_FAILED)
            raise

        self._statuses.delete(cluster_name)
        logger.info("Cluster '%s' detached successfully", cluster_name)
        return None

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def onboard(self, cluster_name: str, kubeconfig: bytes) -> None:
        log = self._events.append
        log(cluster_name, EventPhase.STARTING, "Beginning cluster onboarding process")

        # 1. Connectivity
        log(cluster_name, EventPhase.VALIDATING, "Validating cluster connectivity")
        self._step(
            cluster_name, "Cluster connectivity validation failed",
            self._validator.validate, kubeconfig,
        )
        log(cluster_name, EventPhase.VALIDATED, "Cluster connectivity validated successfully")

        # 2. Stage kubeconfig for clusteradm
        log(cluster_name, EventPhase.PREPARING, "Preparing cluster configuration")
        staged = staged_kubeconfig_path(self._kubeconfig_dir, cluster_name)
        try:
            write_private_file(staged, kubeconfig)
        except OSError as exc:
            self._fail(cluster_name, "Failed to save temporary kubeconfig", exc)
            raise WorkflowError(f"failed to save temporary kubeconfig: {exc}") from exc

        try:
            self._join_hub(cluster_name, staged)
        finally:
            discard_file(staged)

        log(cluster_name, EventPhase.SUCCESS, "Cluster onboarded successfully to KubeStellar")

    def _join_hub(self, cluster_name: str, staged: Path) -> None:
        log = self._events.append

        # 3. Join token
        log(cluster_name, EventPhase.GENERATING_TOKEN,
            "Generating clusteradm join token from ITS hub")
        join_command = self._step(
            cluster_name, "Failed to generate join token", self._tokens.join_command,
        )
        log(cluster_name, EventPhase.TOKEN_GENERATED, "Join token generated successfully")

        # 4. Join
        log(cluster_name, EventPhase.JOINING, "Joining cluster to OCM hub using clusteradm")
        self._step(
            cluster_name, "Failed to join cluster to hub",
            self._joiner.join, join_command, cluster_name, str(staged),
        )
        log(cluster_name, EventPhase.JOINED, "Cluster joined to OCM hub successfully")

        # 5. CSR approval (non-fatal)
        log(cluster_name, EventPhase.APPROVING_CSR,
            "Waiting for and approving Certificate Signing Request")
        try:
            approved = self._csr.approve(cluster_name)
        except CSRApprovalError as exc:
            log(cluster_name, EventPhase.WARNING,
                f"CSR approval failed, but cluster may still work: {exc}",
                error=type(exc).__name__)
        else:
            log(cluster_name, EventPhase.CSR_APPROVED,
                f"Certificate Signing Request approved successfully ({len(approved)} approved)")

        # 6. Verification
        log(cluster_name, EventPhase.VERIFYING, "Verifying cluster is properly managed")
        self._step(cluster_name, "Cluster verification failed", self._clusters.verify, cluster_name)

    def detach(self, cluster_name: str, force: bool = False) -> None:
        log = self._events.append
        log(cluster_name, EventPhase.DETACHING, "Starting cluster detachment process")

        # 1. Existence check
        log(cluster_name, EventPhase.CHECKING, "Checking cluster status in OCM hub")
        try:
            exists = self._clusters.exists(cluster_name)
        except CommandError as exc:
            if not force:
                self._fail(cluster_name, "Failed to check cluster status", exc)
                raise
            log(cluster_name, EventPhase.WARNING,
                f"Failed to check cluster status, continuing (force): {exc}",
                error=type(exc).__name__)
            exists = False

        if not exists:
            if not force:
                log(cluster_name, EventPhase.WARNING, "Cluster not found in OCM hub",
                    error=NotFoundError.__name__)
                raise NotFoundError(f"cluster {cluster_name} not found in OCM hub")
            log(cluster_name, EventPhase.WARNING,
                "Cluster not found in OCM hub, continuing (force)")

        # 2. Removal
        log(cluster_name, EventPhase.REMOVING, "Removing cluster from OCM hub")
        try:
            self._clusters.delete(cluster_name)
        except WorkflowError as exc:
            if not force:
                self._fail(cluster_name, "Failed to remove cluster from hub", exc)
                raise
            log(cluster_name, EventPhase.WARNING,
                f"Failed to remove cluster from hub, continuing (force): {exc}",
                error=type(exc).__name__)
        log(cluster_name, EventPhase.REMOVED, "Cluster removed from OCM hub")

        # 3. Local cleanup (non-fatal)
        log(cluster_name, EventPhase.CLEANUP, "Cleaning up local resources")
        try:
            self.cleanup_local_resources(cluster_name)
        except CleanupError as exc:
            log(cluster_name, EventPhase.WARNING,
                f"Failed to clean up some local resources: {exc}",
                error=type(exc).__name__)

        log(cluster_name, EventPhase.SUCCESS, "Cluster detached successfully from KubeStellar")

    def cleanup_local_resources(self, cluster_name: str) -> None:
        path = staged_kubeconfig_path(self._kubeconfig_dir, cluster_name)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise CleanupError(f"failed to remove temporary kubeconfig {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _step(self, cluster_name: str, failure: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Call a fatal step; log an Error event and re-raise on failure."""
        try:
            return fn(*args)
        except WorkflowError as exc:
            self._fail(cluster_name, failure, exc)
            raise

    def _fail(self, cluster_name: str, failure: str, exc: Exception) -> None:
        self._events.append(
            cluster_name, EventPhase.ERROR, f"{failure}: {exc}", error=type(exc).__name__,
        )
