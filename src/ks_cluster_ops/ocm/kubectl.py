"""``kubectl`` adapters for hub-side CSR approval and ManagedCluster checks."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ks_cluster_ops.errors import (
    CommandError,
    CSRApprovalError,
    RemovalError,
    VerificationError,
)
from ks_cluster_ops.ocm.commands import CommandRunner

logger = logging.getLogger(__name__)

CSR_PREFIX = "certificatesigningrequest.certificates.k8s.io/"
# Label the registration agent puts on every CSR it files for a cluster.
CLUSTER_NAME_LABEL = "open-cluster-management.io/cluster-name"
AVAILABLE_JSONPATH = (
    "jsonpath={.status.conditions[?(@.type=='ManagedClusterConditionAvailable')].status}"
)


def build_hub_args(kubectl_path: str, context: str, *args: str) -> list[str]:
    """Build a kubectl command line targeting the hub context."""
    return [kubectl_path, *args, "--context", context]


def matching_csrs(output: str, cluster_name: str) -> list[str]:
    """Pick CSR names out of ``kubectl get csr -o name`` output for a cluster.

    Registration CSRs are named ``<cluster>-<suffix>``; anything else is
    left alone.
    """
    prefix = f"{cluster_name}-"
    names: list[str] = []
    for line in output.splitlines():
        name = line.strip().removeprefix(CSR_PREFIX)
        if name.startswith(prefix):
            names.append(name)
    return names


class KubectlCSRApprover:
    """Approves the CSRs a joining cluster files against the hub.

    Waits ``settle_seconds`` first so the agent on the managed cluster has
    time to create its CSR.
    """

    def __init__(
        self,
        context: str,
        runner: CommandRunner | None = None,
        kubectl_path: str = "kubectl",
        settle_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._context = context
        self._runner = runner or CommandRunner()
        self._kubectl = kubectl_path
        self._settle = settle_seconds
        self._sleep = sleep

    def approve(self, cluster_name: str) -> list[str]:
        if self._settle > 0:
            self._sleep(self._settle)

        try:
            listing = self._runner.run(
                build_hub_args(
                    self._kubectl, self._context, "get", "csr",
                    "-l", f"{CLUSTER_NAME_LABEL}={cluster_name}", "-o", "name",
                ),
            )
        except CommandError as exc:
            raise CSRApprovalError(f"failed to get CSRs: {exc}") from exc
        if not listing.ok:
            raise CSRApprovalError(f"failed to get CSRs: {listing.output}")

        approved: list[str] = []
        for csr in matching_csrs(listing.stdout, cluster_name):
            try:
                result = self._runner.run(
                    build_hub_args(self._kubectl, self._context, "certificate", "approve", csr),
                )
            except CommandError as exc:
                raise CSRApprovalError(f"failed to approve CSR {csr}: {exc}") from exc
            if not result.ok:
                raise CSRApprovalError(f"failed to approve CSR {csr}: {result.output}")
            logger.info("Approved CSR: %s", csr)
            approved.append(csr)
        return approved


class KubectlManagedClusterClient:
    """Reads and deletes ``managedcluster`` resources on the hub."""

    def __init__(
        self,
        context: str,
        runner: CommandRunner | None = None,
        kubectl_path: str = "kubectl",
    ) -> None:
        self._context = context
        self._runner = runner or CommandRunner()
        self._kubectl = kubectl_path

    def exists(self, cluster_name: str) -> bool:
        result = self._runner.run(
            build_hub_args(self._kubectl, self._context, "get", "managedcluster", cluster_name),
        )
        return result.ok

    def verify(self, cluster_name: str) -> None:
        try:
            if not self.exists(cluster_name):
                raise VerificationError("managed cluster resource not found")
            result = self._runner.run(
                build_hub_args(
                    self._kubectl, self._context,
                    "get", "managedcluster", cluster_name, "-o", AVAILABLE_JSONPATH,
                ),
            )
        except CommandError as exc:
            raise VerificationError(str(exc)) from exc

        if not result.ok:
            raise VerificationError(f"failed to get cluster status: {result.output}")
        if result.stdout.strip() != "True":
            raise VerificationError("cluster is not in available state")

    def delete(self, cluster_name: str) -> None:
        try:
            result = self._runner.run(
                build_hub_args(self._kubectl, self._context, "delete", "managedcluster", cluster_name),
                merge_stderr=True,
            )
        except CommandError as exc:
            raise RemovalError(str(exc)) from exc
        if not result.ok:
            raise RemovalError(
                f"failed to delete managed cluster, output: {result.stdout.strip()}"
            )
