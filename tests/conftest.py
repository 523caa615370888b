"""Shared fixtures: in-memory fakes for the hub-side adapters."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest
import yaml

from ks_cluster_ops.config import PluginConfig
from ks_cluster_ops.errors import (
    ConnectivityError,
    CSRApprovalError,
    RemovalError,
    VerificationError,
)
from ks_cluster_ops.orchestrator import Orchestrator
from ks_cluster_ops.store.events import EventLog
from ks_cluster_ops.store.status import InMemoryStatusStore

JOIN_LINE = (
    "clusteradm join --hub-token abc.def --hub-apiserver https://hub:6443 "
    "--cluster-name <cluster_name>"
)


def make_kubeconfig(*triples: tuple[str, str, str], current: str | None = None) -> dict[str, Any]:
    """Build a kubeconfig dict from (context, cluster, user) triples."""
    clusters = {}
    users = {}
    contexts = []
    for ctx, cluster, user in triples:
        clusters[cluster] = {
            "name": cluster,
            "cluster": {"server": f"https://{cluster}:6443", "certificate-authority": "ca.crt"},
        }
        users[user] = {"name": user, "user": {"token": f"token-{user}"}}
        contexts.append({"name": ctx, "context": {"cluster": cluster, "user": user}})
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": list(clusters.values()),
        "users": list(users.values()),
        "contexts": contexts,
        "current-context": current or (contexts[0]["name"] if contexts else ""),
    }


def kubeconfig_bytes(name: str = "prod-1") -> bytes:
    return yaml.safe_dump(make_kubeconfig((name, name, f"{name}-admin"))).encode()


# ------------------------------------------------------------------
# Fake adapters
# ------------------------------------------------------------------


class FakeValidator:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[bytes] = []

    def validate(self, kubeconfig: bytes) -> str:
        self.calls.append(kubeconfig)
        if self.fail:
            raise ConnectivityError("failed to connect to cluster: connection refused")
        return "v1.29.0"


class FakeTokenProvider:
    def __init__(self, command: str = JOIN_LINE) -> None:
        self.command = command
        self.calls = 0

    def join_command(self) -> str:
        self.calls += 1
        return self.command


class FakeJoiner:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.staged_contents: list[bytes] = []

    def join(self, join_command: str, cluster_name: str, kubeconfig_path: str) -> str:
        self.calls.append((join_command, cluster_name, kubeconfig_path))
        self.staged_contents.append(Path(kubeconfig_path).read_bytes())
        return "joined"


class FakeCSRApprover:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    def approve(self, cluster_name: str) -> list[str]:
        self.calls.append(cluster_name)
        if self.fail:
            raise CSRApprovalError("failed to get CSRs: forbidden")
        return [f"csr-{cluster_name}"]


class FakeManagedClusters:
    """ManagedCluster resources on a fake hub."""

    def __init__(
        self,
        present: set[str] | None = None,
        available: bool = True,
        fail_delete: bool = False,
    ) -> None:
        self.present = set(present or ())
        self.available = available
        self.fail_delete = fail_delete
        self.deleted: list[str] = []

    def exists(self, cluster_name: str) -> bool:
        return cluster_name in self.present

    def verify(self, cluster_name: str) -> None:
        if not self.available:
            raise VerificationError("cluster is not in available state")

    def delete(self, cluster_name: str) -> None:
        if self.fail_delete:
            raise RemovalError("failed to delete managed cluster, output: forbidden")
        self.present.discard(cluster_name)
        self.deleted.append(cluster_name)


class BlockingValidator(FakeValidator):
    """Holds the workflow in Validating until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def validate(self, kubeconfig: bytes) -> str:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().validate(kubeconfig)


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture()
def statuses() -> InMemoryStatusStore:
    return InMemoryStatusStore()


@pytest.fixture()
def events() -> EventLog:
    return EventLog()


@pytest.fixture()
def fakes() -> dict[str, Any]:
    return {
        "validator": FakeValidator(),
        "token_provider": FakeTokenProvider(),
        "joiner": FakeJoiner(),
        "csr_approver": FakeCSRApprover(),
        "managed_clusters": FakeManagedClusters(),
    }


@pytest.fixture()
def orchestrator(
    statuses: InMemoryStatusStore, events: EventLog, fakes: dict[str, Any], tmp_path: Path,
) -> Orchestrator:
    return Orchestrator(
        statuses=statuses,
        events=events,
        kubeconfig_dir=tmp_path / "staged",
        **fakes,
    )


@pytest.fixture()
def plugin_config(tmp_path: Path) -> PluginConfig:
    return PluginConfig(kubeconfig_dir=str(tmp_path / "staged"), csr_settle_seconds=0)


@pytest.fixture()
def local_kubeconfig(tmp_path: Path) -> Path:
    path = tmp_path / "kubeconfig"
    data = make_kubeconfig(
        ("kind-prod-1", "prod-1", "prod-1-admin"),
        ("staging", "staging-cluster", "staging-admin"),
        current="staging",
    )
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path
