"""Tests for the plugin HTTP API.

Uses FastAPI TestClient against the app factory with fake hub adapters.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

fastapi = pytest.importorskip("fastapi", reason="fastapi not installed")

from fastapi.testclient import TestClient  # noqa: E402

from ks_cluster_ops.api.app import create_app  # noqa: E402
from ks_cluster_ops.config import PluginConfig  # noqa: E402
from ks_cluster_ops.kubeconfig.resolver import KubeconfigResolver  # noqa: E402
from ks_cluster_ops.models import ClusterStatus  # noqa: E402
from ks_cluster_ops.plugin import ClusterOpsPlugin  # noqa: E402

from conftest import FakeManagedClusters, FakeValidator, kubeconfig_bytes  # noqa: E402

PREFIX = "/api/plugins/kubestellar-cluster-plugin"


@pytest.fixture()
def plugin(
    plugin_config: PluginConfig, fakes: dict[str, Any], local_kubeconfig: Path,
) -> Iterator[ClusterOpsPlugin]:
    p = ClusterOpsPlugin(plugin_config, resolver=KubeconfigResolver(local_kubeconfig), **fakes)
    yield p
    p.cleanup(wait=True)


@pytest.fixture()
def client(plugin: ClusterOpsPlugin) -> TestClient:
    return TestClient(create_app(plugin=plugin))


def _wait(plugin: ClusterOpsPlugin, name: str) -> Any:
    return plugin.service.runner.wait(name, timeout=5)


# --- onboarding ---


class TestOnboard:
    def test_json_with_kubeconfig(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        resp = client.post(f"{PREFIX}/onboard", json={
            "name": "prod-1", "kubeconfig": kubeconfig_bytes().decode(),
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "Pending"
        assert body["message"] == "Cluster 'prod-1' is being onboarded"
        assert body["logsEndpoint"] == f"{PREFIX}/logs/prod-1"
        assert body["websocketEndpoint"] == (
            "/ws/plugins/kubestellar-cluster-plugin/onboarding?cluster=prod-1"
        )
        assert _wait(plugin, "prod-1") == ClusterStatus.ONBOARDED

    def test_json_without_kubeconfig_uses_local(
        self, client: TestClient, plugin: ClusterOpsPlugin, fakes: dict[str, Any],
    ) -> None:
        resp = client.post(f"{PREFIX}/onboard", json={"clusterName": "prod-1"})
        assert resp.status_code == 200
        _wait(plugin, "prod-1")
        assert b"kind-prod-1" in fakes["validator"].calls[0]

    def test_json_missing_name(self, client: TestClient) -> None:
        resp = client.post(f"{PREFIX}/onboard", json={"kubeconfig": "x"})
        assert resp.status_code == 400

    def test_json_malformed(self, client: TestClient) -> None:
        resp = client.post(
            f"{PREFIX}/onboard", content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request payload"

    def test_multipart_file(
        self, client: TestClient, plugin: ClusterOpsPlugin, fakes: dict[str, Any],
    ) -> None:
        payload = kubeconfig_bytes("edge-7")
        resp = client.post(
            f"{PREFIX}/onboard",
            data={"name": "edge-7"},
            files={"kubeconfig": ("kubeconfig.yaml", payload, "application/x-yaml")},
        )
        assert resp.status_code == 200
        _wait(plugin, "edge-7")
        assert fakes["validator"].calls == [payload]

    def test_multipart_name_only_uses_local(
        self, client: TestClient, plugin: ClusterOpsPlugin,
    ) -> None:
        resp = client.post(f"{PREFIX}/onboard", files={"name": (None, "staging")})
        assert resp.status_code == 200
        assert _wait(plugin, "staging") == ClusterStatus.ONBOARDED

    def test_multipart_missing_name(self, client: TestClient) -> None:
        resp = client.post(
            f"{PREFIX}/onboard",
            files={"kubeconfig": ("k.yaml", kubeconfig_bytes(), "application/x-yaml")},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cluster name is required"

    def test_query_only(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        resp = client.post(f"{PREFIX}/onboard?name=prod-1")
        assert resp.status_code == 200
        assert _wait(plugin, "prod-1") == ClusterStatus.ONBOARDED

    def test_query_missing_name(self, client: TestClient) -> None:
        resp = client.post(f"{PREFIX}/onboard")
        assert resp.status_code == 400

    def test_unknown_local_cluster(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        resp = client.post(f"{PREFIX}/onboard?name=nope")
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith(
            "Failed to find cluster 'nope' in local kubeconfig:"
        )
        assert plugin.statuses.get("nope") is None

    def test_already_tracked(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        plugin.statuses.set("prod-1", ClusterStatus.ONBOARDED)
        resp = client.post(f"{PREFIX}/onboard?name=prod-1")
        assert resp.status_code == 200
        body = resp.json()
        assert body == {
            "message": "Cluster 'prod-1' is already onboarded (status: Onboarded)",
            "status": "Onboarded",
        }

    @pytest.mark.parametrize("name", ["--all", "../x", "Prod_1"])
    def test_invalid_name_json(
        self, client: TestClient, plugin: ClusterOpsPlugin, fakes: dict[str, Any], name: str,
    ) -> None:
        resp = client.post(f"{PREFIX}/onboard", json={
            "name": name, "kubeconfig": kubeconfig_bytes().decode(),
        })
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith(f"Invalid cluster name '{name}'")
        assert len(plugin.statuses) == 0
        assert fakes["joiner"].calls == []

    def test_invalid_name_query(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        resp = client.post(f"{PREFIX}/onboard", params={"name": "--all"})
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Invalid cluster name")
        assert len(plugin.statuses) == 0

    def test_invalid_name_multipart(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        resp = client.post(
            f"{PREFIX}/onboard",
            data={"name": "../x"},
            files={"kubeconfig": ("k.yaml", kubeconfig_bytes(), "application/x-yaml")},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Invalid cluster name")
        assert len(plugin.statuses) == 0


# --- detachment ---


class TestDetach:
    def test_detach(self, plugin_config: PluginConfig, fakes: dict[str, Any]) -> None:
        fakes["managed_clusters"] = FakeManagedClusters(present={"prod-1"})
        plugin = ClusterOpsPlugin(plugin_config, **fakes)
        client = TestClient(create_app(plugin=plugin))
        try:
            plugin.statuses.set("prod-1", ClusterStatus.ONBOARDED)
            resp = client.post(f"{PREFIX}/detach", json={"name": "prod-1"})
            assert resp.status_code == 200
            body = resp.json()
            assert body["status"] == "Detaching"
            assert body["websocketEndpoint"].endswith("/detachment?cluster=prod-1")
            _wait(plugin, "prod-1")
            assert client.get(f"{PREFIX}/status/prod-1").status_code == 404
        finally:
            plugin.cleanup(wait=True)

    def test_missing_name(self, client: TestClient) -> None:
        resp = client.post(f"{PREFIX}/detach", json={"force": True})
        assert resp.status_code == 400

    def test_empty_name(self, client: TestClient) -> None:
        resp = client.post(f"{PREFIX}/detach", json={"name": ""})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cluster name is required"

    @pytest.mark.parametrize("name", ["--all", "../x"])
    def test_invalid_name(
        self, client: TestClient, plugin: ClusterOpsPlugin, fakes: dict[str, Any], name: str,
    ) -> None:
        resp = client.post(f"{PREFIX}/detach", json={"name": name, "force": True})
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith(f"Invalid cluster name '{name}'")
        assert plugin.service.runner.handle(name) is None
        assert fakes["managed_clusters"].deleted == []

    def test_malformed(self, client: TestClient) -> None:
        resp = client.post(
            f"{PREFIX}/detach", content=b"[",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_in_flight(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        plugin.statuses.set("c1", ClusterStatus.ONBOARDING)
        resp = client.post(f"{PREFIX}/detach", json={"name": "c1"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "Onboarding"
        assert "logsEndpoint" not in resp.json()


# --- status, listing, events ---


class TestQueries:
    def test_status_by_query_and_path(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        client.post(f"{PREFIX}/onboard?name=prod-1")
        _wait(plugin, "prod-1")

        for url in (f"{PREFIX}/status?name=prod-1", f"{PREFIX}/status/prod-1"):
            resp = client.get(url)
            assert resp.status_code == 200
            body = resp.json()
            assert body["cluster"]["name"] == "prod-1"
            assert body["cluster"]["status"] == "Onboarded"
            assert "lastSeen" in body["cluster"]
            assert body["events"][-1]["status"] == "Success"
            assert body["events"][0]["clusterName"] == "prod-1"

    def test_status_missing_name(self, client: TestClient) -> None:
        assert client.get(f"{PREFIX}/status").status_code == 400

    def test_status_unknown(self, client: TestClient) -> None:
        assert client.get(f"{PREFIX}/status/nope").status_code == 404

    def test_list(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        plugin.statuses.set("a", ClusterStatus.ONBOARDED)
        plugin.statuses.set("b", ClusterStatus.FAILED)
        for url in (f"{PREFIX}/clusters", f"{PREFIX}/list"):
            body = client.get(url).json()
            assert body["total"] == 2
            assert body["connected"] == 1
            assert body["disconnected"] == 1
            assert [c["name"] for c in body["clusters"]] == ["a", "b"]
            assert body["clusters"][0]["type"] == "workload"
            assert "onboardedAt" in body["clusters"][0]

    def test_events_and_logs(self, client: TestClient, plugin: ClusterOpsPlugin) -> None:
        client.post(f"{PREFIX}/onboard?name=prod-1")
        _wait(plugin, "prod-1")
        for url in (f"{PREFIX}/events/prod-1", f"{PREFIX}/logs/prod-1"):
            body = client.get(url).json()
            assert body["clusterName"] == "prod-1"
            assert body["count"] == len(body["events"])
            assert body["events"][0]["status"] == "Initiated"

    def test_events_unknown_cluster(self, client: TestClient) -> None:
        body = client.get(f"{PREFIX}/events/nope").json()
        assert body == {"clusterName": "nope", "events": [], "count": 0}

    def test_health(self, client: TestClient) -> None:
        body = client.get(f"{PREFIX}/health").json()
        assert body["status"] == "healthy"
        assert body["initialized"] is True
        assert body["version"] == "1.1.0"


# --- end to end ---


class TestEndToEnd:
    def test_failed_connectivity_visible_in_status(
        self, plugin_config: PluginConfig, fakes: dict[str, Any],
    ) -> None:
        fakes["validator"] = FakeValidator(fail=True)
        plugin = ClusterOpsPlugin(plugin_config, **fakes)
        client = TestClient(create_app(plugin=plugin))
        try:
            client.post(f"{PREFIX}/onboard", json={
                "name": "bad", "kubeconfig": kubeconfig_bytes("bad").decode(),
            })
            _wait(plugin, "bad")
            body = client.get(f"{PREFIX}/status/bad").json()
            assert body["cluster"]["status"] == "Failed"
            assert body["events"][-1]["error"] == "ConnectivityError"
        finally:
            plugin.cleanup(wait=True)

    def test_prod_1_onboard_then_detach(
        self, plugin_config: PluginConfig, fakes: dict[str, Any], local_kubeconfig: Path,
    ) -> None:
        managed = FakeManagedClusters()
        fakes["managed_clusters"] = managed
        plugin = ClusterOpsPlugin(
            plugin_config, resolver=KubeconfigResolver(local_kubeconfig), **fakes,
        )
        client = TestClient(create_app(plugin=plugin))
        try:
            resp = client.post(f"{PREFIX}/onboard", json={"name": "prod-1"})
            assert resp.json()["status"] == "Pending"
            _wait(plugin, "prod-1")

            listing = client.get(f"{PREFIX}/clusters").json()
            assert listing["connected"] == 1

            staged = fakes["joiner"].staged_contents[0]
            assert b"kind-prod-1" in staged
            _join_command, name, _path = fakes["joiner"].calls[0]
            assert name == "prod-1"

            managed.present.add("prod-1")
            resp = client.post(f"{PREFIX}/detach", json={"name": "prod-1"})
            assert resp.json()["status"] == "Detaching"
            _wait(plugin, "prod-1")
            assert client.get(f"{PREFIX}/clusters").json()["total"] == 0
            assert managed.deleted == ["prod-1"]
        finally:
            plugin.cleanup(wait=True)
