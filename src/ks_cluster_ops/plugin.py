"""Host-facing plugin object.

The host loads the plugin through ``new_plugin()`` and drives it through
the capability methods ``initialize``, ``get_metadata``, ``get_handlers``,
``health`` and ``cleanup``.  Everything the handlers and workflows share
(status store, event log, worker pool) is owned here and lives exactly as
long as the plugin is loaded.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fastapi import APIRouter

from ks_cluster_ops import __version__
from ks_cluster_ops.config import PluginConfig
from ks_cluster_ops.errors import PluginError
from ks_cluster_ops.kubeconfig.connectivity import (
    ConnectivityValidator,
    KubernetesConnectivityValidator,
)
from ks_cluster_ops.kubeconfig.resolver import KubeconfigResolver
from ks_cluster_ops.models import EndpointConfig, PluginMetadata
from ks_cluster_ops.ocm.adapters import (
    ClusterJoiner,
    CSRApprover,
    JoinTokenProvider,
    ManagedClusterChecker,
)
from ks_cluster_ops.ocm.clusteradm import ClusteradmJoiner, ClusteradmTokenProvider
from ks_cluster_ops.ocm.commands import CommandRunner
from ks_cluster_ops.ocm.kubectl import KubectlCSRApprover, KubectlManagedClusterClient
from ks_cluster_ops.orchestrator import Orchestrator
from ks_cluster_ops.service import ClusterOpsService
from ks_cluster_ops.store.events import EventLog
from ks_cluster_ops.store.status import InMemoryStatusStore
from ks_cluster_ops.tasks import WorkflowRunner

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("kubectl", "clusteradm")

ENDPOINTS = [
    EndpointConfig(path="/onboard", method="POST", handler="OnboardClusterHandler",
                   description="Onboard a new cluster to KubeStellar"),
    EndpointConfig(path="/detach", method="POST", handler="DetachClusterHandler",
                   description="Detach a cluster from KubeStellar"),
    EndpointConfig(path="/status", method="GET", handler="GetClusterStatusHandler",
                   description="Get cluster status by ?name="),
    EndpointConfig(path="/status/:cluster", method="GET", handler="GetClusterStatusHandler",
                   description="Get specific cluster status"),
    EndpointConfig(path="/clusters", method="GET", handler="ListClustersHandler",
                   description="List all managed clusters"),
    EndpointConfig(path="/list", method="GET", handler="ListClustersHandler",
                   description="List all managed clusters"),
    EndpointConfig(path="/health", method="GET", handler="HealthCheckHandler",
                   description="Plugin health check"),
    EndpointConfig(path="/events/:cluster", method="GET", handler="GetClusterEventsHandler",
                   description="Get cluster onboarding events"),
    EndpointConfig(path="/logs/:cluster", method="GET", handler="GetClusterEventsHandler",
                   description="Get cluster onboarding events"),
]


def check_tools(tools: tuple[str, ...] = REQUIRED_TOOLS) -> dict[str, str | None]:
    """Map each tool name to its resolved path (``None`` if not on PATH)."""
    return {tool: shutil.which(tool) for tool in tools}


class ClusterOpsPlugin:
    """KubeStellar cluster onboarding/detachment plugin.

    Adapters default to the ``clusteradm``/``kubectl`` implementations and
    the kubernetes-client connectivity check; pass fakes to run without a
    hub.
    """

    def __init__(
        self,
        config: PluginConfig | None = None,
        *,
        validator: ConnectivityValidator | None = None,
        token_provider: JoinTokenProvider | None = None,
        joiner: ClusterJoiner | None = None,
        csr_approver: CSRApprover | None = None,
        managed_clusters: ManagedClusterChecker | None = None,
        resolver: KubeconfigResolver | None = None,
    ) -> None:
        self._config = config or PluginConfig.from_env()
        self._validator = validator
        self._token_provider = token_provider
        self._joiner = joiner
        self._csr_approver = csr_approver
        self._managed_clusters = managed_clusters
        self._resolver = resolver

        self.statuses = InMemoryStatusStore()
        self.events = EventLog()
        self._service: ClusterOpsService | None = None
        self._runner: WorkflowRunner | None = None
        self._initialized = False

    @property
    def config(self) -> PluginConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def version(self) -> str:
        return __version__

    @property
    def service(self) -> ClusterOpsService:
        if self._service is None:
            msg = "plugin not initialized"
            raise PluginError(msg)
        return self._service

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        if self._initialized:
            msg = "plugin already initialized"
            raise PluginError(msg)
        if config:
            self._config = PluginConfig.from_mapping(config, base=self._config)
        cfg = self._config

        try:
            Path(cfg.kubeconfig_dir).mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Failed to create kubeconfig directory %s: %s", cfg.kubeconfig_dir, exc)

        for tool, path in check_tools((cfg.kubectl_path, cfg.clusteradm_path)).items():
            if path is None:
                logger.warning("%s not available on PATH", tool)

        self._runner = WorkflowRunner(max_workers=cfg.max_workers)
        self._service = ClusterOpsService(
            config=cfg,
            statuses=self.statuses,
            events=self.events,
            orchestrator=self._build_orchestrator(cfg),
            runner=self._runner,
            resolver=self._resolver or KubeconfigResolver(cfg.source_kubeconfig),
        )
        self._initialized = True
        logger.info("KubeStellar cluster plugin initialized (ITS context: %s)", cfg.its_context)

    def get_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            id=self._config.plugin_id,
            name="KubeStellar Cluster Operations",
            version=__version__,
            description="Cluster onboarding and detachment operations for KubeStellar",
            author="KubeStellar",
            endpoints=list(ENDPOINTS),
            permissions=[
                "cluster.read", "cluster.write", "cluster.delete",
                "configmap.read", "configmap.write",
            ],
            dependencies=list(REQUIRED_TOOLS),
            configuration={
                "its_context": self._config.its_context,
                "cluster_namespace": self._config.cluster_namespace,
                "kubeconfig_dir": self._config.kubeconfig_dir,
                "log_level": self._config.log_level,
            },
        )

    def get_handlers(self) -> APIRouter:
        """Return the plugin-relative router (mount it under ``api_prefix``).

        The cluster and health routers are module-level and hold a single
        service reference. Each call rebinds them, so in one process only
        the plugin whose ``get_handlers`` ran last is served; earlier
        routers answer with the new plugin's state.
        """
        from ks_cluster_ops.api.routers import clusters, health

        clusters.init_router(self.service)
        health.init_router(self)

        router = APIRouter()
        router.include_router(clusters.router)
        router.include_router(health.router)
        return router

    def health(self) -> None:
        if not self._initialized:
            msg = "plugin not initialized"
            raise PluginError(msg)

    def cleanup(self, wait: bool = False) -> None:
        if self._runner is not None:
            self._runner.shutdown(wait=wait)
        self._initialized = False
        logger.info("KubeStellar cluster plugin cleaned up")

    # ------------------------------------------------------------------

    def _build_orchestrator(self, cfg: PluginConfig) -> Orchestrator:
        runner = CommandRunner()
        managed = self._managed_clusters or KubectlManagedClusterClient(
            cfg.its_context, runner=runner, kubectl_path=cfg.kubectl_path,
        )
        return Orchestrator(
            statuses=self.statuses,
            events=self.events,
            validator=self._validator or KubernetesConnectivityValidator(cfg.connect_timeout),
            token_provider=self._token_provider or ClusteradmTokenProvider(
                cfg.its_context, runner=runner, clusteradm_path=cfg.clusteradm_path,
            ),
            joiner=self._joiner or ClusteradmJoiner(
                runner=runner, clusteradm_path=cfg.clusteradm_path,
            ),
            csr_approver=self._csr_approver or KubectlCSRApprover(
                cfg.its_context, runner=runner,
                kubectl_path=cfg.kubectl_path, settle_seconds=cfg.csr_settle_seconds,
            ),
            managed_clusters=managed,
            kubeconfig_dir=cfg.kubeconfig_dir,
        )


def new_plugin() -> ClusterOpsPlugin:
    """Entry point the host looks up when loading the plugin."""
    return ClusterOpsPlugin()
