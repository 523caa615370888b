"""FastAPI application factory for running the plugin standalone."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ks_cluster_ops import __version__
from ks_cluster_ops.config import PluginConfig
from ks_cluster_ops.plugin import ClusterOpsPlugin

logger = logging.getLogger(__name__)


def create_app(
    config: PluginConfig | None = None,
    plugin: ClusterOpsPlugin | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    The plugin is initialised here (unless the caller already did) and its
    routers are mounted under ``config.api_prefix``.  Pass a prebuilt
    *plugin* to inject fake adapters.
    """
    if plugin is None:
        plugin = ClusterOpsPlugin(config or PluginConfig.from_env())
    if not plugin.initialized:
        plugin.initialize()
    config = plugin.config

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        plugin.cleanup()

    app = FastAPI(
        title="KubeStellar Cluster Operations",
        version=__version__,
        docs_url=f"{config.api_prefix}/docs",
        openapi_url=f"{config.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.plugin = plugin
    app.include_router(plugin.get_handlers(), prefix=config.api_prefix)

    logger.info("Serving cluster operations under %s", config.api_prefix)
    return app
