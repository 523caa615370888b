"""Health check endpoint."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter

from ks_cluster_ops import __version__
from ks_cluster_ops.api.schemas import HealthResponse

if TYPE_CHECKING:
    from ks_cluster_ops.plugin import ClusterOpsPlugin

router = APIRouter(tags=["health"])

_plugin: ClusterOpsPlugin | None = None


def init_router(plugin: ClusterOpsPlugin) -> None:
    global _plugin  # noqa: PLW0603
    _plugin = plugin


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(
        timestamp=datetime.now(tz=UTC),
        version=_plugin.version if _plugin else __version__,
        initialized=_plugin.initialized if _plugin else False,
    )
