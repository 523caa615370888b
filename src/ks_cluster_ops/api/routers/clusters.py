"""Cluster onboarding, detachment, and status endpoints.

Onboarding and detachment return as soon as the workflow is submitted;
progress is read back through ``/status``, ``/events`` and ``/logs``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import ValidationError as RequestBodyError
from starlette.datastructures import UploadFile

from ks_cluster_ops.api.schemas import (
    ClusterEventsResponse,
    ClusterListResponse,
    ClusterStatusResponse,
    ClusterSummary,
    OperationAck,
)
from ks_cluster_ops.errors import KubeconfigError, NotFoundError, PluginError, ValidationError
from ks_cluster_ops.models import (
    ClusterDetachRequest,
    ClusterOnboardRequest,
    validate_cluster_name,
)
from ks_cluster_ops.service import ClusterOpsService, Submission

router = APIRouter(tags=["clusters"])

_service: ClusterOpsService | None = None


def init_router(service: ClusterOpsService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> ClusterOpsService:
    assert _service is not None, "ClusterOpsService not initialized"
    return _service


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid request payload") from e


# ------------------------------------------------------------------
# Onboarding input shapes
# ------------------------------------------------------------------


async def _read_multipart(request: Request) -> tuple[ClusterOnboardRequest, bytes | None]:
    form = await request.form()
    name = str(form.get("name") or "").strip()
    upload = form.get("kubeconfig")
    if not name:
        raise HTTPException(status_code=400, detail="Cluster name is required")
    if not isinstance(upload, UploadFile):
        return ClusterOnboardRequest(name=name), None
    data = await upload.read()
    await upload.close()
    return ClusterOnboardRequest(name=name), data or None


async def _read_json(request: Request) -> tuple[ClusterOnboardRequest, bytes | None]:
    payload = await _json_body(request)
    try:
        body = ClusterOnboardRequest.model_validate(payload)
    except RequestBodyError as e:
        raise HTTPException(status_code=400, detail="Invalid request payload") from e
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="ClusterName is required")
    return body, body.kubeconfig.encode() if body.kubeconfig else None


def _read_query(request: Request) -> tuple[ClusterOnboardRequest, None]:
    name = request.query_params.get("name", "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Cluster name parameter is required")
    return ClusterOnboardRequest(name=name), None


def _ack(
    submission: Submission, name: str, operation: str, accepted_message: str,
    rejected_message: str,
) -> OperationAck:
    if not submission.accepted:
        return OperationAck(message=rejected_message, status=submission.status)
    svc = _svc()
    return OperationAck(
        message=accepted_message,
        status=submission.status,
        logs_endpoint=svc.logs_endpoint(name),
        websocket_endpoint=svc.websocket_endpoint(operation, name),
    )


# ------------------------------------------------------------------
# Workflows
# ------------------------------------------------------------------


@router.post("/onboard", response_model=OperationAck, response_model_exclude_none=True)
async def onboard_cluster(request: Request) -> OperationAck:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" in content_type:
        body, kubeconfig = await _read_multipart(request)
    elif "application/json" in content_type:
        body, kubeconfig = await _read_json(request)
    else:
        body, kubeconfig = _read_query(request)

    try:
        name = validate_cluster_name(body.name)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if kubeconfig is None:
        try:
            kubeconfig = _svc().resolve_local_kubeconfig(name)
        except (NotFoundError, KubeconfigError) as e:
            raise HTTPException(
                status_code=400,
                detail=f"Failed to find cluster '{name}' in local kubeconfig: {e}",
            ) from e

    try:
        submission = _svc().submit_onboarding(body, kubeconfig)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PluginError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return _ack(
        submission, name, "onboarding",
        accepted_message=f"Cluster '{name}' is being onboarded",
        rejected_message=f"Cluster '{name}' is already onboarded (status: {submission.status})",
    )


@router.post("/detach", response_model=OperationAck, response_model_exclude_none=True)
async def detach_cluster(request: Request) -> OperationAck:
    payload = await _json_body(request)
    try:
        body = ClusterDetachRequest.model_validate(payload)
    except RequestBodyError as e:
        raise HTTPException(status_code=400, detail="Invalid request payload") from e

    name = body.name.strip()
    try:
        submission = _svc().submit_detachment(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PluginError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return _ack(
        submission, name, "detachment",
        accepted_message=f"Cluster '{name}' is being detached",
        rejected_message=f"Cluster '{name}' has an operation in progress (status: {submission.status})",
    )


# ------------------------------------------------------------------
# Status and listing
# ------------------------------------------------------------------


def _status_response(cluster_name: str) -> ClusterStatusResponse:
    svc = _svc()
    record = svc.get_cluster(cluster_name)
    if record is None:
        raise HTTPException(status_code=404, detail="cluster not found")
    return ClusterStatusResponse(
        cluster=ClusterSummary(
            name=record.name, status=record.status, last_seen=record.updated_at,
        ),
        events=svc.cluster_events(cluster_name),
    )


@router.get("/status", response_model=ClusterStatusResponse)
def get_cluster_status(name: str = Query(default="")) -> ClusterStatusResponse:
    if not name.strip():
        raise HTTPException(status_code=400, detail="cluster name is required")
    return _status_response(name.strip())


@router.get("/status/{cluster}", response_model=ClusterStatusResponse)
def get_cluster_status_by_path(cluster: str) -> ClusterStatusResponse:
    return _status_response(cluster)


@router.get("/clusters", response_model=ClusterListResponse)
@router.get("/list", response_model=ClusterListResponse)
def list_clusters() -> ClusterListResponse:
    return ClusterListResponse.from_records(_svc().list_clusters())


@router.get("/events/{cluster}", response_model=ClusterEventsResponse)
@router.get("/logs/{cluster}", response_model=ClusterEventsResponse)
def get_cluster_events(cluster: str) -> ClusterEventsResponse:
    events = _svc().cluster_events(cluster)
    return ClusterEventsResponse(cluster_name=cluster, events=events, count=len(events))
