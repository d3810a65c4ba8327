from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from deploytrack.apps.api.deps import Principal, get_deployment_store, require_role
from deploytrack.apps.api.errors import api_error
from deploytrack.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from deploytrack.apps.api.response import SuccessEnvelope, success_response
from deploytrack.core.errors import (
    MissingIdentifierError,
    RecordNotFoundError,
    RemoteReadError,
    RemoteWriteError,
    SheetsError,
)
from deploytrack.domain.deployments import IDENTIFIER_FIELDS, record_id, with_aliases
from deploytrack.services.dashboard import build_deployment_stats
from deploytrack.services.deployments.store import DeploymentRecordStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deployments", tags=["deployments"], responses=DEFAULT_ERROR_RESPONSES)


class DeploymentCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deployment_id: str = Field(alias="deploymentId")


class DeploymentUpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deployment_id: str = Field(alias="deploymentId")
    fields_updated: list[str] = Field(alias="fieldsUpdated")


class DeploymentStatsResponse(BaseModel):
    total: int
    completed: int
    in_progress: int
    pending: int
    by_status: list[dict[str, Any]]
    by_department: list[dict[str, Any]]
    by_device_type: list[dict[str, Any]]
    by_priority: list[dict[str, Any]]
    recent: list[dict[str, Any]]
    upcoming: list[dict[str, Any]]


def _sheets_error(exc: SheetsError, message: str) -> HTTPException:
    # The spreadsheet is an upstream dependency; surface its failures as 502.
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"code": "SHEETS_UNAVAILABLE", "message": f"{message}: {exc}"},
    )


def _split_update_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], list[str] | None]:
    # Accept {deploymentData, changedFields} or a bare legacy record.
    if isinstance(payload.get("deploymentData"), dict):
        changed = payload.get("changedFields")
        if changed is not None and (
            not isinstance(changed, list) or not all(isinstance(name, str) for name in changed)
        ):
            raise api_error(400, "INVALID_CHANGED_FIELDS", "changedFields must be a list of field names")
        return dict(payload["deploymentData"]), changed
    return dict(payload), None


@router.get("", response_model=SuccessEnvelope[list[dict[str, Any]]] | list[dict[str, Any]])
async def list_deployments(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    assigned_to: str | None = Query(default=None),
    principal: Principal = Depends(require_role("technician")),
    store: DeploymentRecordStore = Depends(get_deployment_store),
) -> dict:
    try:
        records = await store.list_all()
    except RemoteReadError as exc:
        logger.error("deployments_fetch_failed subject_id=%s", principal.subject_id, exc_info=exc)
        raise _sheets_error(exc, "Failed to fetch deployments") from exc

    if status_filter:
        records = [record for record in records if record.get("Status") == status_filter]
    if assigned_to:
        wanted = assigned_to.strip().lower()
        records = [
            record for record in records if str(record.get("Assigned To") or "").strip().lower() == wanted
        ]
    logger.info("deployments_listed count=%s subject_id=%s", len(records), principal.subject_id)
    return success_response(request=request, data=[with_aliases(record) for record in records])


@router.get("/stats", response_model=SuccessEnvelope[DeploymentStatsResponse] | DeploymentStatsResponse)
async def deployment_stats(
    request: Request,
    principal: Principal = Depends(require_role("technician")),
    store: DeploymentRecordStore = Depends(get_deployment_store),
) -> dict:
    _ = principal
    try:
        records = await store.list_all()
    except RemoteReadError as exc:
        raise _sheets_error(exc, "Failed to fetch deployments") from exc
    stats = build_deployment_stats(records, today=datetime.now(timezone.utc).date())
    return success_response(request=request, data=DeploymentStatsResponse(**stats))


@router.post("", response_model=SuccessEnvelope[DeploymentCreateResponse] | DeploymentCreateResponse)
async def create_deployment(
    request: Request,
    payload: dict[str, Any] = Body(...),
    principal: Principal = Depends(require_role("technician")),
    store: DeploymentRecordStore = Depends(get_deployment_store),
) -> dict:
    record = dict(payload)
    if not record.get("Deployment Date"):
        record["Deployment Date"] = datetime.now(timezone.utc).date().isoformat()
    try:
        stored = await store.create(record)
    except SheetsError as exc:
        logger.error("deployment_create_failed subject_id=%s", principal.subject_id, exc_info=exc)
        raise _sheets_error(exc, "Failed to add deployment") from exc
    response = DeploymentCreateResponse(
        message="Deployment added successfully",
        deployment_id=record_id(stored) or "",
    )
    return success_response(request=request, data=response)


@router.put("", response_model=SuccessEnvelope[DeploymentUpdateResponse] | DeploymentUpdateResponse)
async def update_deployment(
    request: Request,
    payload: dict[str, Any] = Body(...),
    principal: Principal = Depends(require_role("technician")),
    store: DeploymentRecordStore = Depends(get_deployment_store),
) -> dict:
    record, changed_fields = _split_update_payload(payload)
    logger.info("deployment_update_requested deployment_id=%s subject_id=%s", record_id(record), principal.subject_id)
    try:
        if changed_fields is not None:
            result = await store.update_fields(record, changed_fields)
        else:
            result = await store.update_full(record)
    except MissingIdentifierError as exc:
        raise api_error(400, "DEPLOYMENT_ID_REQUIRED", "Deployment ID is required") from exc
    except RecordNotFoundError as exc:
        raise api_error(404, "DEPLOYMENT_NOT_FOUND", str(exc)) from exc
    except (RemoteReadError, RemoteWriteError) as exc:
        raise _sheets_error(exc, "Failed to update deployment") from exc

    response = DeploymentUpdateResponse(
        message="Deployment updated successfully",
        deployment_id=result.deployment_id,
        fields_updated=[name for name in result.fields_updated if name not in IDENTIFIER_FIELDS],
    )
    return success_response(request=request, data=response)
