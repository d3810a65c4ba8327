from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from deploytrack.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from deploytrack.apps.api.response import SuccessEnvelope, success_response
from deploytrack.core.config import get_settings

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    sheets_provider: str
    identity_provider: str
    spreadsheet_configured: bool


# Liveness only: reports configuration without calling the spreadsheet or identity provider.
@router.get("/health", response_model=SuccessEnvelope[HealthResponse] | HealthResponse)
async def health(request: Request) -> dict:
    settings = get_settings()
    payload = HealthResponse(
        status="ok",
        sheets_provider=settings.sheets_provider,
        identity_provider=settings.identity_provider,
        spreadsheet_configured=bool(settings.deployment_spreadsheet_id),
    )
    return success_response(request=request, data=payload)
