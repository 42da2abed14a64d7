from __future__ import annotations

from fastapi import APIRouter, Path, Request

from argus.schemas.common import ErrorResponse, utc_now
from argus.schemas.settings import ConnectionTestResult, LGTMSettings, ServiceConfig, SettingsSavedResponse
from argus.services import basic_service
from argus.state import get_state

router = APIRouter(prefix="/api", tags=["Settings"])


@router.get(
    "/settings",
    response_model=LGTMSettings,
    summary="Get LGTM settings",
    description="Current connection settings; defaults until settings are saved.",
    operation_id="get_settings",
)
def get_settings(request: Request) -> LGTMSettings:
    return get_state(request.app).settings.get()


@router.post(
    "/settings",
    response_model=SettingsSavedResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Save LGTM settings",
    description="Replace the in-memory connection settings. Settings are lost on restart.",
    operation_id="save_settings",
)
def save_settings(request: Request, payload: LGTMSettings) -> SettingsSavedResponse:
    """Save settings."""
    get_state(request.app).settings.save(payload)
    return SettingsSavedResponse(status="saved", message="Settings saved successfully", timestamp=utc_now())


@router.post(
    "/test-connection/{service}",
    response_model=ConnectionTestResult,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}},
    summary="Test service connection",
    description="Probe one LGTM service (grafana, prometheus, alertmanager, loki, tempo) with the given settings.",
    operation_id="test_connection",
)
async def test_connection(
    request: Request,
    payload: ServiceConfig,
    service: str = Path(..., description="Service name."),
) -> ConnectionTestResult:
    return await basic_service.probe_connection(request, service, payload)
