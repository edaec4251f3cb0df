from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from idrac_gateway.api.models import ApiResponse, MessageData, PowerStatus, ok
from idrac_gateway.redfish import PowerControlClient

logger = logging.getLogger(__name__)

# Session validation for these routes happens in the app's auth middleware,
# which answers 401 before any handler below can run and records the
# authenticated user id on request.state.
router = APIRouter(prefix="/power", tags=["power"])


def get_power_client(request: Request) -> PowerControlClient:
    client = getattr(request.app.state, "power_client", None)
    if client is None:
        raise HTTPException(status_code=500, detail="Power control client not initialized")
    return client


def _audit(request: Request, command: str) -> None:
    logger.info("Power command %s requested by user %s", command, request.state.user_id)


@router.get("/status", response_model=ApiResponse[PowerStatus])
async def power_status(
    client: PowerControlClient = Depends(get_power_client),  # noqa: B008
) -> ApiResponse[PowerStatus]:
    return ok(PowerStatus(power_state=await client.get_power_state()))


@router.post("/on", response_model=ApiResponse[MessageData])
async def power_on(
    request: Request,
    client: PowerControlClient = Depends(get_power_client),  # noqa: B008
) -> ApiResponse[MessageData]:
    _audit(request, "on")
    return ok(MessageData(message=await client.power_on()))


@router.post("/off", response_model=ApiResponse[MessageData])
async def power_off(
    request: Request,
    client: PowerControlClient = Depends(get_power_client),  # noqa: B008
) -> ApiResponse[MessageData]:
    _audit(request, "off")
    return ok(MessageData(message=await client.power_off()))


@router.post("/shutdown", response_model=ApiResponse[MessageData])
async def graceful_shutdown(
    request: Request,
    client: PowerControlClient = Depends(get_power_client),  # noqa: B008
) -> ApiResponse[MessageData]:
    _audit(request, "shutdown")
    return ok(MessageData(message=await client.graceful_shutdown()))
