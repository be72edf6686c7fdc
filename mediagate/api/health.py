"""Liveness endpoint."""

import time

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from mediagate.api.deps import get_gateway
from mediagate.gateway import Gateway

router = APIRouter(prefix="/api")


class HealthResponse(BaseModel):
    status: str
    cache_backend: str
    cache_ok: bool
    tunnel_enabled: bool
    uptime_seconds: float


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, gateway: Gateway = Depends(get_gateway)):
    return HealthResponse(
        status="ok",
        cache_backend=gateway.cache_store.backend,
        cache_ok=await gateway.cache_store.ping(),
        tunnel_enabled=gateway.tunnel_http is not None,
        uptime_seconds=time.time() - request.app.state.start_time,
    )
