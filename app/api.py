"""HTTP route definitions for the status service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.schemas import RuntimeStatus
from services.runtime import SensorRuntime

router = APIRouter()


def get_runtime(request: Request) -> SensorRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sensor runtime is not running.",
        )
    return runtime


@router.get(
    "/status",
    response_model=RuntimeStatus,
    summary="Worker counters, publisher statistics and queue depth.",
)
async def get_status(runtime: SensorRuntime = Depends(get_runtime)) -> RuntimeStatus:
    return runtime.status()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
