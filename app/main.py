from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.runtime import SensorRuntime


def create_app(runtime: Optional[SensorRuntime] = None) -> FastAPI:
    """Status API over a runtime that is owned and shut down by the caller."""
    configure_logging()
    app = FastAPI(
        title="Indoor Sensors",
        description="Read-only view of the sensor workers and the MQTT publisher.",
        version="0.1.0",
    )
    app.state.runtime = runtime
    app.include_router(router)
    return app
