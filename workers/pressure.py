from __future__ import annotations

import logging
from typing import Optional

from core.bus_guard import BusGuard
from drivers.base import DeviceError, PressureSensor
from models.readings import SensorId
from workers.base import SensorWorker

logger = logging.getLogger(__name__)

PASCALS_PER_INCH_HG = 3386.389


class PressureWorker(SensorWorker):
    """BMP280 barometric pressure, reported in inches of mercury every five minutes."""

    sensor = "pressure"

    def __init__(self, device: PressureSensor, guard: BusGuard, period: float = 299.0, **kwargs) -> None:
        super().__init__(period=period, **kwargs)
        self.device = device
        self.guard = guard

    def tick(self) -> None:
        pascals: Optional[float] = None
        with self.guard.session(holder=self.sensor):
            try:
                pascals = self.device.measure()
            except DeviceError as exc:
                logger.error("Failed to read bmp280: %s", exc, extra={"sensor": self.sensor})
                self.record_error()

        if pascals is None:
            return
        self.record_sample()
        self.emit_value(SensorId.PRESSURE, pascals / PASCALS_PER_INCH_HG)
