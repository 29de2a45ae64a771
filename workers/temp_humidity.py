from __future__ import annotations

import logging
from typing import Optional

from core.bus_guard import BusGuard
from core.derived_state import DerivedStateStore
from drivers.base import DeviceError, TempHumiditySensor
from models.readings import TempHumidityReading
from workers.base import SensorWorker

logger = logging.getLogger(__name__)


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 1.8 + 32.0


class TempHumidityWorker(SensorWorker):
    """HTU21D temperature and humidity; also feeds the gas sensor's compensation."""

    sensor = "temp_humidity"

    def __init__(
        self,
        device: TempHumiditySensor,
        guard: BusGuard,
        store: DerivedStateStore,
        location: int,
        period: float = 60.005,
        **kwargs,
    ) -> None:
        super().__init__(period=period, **kwargs)
        self.device = device
        self.guard = guard
        self.store = store
        self.location = location

    def tick(self) -> None:
        temperature: Optional[float] = None
        humidity: Optional[float] = None

        with self.guard.session(holder=self.sensor):
            try:
                temperature = self.device.read_temperature()
            except DeviceError as exc:
                logger.error("Failed to read temp from HTU21D: %s", exc, extra={"sensor": self.sensor})
                self.record_error()
            try:
                humidity = self.device.read_humidity()
            except DeviceError as exc:
                logger.error("Failed to read humidity from HTU21D: %s", exc, extra={"sensor": self.sensor})
                self.record_error()

        if temperature is None or humidity is None:
            return

        self.record_sample()
        self.store.publish(temperature, humidity)
        self.emit(
            TempHumidityReading,
            timestamp=self.clock(),
            location=self.location,
            temp=celsius_to_fahrenheit(temperature),
            humidity=humidity,
        )
