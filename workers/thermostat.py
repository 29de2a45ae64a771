from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from models.readings import ThermostatReading
from workers.base import SensorWorker

logger = logging.getLogger(__name__)


class ThermostatWorker(SensorWorker):
    """Polls the thermostat's ``/tstat`` endpoint once a period.

    There is no retry or backoff: a failed poll is logged and the next period
    tries again.
    """

    sensor = "thermostat"

    def __init__(
        self,
        client: httpx.Client,
        url: str,
        timeout: float = 20.0,
        period: float = 60.0,
        **kwargs,
    ) -> None:
        super().__init__(period=period, **kwargs)
        self.client = client
        self.url = url
        self.timeout = timeout

    def tick(self) -> None:
        reading = self.poll()
        if reading is None:
            return
        self.record_sample()
        self.publish(reading)

    def poll(self) -> Optional[ThermostatReading]:
        try:
            response = self.client.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Error querying thermostat: %s", exc, extra={"sensor": self.sensor})
            self.record_error()
            return None

        try:
            reading = ThermostatReading.model_validate_json(response.content)
        except ValidationError as exc:
            logger.error(
                "Failed to deserialize thermostat value",
                extra={"sensor": self.sensor, "reason": str(exc)},
            )
            self.record_error()
            return None

        logger.info("Thermostat value: %s", reading, extra={"sensor": self.sensor})
        return reading.model_copy(update={"timestamp": self.clock()})
