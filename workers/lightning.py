from __future__ import annotations

import logging

from core.bus_guard import BusGuardBroken
from drivers.base import LightningSource
from models.records import LightningEvent
from workers.base import SensorWorker

logger = logging.getLogger(__name__)


class LightningWorker(SensorWorker):
    """Logs detector interrupts as they arrive.

    Monitoring only: events are never turned into readings for the broker.
    """

    sensor = "lightning"

    def __init__(self, source: LightningSource, **kwargs) -> None:
        super().__init__(period=0.0, **kwargs)
        self.source = source

    def run(self) -> None:
        logger.info("Started %s worker", self.sensor, extra={"sensor": self.sensor})
        self._update(state="running")
        try:
            for event in self.source.events():
                self.handle(event)
        except BusGuardBroken:
            self.fault()
            return
        self._update(state="stopped")

    def handle(self, event: LightningEvent) -> None:
        self.record_sample()
        logger.info(event.describe(), extra={"sensor": self.sensor})

    def stop(self) -> None:
        super().stop()
        self.source.close()
