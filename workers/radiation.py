from __future__ import annotations

import logging
import re
from typing import List, Optional

from serial import SerialException

from core.rolling import RollingWindow
from drivers.base import SerialPort
from models.readings import SensorId
from workers.base import SensorWorker

logger = logging.getLogger(__name__)

READ_SIZE = 200
CPS_MARKER = "CPS"
# "CPS, <cps>, CPM, <cpm>, uSv/hr, <dose>, <mode>": CPM sits three fields after the marker.
CPM_OFFSET = 3
_FIELD_SEPARATOR = re.compile(r"[,\r\n]")


def extract_cpm(data: bytes) -> Optional[int]:
    """Counts per minute from the first complete record in ``data``.

    The counter reports once a second and readings can straddle reads, so the
    buffer is scanned for the ``CPS`` marker instead of assuming alignment.
    Returns ``None`` when no marker is present; raises ``ValueError`` when the
    record after the marker is truncated or not an integer.
    """
    fields: List[str] = _FIELD_SEPARATOR.split(data.decode("utf-8", errors="replace"))
    for index, field in enumerate(fields):
        if field.strip() != CPS_MARKER:
            continue
        try:
            raw = fields[index + CPM_OFFSET]
        except IndexError:
            raise ValueError(f"packet too short after CPS marker: {fields!r}") from None
        return int(raw.strip())
    return None


class RadiationWorker(SensorWorker):
    """Serial Geiger counter sampled once a second, reported as a one-minute mean."""

    sensor = "radiation"

    def __init__(
        self,
        port: SerialPort,
        report_every: int = 60,
        window: int = 60,
        period: float = 1.0,
        **kwargs,
    ) -> None:
        super().__init__(period=period, **kwargs)
        self.port = port
        self.report_every = report_every
        self.cpm: RollingWindow[int] = RollingWindow(window)
        self._counter = 1

    def tick(self) -> None:
        self.sample()
        if self._counter >= self.report_every:
            self.report()
            self._counter = 0
        self._counter += 1

    def sample(self) -> Optional[int]:
        try:
            data = self.port.read(READ_SIZE)
        except (SerialException, OSError) as exc:
            logger.warning("Failed to read from serial port: %s", exc, extra={"sensor": self.sensor})
            self.record_error()
            return None
        if not data:
            return None

        try:
            cpm = extract_cpm(data)
        except ValueError as exc:
            logger.error("Failed to parse CPM value: %s", exc, extra={"sensor": self.sensor})
            self.record_error()
            return None
        if cpm is None:
            return None
        self.cpm.push(cpm)
        self.record_sample()
        return cpm

    def report(self) -> None:
        logger.debug("Radiation window: %s", self.cpm.values())
        mean = self.cpm.integer_mean()
        if mean is None:
            logger.warning("No CPM samples to report", extra={"sensor": self.sensor})
            return
        self.emit_value(SensorId.RADIATION, mean)
