"""SDS011 particulate worker.

The sensor is rated for about 8000 hours of operation, so it is only powered
for the last minute of every five: woken at tick 240 to stabilize, queried once
a second over the trailing 30 seconds, reported and put back to sleep at tick
300. That duty cycle stretches its life to roughly four and a half years.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from serial import SerialException

from core.rolling import RollingWindow
from drivers import sds011
from drivers.base import SerialPort
from models.readings import AirParticulateReading
from workers.base import SensorWorker

logger = logging.getLogger(__name__)

READ_SIZE = 20
MODE_ATTEMPTS = 3


class ParticulateWorker(SensorWorker):
    sensor = "particulate"

    def __init__(
        self,
        port: SerialPort,
        location: int,
        cycle: int = 300,
        wake_at: int = 240,
        sample_from: int = 270,
        window: int = 30,
        response_delay: float = 0.5,
        period: float = 1.0,
        **kwargs,
    ) -> None:
        if not 0 <= wake_at < sample_from < cycle:
            raise ValueError("Particulate duty cycle must satisfy wake_at < sample_from < cycle.")
        super().__init__(period=period, **kwargs)
        self.port = port
        self.location = location
        self.cycle = cycle
        self.wake_at = wake_at
        self.sample_from = sample_from
        self.response_delay = response_delay
        self.pm2_5: RollingWindow[int] = RollingWindow(window)
        self.pm10: RollingWindow[int] = RollingWindow(window)
        self._counter = 0

    def prepare(self) -> None:
        """Switch the sensor to query-only reporting, then put it to sleep."""
        # The first command after power-up often gets a bogus reply.
        for _ in range(MODE_ATTEMPTS):
            logger.info("Changing air monitor to query only mode", extra={"sensor": self.sensor})
            reply = self._exchange(sds011.QUERY_MODE_COMMAND)
            if reply is not None and sds011.is_query_mode_ack(reply):
                logger.info("Air particulate sensor switched to query only mode")
                break
            logger.error(
                "Failed to put air sensor into query only mode",
                extra={"sensor": self.sensor, "reason": reply.hex() if reply else "no reply"},
            )
        self.set_working(False)

    def tick(self) -> None:
        if self._counter == self.wake_at:
            self.set_working(True)

        if self.sample_from <= self._counter < self.cycle:
            self.sample()

        if self._counter >= self.cycle:
            self.report()
            self.set_working(False)
            self._counter = 0

        self._counter += 1

    def sample(self) -> Optional[Tuple[int, int]]:
        reply = self._exchange(sds011.QUERY_COMMAND)
        if reply is None:
            return None
        values = sds011.parse_measurement(reply)
        if values is None:
            logger.warning(
                "Reply from air sensor had no valid measurement frame",
                extra={"sensor": self.sensor, "reason": reply.hex()},
            )
            self.record_error()
            return None
        self.pm2_5.push(values[0])
        self.pm10.push(values[1])
        self.record_sample()
        return values

    def report(self) -> None:
        logger.debug("PM2.5 window: %s", self.pm2_5.values())
        logger.debug("PM10 window: %s", self.pm10.values())
        pm2_5 = self.pm2_5.integer_mean()
        pm10 = self.pm10.integer_mean()
        if pm2_5 is None or pm10 is None:
            logger.warning("No particulate samples collected this cycle", extra={"sensor": self.sensor})
            return
        self.emit(
            AirParticulateReading,
            timestamp=self.clock(),
            location=self.location,
            pm2_5=pm2_5,
            pm10=pm10,
        )

    def set_working(self, working: bool) -> bool:
        label = "on" if working else "off"
        logger.info("Turning %s air monitor", label, extra={"sensor": self.sensor})
        command = sds011.WORK_COMMAND if working else sds011.SLEEP_COMMAND
        reply = self._exchange(command)
        if reply is not None and sds011.is_work_ack(reply, working):
            logger.info("Air particulate sensor turned %s", label)
            return True
        logger.error(
            "Failed to turn %s air sensor",
            label,
            extra={"sensor": self.sensor, "reason": reply.hex() if reply else "no reply"},
        )
        return False

    def _exchange(self, command: bytes) -> Optional[bytes]:
        try:
            # Drop replies left over from an earlier command.
            self.port.reset_input_buffer()
            self.port.write(command)
        except (SerialException, OSError) as exc:
            logger.error("Failed to write to air sensor: %s", exc, extra={"sensor": self.sensor})
            self.record_error()
            return None

        # Commands take a moment to process before the reply is available.
        if self.response_delay:
            self._stop_event.wait(self.response_delay)

        try:
            return self.port.read(READ_SIZE)
        except (SerialException, OSError) as exc:
            logger.warning(
                "Failed to read from air sensor serial port: %s", exc, extra={"sensor": self.sensor}
            )
            self.record_error()
            return None
