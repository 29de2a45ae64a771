"""Common scaffolding for the periodic sensor workers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Type, Union

from core.bus_guard import BusGuard, BusGuardBroken
from core.channel import AggregationChannel
from models.readings import Payload, SensorId, SensorReading, format_value
from models.records import FAULT_SENTINEL

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class WorkerStatus:
    name: str
    state: str = "idle"
    samples: int = 0
    emitted: int = 0
    errors: int = 0
    last_sample_at: Optional[int] = None
    last_emit_at: Optional[int] = None


class SensorWorker:
    """One sampling task: ``run`` sleeps for ``period`` then calls ``tick``.

    Subclasses implement ``tick``. A ``BusGuardBroken`` escaping ``tick`` sends
    the fault sentinel and ends the loop, as does any other error that leaves
    the guard broken. Remaining errors are logged and the loop carries on with
    the next period.
    """

    sensor = "sensor"
    guard: Optional[BusGuard] = None

    def __init__(
        self,
        channel: AggregationChannel,
        period: float,
        topic_prefix: str,
        stop_event: Optional[threading.Event] = None,
        clock: Clock = now_millis,
    ) -> None:
        self.channel = channel
        self.period = period
        self.topic_prefix = topic_prefix
        self.clock = clock
        self._stop_event = stop_event or threading.Event()
        self._status = WorkerStatus(name=self.sensor)
        self._status_lock = threading.Lock()

    def tick(self) -> None:
        raise NotImplementedError

    def run(self) -> None:
        logger.info("Started %s worker", self.sensor, extra={"sensor": self.sensor})
        self._update(state="running")
        while not self._stop_event.wait(self.period):
            try:
                self.tick()
            except BusGuardBroken:
                self.fault()
                return
            except Exception:
                logger.exception(
                    "Unexpected failure in %s worker", self.sensor, extra={"sensor": self.sensor}
                )
                self.record_error()
                if self.guard is not None and self.guard.broken:
                    self.fault()
                    return
        self._update(state="stopped")

    def stop(self) -> None:
        self._stop_event.set()

    def fault(self) -> None:
        logger.error(
            "The bus guard has been poisoned, sending a fault sentinel to stop the process",
            extra={"sensor": self.sensor, "state": "faulted"},
        )
        self._update(state="faulted")
        self.channel.send(FAULT_SENTINEL)

    def emit(self, payload_type: Type[Payload], **fields: Any) -> bool:
        """Build a payload and enqueue it; invalid values are logged and dropped."""
        try:
            payload = payload_type(**fields)
        except ValueError as exc:
            logger.error(
                "Discarding invalid %s value",
                payload_type.__name__,
                extra={"sensor": self.sensor, "reason": str(exc)},
            )
            self.record_error()
            return False
        return self.publish(payload)

    def emit_value(self, sensor_id: SensorId, number: Union[int, float]) -> bool:
        return self.emit(
            SensorReading,
            sensor_id=sensor_id,
            timestamp=self.clock(),
            value=format_value(number),
        )

    def publish(self, payload: Payload) -> bool:
        try:
            message = payload.to_message(self.topic_prefix)
        except ValueError as exc:
            logger.error(
                "Failed to serialize the %s value",
                type(payload).__name__,
                extra={"sensor": self.sensor, "reason": str(exc)},
            )
            self.record_error()
            return False
        self.channel.send(message)
        with self._status_lock:
            self._status.emitted += 1
            self._status.last_emit_at = self.clock()
        return True

    def record_sample(self) -> None:
        with self._status_lock:
            self._status.samples += 1
            self._status.last_sample_at = self.clock()

    def record_error(self) -> None:
        with self._status_lock:
            self._status.errors += 1

    def status(self) -> WorkerStatus:
        with self._status_lock:
            return replace(self._status)

    def _update(self, **changes: object) -> None:
        with self._status_lock:
            for key, value in changes.items():
                setattr(self._status, key, value)
