"""Assembly and lifecycle of the sampling and delivery threads."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from app.schemas import PublisherReport, RuntimeStatus, WorkerReport
from core.bus_guard import BusGuard
from core.channel import AggregationChannel
from core.derived_state import DerivedStateStore
from drivers.base import DeviceError
from services.baseline import build_default_baseline_store
from services.broker import MqttBroker
from services.publisher import Publisher, RetryPolicy
from settings import Settings, get_settings
from workers.base import SensorWorker

logger = logging.getLogger(__name__)

PUBLISHER = "publisher"
DRAIN_TIMEOUT = 5.0

# Construction order; the HTU21D precedes the SGP30 so compensation data starts flowing early.
SENSOR_ORDER = (
    "pressure",
    "temp_humidity",
    "gas",
    "radiation",
    "particulate",
    "thermostat",
    "lightning",
)


class SensorRuntime:
    """Runs every worker plus the publisher, one thread each."""

    def __init__(
        self,
        channel: AggregationChannel,
        guard: BusGuard,
        publisher: Publisher,
        workers: Sequence[SensorWorker],
        stop_event: threading.Event,
        resources: Sequence[Any] = (),
        drain_timeout: float = DRAIN_TIMEOUT,
    ) -> None:
        self.channel = channel
        self.guard = guard
        self.publisher = publisher
        self.workers = list(workers)
        self.stop_event = stop_event
        self.executor = ThreadPoolExecutor(
            max_workers=len(self.workers) + 1, thread_name_prefix="indoor-sensors"
        )
        self.drain_timeout = drain_timeout
        self._resources = list(resources)
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = threading.Lock()
        self._started = False

    def start(self) -> None:
        if self._started:
            raise RuntimeError("Sensor runtime already started.")
        self._started = True
        self._submit(PUBLISHER, self.publisher.run)
        for worker in self.workers:
            self._submit(worker.sensor, worker.run)
        logger.info("Started %d sensor workers", len(self.workers))

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the publisher loop returns."""
        with self._futures_lock:
            future = self._futures.get(PUBLISHER)
        if future is not None:
            future.result(timeout=timeout)

    def running(self) -> List[str]:
        with self._futures_lock:
            return sorted(name for name, future in self._futures.items() if not future.done())

    def shutdown(self) -> None:
        """Stop every loop, release collaborators and abandon the executor."""
        self.stop_event.set()
        for worker in self.workers:
            worker.stop()
        self._drain()
        self.publisher.stop()
        self.executor.shutdown(wait=False, cancel_futures=True)
        for resource in self._resources:
            try:
                resource.close()
            except Exception:  # noqa: BLE001 - best effort cleanup
                logger.warning("Failed to close %r", resource, exc_info=True)

    def status(self) -> RuntimeStatus:
        stats = self.publisher.snapshot()
        return RuntimeStatus(
            workers=[
                WorkerReport.model_validate(worker.status(), from_attributes=True)
                for worker in self.workers
            ],
            publisher=PublisherReport(
                delivered=stats.delivered, dropped=stats.dropped, retried=stats.retried
            ),
            queue_depth=self.channel.pending(),
            bus_guard_broken=self.guard.broken,
        )

    def _drain(self) -> None:
        """Give the publisher a bounded chance to deliver what is still queued."""
        deadline = time.monotonic() + self.drain_timeout
        while self.channel.pending() and PUBLISHER in self.running():
            if time.monotonic() >= deadline:
                logger.warning(
                    "Abandoning %d queued messages at shutdown",
                    self.channel.pending(),
                    extra={"queue_depth": self.channel.pending()},
                )
                return
            time.sleep(0.05)

    def _submit(self, name: str, target: Callable[[], None]) -> None:
        future = self.executor.submit(target)
        with self._futures_lock:
            self._futures[name] = future
        future.add_done_callback(lambda f, n=name: self._on_done(n, f))

    def _on_done(self, name: str, future: Future[None]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                "%s thread died", name, exc_info=error, extra={"sensor": name, "state": "dead"}
            )
        else:
            logger.info("%s thread finished", name, extra={"sensor": name})


def _build_workers(
    settings: Settings,
    channel: AggregationChannel,
    guard: BusGuard,
    stop_event: threading.Event,
    resources: List[Any],
) -> List[SensorWorker]:
    from drivers import i2c, serial_port

    store = DerivedStateStore()
    common: Dict[str, Any] = {
        "channel": channel,
        "topic_prefix": settings.topic_prefix,
        "stop_event": stop_event,
    }
    shared_bus = lru_cache(maxsize=None)(i2c.open_i2c)

    def pressure() -> SensorWorker:
        from workers.pressure import PressureWorker

        return PressureWorker(i2c.Bmp280Adapter(shared_bus()), guard, **common)

    def temp_humidity() -> SensorWorker:
        from workers.temp_humidity import TempHumidityWorker

        return TempHumidityWorker(
            i2c.Htu21dAdapter(shared_bus()), guard, store, location=settings.location, **common
        )

    def gas() -> SensorWorker:
        from workers.gas import GasWorker

        return GasWorker(
            i2c.Sgp30Adapter(shared_bus()), guard, store, build_default_baseline_store(), **common
        )

    def radiation() -> SensorWorker:
        from workers.radiation import RadiationWorker

        port = serial_port.open_serial(settings.geiger_port, serial_port.GEIGER_READ_TIMEOUT)
        resources.append(port)
        return RadiationWorker(port, **common)

    def particulate() -> SensorWorker:
        from workers.particulate import ParticulateWorker

        port = serial_port.open_serial(
            settings.particulate_port, serial_port.PARTICULATE_READ_TIMEOUT
        )
        resources.append(port)
        worker = ParticulateWorker(port, location=settings.location, **common)
        worker.prepare()
        return worker

    def thermostat() -> SensorWorker:
        from workers.thermostat import ThermostatWorker

        client = httpx.Client()
        resources.append(client)
        return ThermostatWorker(
            client, settings.thermostat_url, timeout=settings.thermostat_timeout, **common
        )

    def lightning() -> SensorWorker:
        from drivers.as3935 import As3935Source
        from workers.lightning import LightningWorker

        source = As3935Source(guard, settings.i2c_bus, settings.lightning_irq_pin)
        return LightningWorker(source, **common)

    builders: Dict[str, Callable[[], SensorWorker]] = {
        "pressure": pressure,
        "temp_humidity": temp_humidity,
        "gas": gas,
        "radiation": radiation,
        "particulate": particulate,
        "thermostat": thermostat,
        "lightning": lightning,
    }

    workers: List[SensorWorker] = []
    for name in SENSOR_ORDER:
        if name not in settings.enabled_sensors:
            logger.info("Sensor %s disabled by configuration", name, extra={"sensor": name})
            continue
        try:
            workers.append(builders[name]())
        except (DeviceError, OSError, ImportError) as exc:
            logger.error(
                "Failed to initialize %s, running without it",
                name,
                extra={"sensor": name, "reason": str(exc)},
            )
    return workers


@lru_cache
def build_default_runtime() -> SensorRuntime:
    """Factory that wires real hardware, the MQTT broker and configured policies."""
    settings = get_settings()
    channel = AggregationChannel()
    guard = BusGuard()
    stop_event = threading.Event()
    resources: List[Any] = []

    workers = _build_workers(settings, channel, guard, stop_event, resources)

    broker = MqttBroker(settings.mqtt_host, settings.mqtt_port, settings.mqtt_client_id)
    broker.connect()
    resources.append(broker)

    policy = RetryPolicy(
        max_attempts=settings.publish_max_attempts,
        attempt_timeout=settings.publish_attempt_timeout,
        backoff=settings.publish_backoff,
    )
    publisher = Publisher(channel=channel, broker=broker, policy=policy)
    return SensorRuntime(
        channel=channel,
        guard=guard,
        publisher=publisher,
        workers=workers,
        stop_event=stop_event,
        resources=resources,
    )
