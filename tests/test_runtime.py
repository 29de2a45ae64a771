from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import List

import httpx
import pytest
from serial import SerialException

from core.bus_guard import BusGuard
from core.channel import AggregationChannel
from drivers.base import DeviceError
from models.records import OutboundMessage
from services.publisher import FAULT_EXIT_CODE, FatalBusFault, Publisher
from services.runtime import SensorRuntime, _build_workers
from settings import get_settings
from workers.base import SensorWorker
from workers.pressure import PressureWorker
from workers.thermostat import ThermostatWorker


class RecordingBroker:
    def __init__(self) -> None:
        self.published: List[bytes] = []

    def publish(self, destination: str, payload: bytes, timeout: float) -> None:
        self.published.append(payload)


class FixedBarometer:
    def measure(self) -> float:
        return 101325.0


def _terminate() -> None:
    raise FatalBusFault(FAULT_EXIT_CODE)


def _runtime(
    channel: AggregationChannel,
    guard: BusGuard,
    workers: List[SensorWorker],
    broker,
    stop_event: threading.Event,
) -> SensorRuntime:
    publisher = Publisher(channel=channel, broker=broker, terminate=_terminate, poll_interval=0.01)
    return SensorRuntime(
        channel=channel,
        guard=guard,
        publisher=publisher,
        workers=workers,
        stop_event=stop_event,
    )


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_runtime_delivers_worker_readings_until_shutdown() -> None:
    channel = AggregationChannel()
    guard = BusGuard()
    stop_event = threading.Event()
    broker = RecordingBroker()
    worker = PressureWorker(
        FixedBarometer(),
        guard,
        period=0.01,
        channel=channel,
        topic_prefix="/ws/2/grp",
        stop_event=stop_event,
    )
    runtime = _runtime(channel, guard, [worker], broker, stop_event)

    runtime.start()
    try:
        assert _wait_for(lambda: runtime.status().publisher.delivered >= 2)
        status = runtime.status()
        assert len(broker.published) >= 2
        assert status.workers[0].state.value == "running"
        with pytest.raises(RuntimeError):
            runtime.start()
    finally:
        runtime.shutdown()

    assert _wait_for(lambda: runtime.running() == [])
    assert worker.status().state == "stopped"


class SlowBroker(RecordingBroker):
    def publish(self, destination: str, payload: bytes, timeout: float) -> None:
        time.sleep(0.05)
        super().publish(destination, payload, timeout)


def test_shutdown_delivers_queued_messages_first() -> None:
    channel = AggregationChannel()
    guard = BusGuard()
    stop_event = threading.Event()
    for index in range(3):
        channel.send(OutboundMessage(destination="/ws/2/grp/generic", body=b"%d" % index))
    broker = SlowBroker()
    runtime = _runtime(channel, guard, [], broker, stop_event)

    runtime.start()
    runtime.shutdown()

    assert channel.pending() == 0
    assert _wait_for(lambda: runtime.running() == [])
    assert broker.published == [b"0", b"1", b"2"]


def test_poisoned_guard_ends_publisher_with_fault() -> None:
    channel = AggregationChannel()
    guard = BusGuard()
    stop_event = threading.Event()
    guard.acquire(holder="gas").ticket.poison()
    worker = PressureWorker(
        FixedBarometer(),
        guard,
        period=0.01,
        channel=channel,
        topic_prefix="/ws/2/grp",
        stop_event=stop_event,
    )
    runtime = _runtime(channel, guard, [worker], RecordingBroker(), stop_event)

    runtime.start()
    try:
        with pytest.raises(FatalBusFault):
            runtime.wait(timeout=5)
        assert runtime.status().bus_guard_broken is True
    finally:
        runtime.shutdown()


def test_missing_devices_are_left_out(monkeypatch) -> None:
    def no_bus():
        raise DeviceError("I2C bus unavailable")

    def no_port(path, timeout):
        raise SerialException(f"could not open port {path}")

    monkeypatch.setattr("drivers.i2c.open_i2c", no_bus)
    monkeypatch.setattr("drivers.serial_port.open_serial", no_port)
    settings = replace(
        get_settings(),
        enabled_sensors=frozenset({"pressure", "radiation", "thermostat"}),
    )
    resources: list = []

    workers = _build_workers(settings, AggregationChannel(), BusGuard(), threading.Event(), resources)

    try:
        assert [type(worker) for worker in workers] == [ThermostatWorker]
        assert any(isinstance(resource, httpx.Client) for resource in resources)
    finally:
        for resource in resources:
            resource.close()
