from __future__ import annotations

import logging
import sys
import threading
import time

import paho.mqtt.client as mqtt
import pytest

from core.channel import AggregationChannel
from logging_config import ContextualFormatter
from models.records import OutboundMessage
from services.broker import DeliveryError, MqttBroker
from services.publisher import Publisher, RetryPolicy


class FakeMessageInfo:
    def __init__(self, rc: int = mqtt.MQTT_ERR_SUCCESS, published: bool = True) -> None:
        self.rc = rc
        self._published = published
        self.waited_for = None

    def wait_for_publish(self, timeout=None) -> None:
        self.waited_for = timeout

    def is_published(self) -> bool:
        return self._published


class FakeClient:
    def __init__(self, info: FakeMessageInfo) -> None:
        self.info = info
        self.calls = []

    def publish(self, topic, payload, qos=0, retain=False):
        if "+" in topic or "#" in topic:
            raise ValueError("Publish topic cannot contain wildcards.")
        self.calls.append((topic, payload, qos, retain))
        return self.info


def _broker(info: FakeMessageInfo) -> tuple[MqttBroker, FakeClient]:
    broker = MqttBroker("localhost", 1883, "indoor_sensors_test")
    client = FakeClient(info)
    broker._client = client
    return broker, client


def test_publish_waits_for_qos2_handshake() -> None:
    info = FakeMessageInfo()
    broker, client = _broker(info)

    broker.publish("/ws/2/grp/generic", b"{}", timeout=1.0)

    assert client.calls == [("/ws/2/grp/generic", b"{}", 2, False)]
    assert info.waited_for == 1.0


def test_publish_without_acknowledgement_fails() -> None:
    broker, _ = _broker(FakeMessageInfo(published=False))

    with pytest.raises(DeliveryError):
        broker.publish("/ws/2/grp/generic", b"{}", timeout=0.5)


def test_publish_rejected_by_client_fails() -> None:
    broker, _ = _broker(FakeMessageInfo(rc=mqtt.MQTT_ERR_NO_CONN))

    with pytest.raises(DeliveryError):
        broker.publish("/ws/2/grp/generic", b"{}", timeout=0.5)


def test_publish_to_wildcard_topic_fails() -> None:
    broker, client = _broker(FakeMessageInfo())

    with pytest.raises(DeliveryError):
        broker.publish("/ws/+/grp/generic", b"{}", timeout=0.5)
    assert client.calls == []


def test_publisher_survives_rejected_topic_and_delivers_next_message() -> None:
    broker, client = _broker(FakeMessageInfo())
    channel = AggregationChannel()
    channel.send(OutboundMessage(destination="/ws/+/grp/generic", body=b'{"n":1}'))
    channel.send(OutboundMessage(destination="/ws/2/grp/generic", body=b'{"n":2}'))
    publisher = Publisher(
        channel=channel,
        broker=broker,
        policy=RetryPolicy(max_attempts=2, attempt_timeout=0.5, backoff=0),
        poll_interval=0.01,
    )
    thread = threading.Thread(target=publisher.run)
    thread.start()
    deadline = time.monotonic() + 5
    while publisher.snapshot().delivered < 1 and time.monotonic() < deadline:
        time.sleep(0.01)
    publisher.stop()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert client.calls == [("/ws/2/grp/generic", b'{"n":2}', 2, False)]
    stats = publisher.snapshot()
    assert (stats.delivered, stats.dropped) == (1, 1)


def test_contextual_formatter_appends_extra_keys() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")
    record = logging.LogRecord("workers.gas", logging.ERROR, __file__, 1, "Failed to read", None, None)
    record.sensor = "gas"
    record.attempt = None

    assert formatter.format(record) == "ERROR Failed to read | sensor=gas"


def test_contextual_formatter_quotes_values_and_keeps_traceback_last() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")
    try:
        raise OSError("Remote I/O error")
    except OSError:
        record = logging.LogRecord(
            "workers.pressure", logging.ERROR, __file__, 1, "read failed", None, sys.exc_info()
        )
    record.reason = "Remote I/O error"

    first_line, *rest = formatter.format(record).splitlines()

    assert first_line == 'read failed | reason="Remote I/O error"'
    assert rest[0].startswith("Traceback")
    assert rest[-1] == "OSError: Remote I/O error"
