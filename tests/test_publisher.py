from __future__ import annotations

from typing import List, Tuple

import pytest

from core.channel import AggregationChannel
from models.records import FAULT_SENTINEL, OutboundMessage
from services.broker import DeliveryError
from services.publisher import (
    FAULT_EXIT_CODE,
    FatalBusFault,
    Publisher,
    RetryPolicy,
)


class FlakyBroker:
    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: List[Tuple[str, bytes, float]] = []
        self.delivered: List[Tuple[str, bytes]] = []

    def publish(self, destination: str, payload: bytes, timeout: float) -> None:
        self.calls.append((destination, payload, timeout))
        if self.failures > 0:
            self.failures -= 1
            raise DeliveryError("no PUBCOMP")
        self.delivered.append((destination, payload))


def _terminate() -> None:
    raise FatalBusFault(FAULT_EXIT_CODE)


def _publisher(broker: FlakyBroker, sleeps: List[float], channel=None) -> Publisher:
    return Publisher(
        channel=channel or AggregationChannel(),
        broker=broker,
        policy=RetryPolicy(max_attempts=5, attempt_timeout=1.0, backoff=0.1),
        terminate=_terminate,
        sleep=sleeps.append,
        poll_interval=0.01,
    )


def _message(index: int) -> OutboundMessage:
    return OutboundMessage(destination="/ws/2/grp/generic", body=f'{{"n":{index}}}'.encode())


def test_delivered_after_four_failures() -> None:
    broker = FlakyBroker(failures=4)
    sleeps: List[float] = []
    publisher = _publisher(broker, sleeps)

    outcome = publisher.deliver_with_retry(_message(1))

    assert outcome.delivered is True
    assert outcome.attempts == 5
    assert len(broker.calls) == 5
    assert all(call[2] == 1.0 for call in broker.calls)
    assert sleeps == [0.1] * 4
    stats = publisher.snapshot()
    assert (stats.delivered, stats.dropped, stats.retried) == (1, 0, 4)


def test_dropped_after_five_failures_and_next_message_still_sent() -> None:
    broker = FlakyBroker(failures=5)
    sleeps: List[float] = []
    publisher = _publisher(broker, sleeps)

    dropped = publisher.deliver_with_retry(_message(1))
    delivered = publisher.deliver_with_retry(_message(2))

    assert dropped.delivered is False
    assert dropped.attempts == 5
    assert dropped.error == "no PUBCOMP"
    # Backoff only between attempts, never after the last one.
    assert sleeps == [0.1] * 4
    assert delivered.delivered is True
    assert broker.delivered == [("/ws/2/grp/generic", b'{"n":2}')]
    stats = publisher.snapshot()
    assert (stats.delivered, stats.dropped) == (1, 1)


def test_sentinel_terminates_after_earlier_messages() -> None:
    channel = AggregationChannel()
    broker = FlakyBroker()
    publisher = _publisher(broker, [], channel=channel)
    for index in range(3):
        channel.send(_message(index))
    channel.send(FAULT_SENTINEL)
    channel.send(_message(99))

    with pytest.raises(FatalBusFault) as excinfo:
        publisher.run()

    assert excinfo.value.code == FAULT_EXIT_CODE
    assert [body for _, body in broker.delivered] == [b'{"n":0}', b'{"n":1}', b'{"n":2}']
    assert channel.pending() == 1


def test_sentinel_is_never_published() -> None:
    broker = FlakyBroker()
    terminated: List[bool] = []
    publisher = Publisher(
        channel=AggregationChannel(),
        broker=broker,
        terminate=lambda: terminated.append(True),
    )

    assert publisher.handle(FAULT_SENTINEL) is None
    assert terminated == [True]
    assert broker.calls == []


def test_stop_ends_run_loop() -> None:
    publisher = _publisher(FlakyBroker(), [])
    publisher.stop()

    publisher.run()

    assert publisher.snapshot().delivered == 0


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"attempt_timeout": 0}, {"backoff": -0.1}],
)
def test_retry_policy_validation(kwargs) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
