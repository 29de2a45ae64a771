from __future__ import annotations

import queue
from typing import Optional

from models.records import OutboundMessage


class AggregationChannel:
    """Unbounded multi-producer, single-consumer FIFO of outbound messages.

    ``send`` never blocks, so a slow broker cannot perturb sampling cadence.
    """

    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[OutboundMessage]" = queue.SimpleQueue()

    def send(self, message: OutboundMessage) -> None:
        self._queue.put(message)

    def receive(self, timeout: Optional[float] = None) -> OutboundMessage:
        """Block for the next message; raises ``queue.Empty`` when ``timeout`` elapses."""
        return self._queue.get(timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()
