"""Single consumer of the aggregation channel: delivery with bounded retries."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from core.channel import AggregationChannel
from models.records import OutboundMessage, is_fault_sentinel
from services.broker import Broker, DeliveryError

logger = logging.getLogger(__name__)

FAULT_EXIT_CODE = 70


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    attempt_timeout: float = 1.0
    backoff: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive.")
        if self.backoff < 0:
            raise ValueError("backoff cannot be negative.")


@dataclass(frozen=True)
class DeliveryOutcome:
    delivered: bool
    attempts: int
    error: Optional[str] = None


@dataclass
class PublisherStats:
    delivered: int = 0
    dropped: int = 0
    retried: int = 0


class FatalBusFault(SystemExit):
    """Raised by terminators that stop the publisher instead of killing the process."""


def exit_process() -> None:
    logging.shutdown()
    os._exit(FAULT_EXIT_CODE)


class Publisher:
    """Drains the channel into the broker; a fault sentinel ends the process."""

    def __init__(
        self,
        channel: AggregationChannel,
        broker: Broker,
        policy: RetryPolicy | None = None,
        terminate: Callable[[], None] = exit_process,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = 0.5,
    ) -> None:
        self.channel = channel
        self.broker = broker
        self.policy = policy or RetryPolicy()
        self.stats = PublisherStats()
        self._terminate = terminate
        self._sleep = sleep
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._stats_lock = threading.Lock()

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:
        logger.info("Publisher started")
        while not self._stop.is_set():
            try:
                message = self.channel.receive(timeout=self._poll_interval)
            except queue.Empty:
                continue
            self.handle(message)
        logger.info("Publisher stopped")

    def handle(self, message: OutboundMessage) -> Optional[DeliveryOutcome]:
        if is_fault_sentinel(message):
            logger.critical(
                "A worker failed while holding the bus guard; terminating the process",
                extra={"queue_depth": self.channel.pending()},
            )
            self._terminate()
            return None
        logger.info(
            "Sending message to %r payload %r",
            message.destination,
            message.body.decode("utf-8", errors="replace"),
        )
        return self.deliver_with_retry(message)

    def deliver_with_retry(self, message: OutboundMessage) -> DeliveryOutcome:
        policy = self.policy
        last_error: Optional[str] = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                self.broker.publish(message.destination, message.body, policy.attempt_timeout)
            except DeliveryError as exc:
                last_error = str(exc)
                remaining = policy.max_attempts - attempt
                logger.debug(
                    "Failed to publish, will retry %d more times: %s",
                    remaining,
                    exc,
                    extra={"destination": message.destination, "attempt": attempt},
                )
                if remaining:
                    self._record(retried=1)
                    if policy.backoff:
                        self._sleep(policy.backoff)
                continue

            if attempt > 1:
                logger.info(
                    "Message published after %d attempts",
                    attempt,
                    extra={"destination": message.destination, "attempts": attempt},
                )
            else:
                logger.debug("Message published", extra={"destination": message.destination})
            self._record(delivered=1)
            return DeliveryOutcome(delivered=True, attempts=attempt)

        logger.error(
            "Failed to publish message after %d attempts, it will be dropped",
            policy.max_attempts,
            extra={
                "destination": message.destination,
                "attempts": policy.max_attempts,
                "reason": last_error,
            },
        )
        self._record(dropped=1)
        return DeliveryOutcome(delivered=False, attempts=policy.max_attempts, error=last_error)

    def snapshot(self) -> PublisherStats:
        with self._stats_lock:
            return PublisherStats(
                delivered=self.stats.delivered,
                dropped=self.stats.dropped,
                retried=self.stats.retried,
            )

    def _record(self, delivered: int = 0, dropped: int = 0, retried: int = 0) -> None:
        with self._stats_lock:
            self.stats.delivered += delivered
            self.stats.dropped += dropped
            self.stats.retried += retried
