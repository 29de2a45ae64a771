"""Mutual exclusion for the shared I2C bus.

Every worker that talks to a bus-attached device holds the guard for exactly one
device transaction. A transaction that fails with an unexpected exception leaves
the bus in an unknown state, so the guard is poisoned and stays broken for every
subsequent caller; transient device errors release it normally.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Iterator, Optional, Tuple, Type

from drivers.base import DeviceError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (DeviceError, OSError)


class BusGuardBroken(RuntimeError):
    """The guard was poisoned by a failed critical section."""


class BusGuardTimeout(TimeoutError):
    """The guard could not be acquired within the requested timeout."""


class AcquireStatus(str, Enum):
    acquired = "acquired"
    would_block = "would_block"
    broken = "broken"


class GuardTicket:
    """Proof of exclusive bus access; release exactly once."""

    def __init__(self, guard: "BusGuard", holder: str) -> None:
        self._guard = guard
        self.holder = holder
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise RuntimeError(f"Bus guard ticket held by {self.holder!r} released twice.")
        self._released = True
        self._guard._release()

    def poison(self) -> None:
        if self._released:
            raise RuntimeError(f"Bus guard ticket held by {self.holder!r} already released.")
        self._released = True
        self._guard._poison(self.holder)

    def __enter__(self) -> "GuardTicket":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._released:
            return
        if exc is None or isinstance(exc, TRANSIENT_ERRORS):
            self.release()
        else:
            self.poison()


@dataclass(frozen=True)
class Acquisition:
    status: AcquireStatus
    ticket: Optional[GuardTicket] = None

    @property
    def acquired(self) -> bool:
        return self.status is AcquireStatus.acquired


class BusGuard:
    """Tri-state lock: grants a ticket, reports a timeout, or reports it is broken."""

    def __init__(self, name: str = "i2c") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._broken = False
        self._poisoned_by: Optional[str] = None

    @property
    def broken(self) -> bool:
        return self._broken

    @property
    def poisoned_by(self) -> Optional[str]:
        return self._poisoned_by

    def acquire(self, timeout: Optional[float] = None, holder: str = "") -> Acquisition:
        if self._broken:
            return Acquisition(AcquireStatus.broken)
        if timeout is None:
            got_it = self._lock.acquire()
        else:
            got_it = self._lock.acquire(timeout=max(timeout, 0.0))
        if not got_it:
            return Acquisition(AcquireStatus.would_block)
        if self._broken:
            self._lock.release()
            return Acquisition(AcquireStatus.broken)
        return Acquisition(AcquireStatus.acquired, GuardTicket(self, holder or threading.current_thread().name))

    @contextmanager
    def session(self, timeout: Optional[float] = None, holder: str = "") -> Iterator[GuardTicket]:
        """Hold the guard for one transaction, raising when it cannot be trusted."""
        acquisition = self.acquire(timeout=timeout, holder=holder)
        if acquisition.status is AcquireStatus.broken:
            raise BusGuardBroken(
                f"Bus guard {self.name!r} was poisoned by {self._poisoned_by!r}."
            )
        if acquisition.status is AcquireStatus.would_block:
            raise BusGuardTimeout(f"Bus guard {self.name!r} busy after {timeout}s.")
        assert acquisition.ticket is not None
        with acquisition.ticket as ticket:
            yield ticket

    def _release(self) -> None:
        self._lock.release()

    def _poison(self, holder: str) -> None:
        self._broken = True
        self._poisoned_by = holder
        logger.error(
            "Bus guard %s poisoned by a failed transaction",
            self.name,
            extra={"sensor": holder, "state": "broken"},
        )
        self._lock.release()
