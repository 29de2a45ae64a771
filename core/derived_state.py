"""Temperature/humidity pair shared between the HTU21D and SGP30 workers."""

from __future__ import annotations

import math
import threading
from typing import Optional

from models.records import DerivedState

UNKNOWN = DerivedState()


class DerivedStateStore:
    """Last published pair, guarded by its own lock (never nested with the bus guard)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = UNKNOWN

    def publish(self, temperature: float, humidity: float) -> None:
        with self._lock:
            self._state = DerivedState(temperature=temperature, humidity=humidity)

    def read(self) -> DerivedState:
        with self._lock:
            return self._state


def absolute_humidity(temperature: float, humidity: float) -> float:
    """Absolute humidity in g/m3 from degrees Celsius and percent relative humidity."""
    saturation = 6.112 * math.exp((17.67 * temperature) / (temperature + 243.5))
    return saturation * humidity * 2.1674 / (273.15 + temperature)


def compensation(state: DerivedState) -> Optional[float]:
    """Absolute humidity for ``state``, or ``None`` while the pair is unknown."""
    if not state.known:
        return None
    return absolute_humidity(state.temperature, state.humidity)
