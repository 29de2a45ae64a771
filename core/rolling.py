from __future__ import annotations

from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar

Number = TypeVar("Number", int, float)


class RollingWindow(Generic[Number]):
    """Fixed-capacity buffer of the most recent samples; oldest values age out."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Rolling window capacity must be positive.")
        self.capacity = capacity
        self._values: Deque[Number] = deque(maxlen=capacity)

    def push(self, value: Number) -> None:
        self._values.append(value)

    def values(self) -> List[Number]:
        """Samples from oldest to newest."""
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    def mean(self) -> Optional[float]:
        if not self._values:
            return None
        return sum(self._values) / len(self._values)

    def integer_mean(self) -> Optional[int]:
        """Floor of the mean, matching unsigned integer division of the sum."""
        if not self._values:
            return None
        return int(sum(self._values) // len(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RollingWindow(capacity={self.capacity}, values={self.values()!r})"

