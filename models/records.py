"""Domain records shared across workers and services."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


_U16_MAX = 0xFFFF


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """A serialized payload addressed to a broker destination."""

    destination: str
    body: bytes


FAULT_SENTINEL = OutboundMessage(destination="poison", body=b"poison")


def is_fault_sentinel(message: OutboundMessage) -> bool:
    return (
        message.destination == FAULT_SENTINEL.destination
        and message.body == FAULT_SENTINEL.body
    )


@dataclass(frozen=True, slots=True)
class DerivedState:
    """Last jointly read temperature (C) and relative humidity (%) pair."""

    temperature: float = math.nan
    humidity: float = math.nan

    @property
    def known(self) -> bool:
        return math.isfinite(self.temperature) and math.isfinite(self.humidity)


@dataclass(frozen=True, slots=True)
class Baseline:
    """Calibration references of the gas sensor's dynamic baseline algorithm."""

    co2_reference: int
    voc_reference: int

    def __post_init__(self) -> None:
        for name in ("co2_reference", "voc_reference"):
            value = getattr(self, name)
            if not 0 <= value <= _U16_MAX:
                raise ValueError(f"{name} must fit in an unsigned 16-bit integer, got {value}")


@dataclass(frozen=True, slots=True)
class GasMeasurement:
    co2eq_ppm: int
    tvoc_ppb: int


class LightningEventKind(str, Enum):
    lightning = "lightning"
    disturber = "disturber"
    noise = "noise"


class StormDistance(str, Enum):
    overhead = "overhead"
    out_of_range = "out_of_range"
    kilometers = "kilometers"


@dataclass(frozen=True, slots=True)
class LightningEvent:
    """A single interrupt reported by the lightning detector."""

    kind: LightningEventKind
    distance: Optional[StormDistance] = None
    kilometers: Optional[int] = None

    def describe(self) -> str:
        if self.kind is LightningEventKind.noise:
            return "Noise detected."
        if self.kind is LightningEventKind.disturber:
            return "Disturber detected."
        if self.distance is StormDistance.kilometers:
            where = f"{self.kilometers} km"
        elif self.distance is StormDistance.overhead:
            where = "overhead"
        else:
            where = "out of range"
        return f"Lightning detected: {where}."
