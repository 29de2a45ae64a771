"""Interfaces of the device collaborators consumed by the sensor workers."""

from __future__ import annotations

from typing import Iterator, Protocol

from models.records import Baseline, GasMeasurement, LightningEvent


class DeviceError(Exception):
    """A device transaction failed; the reading for this cycle is lost."""


class PressureSensor(Protocol):
    def measure(self) -> float:
        """Return the barometric pressure in pascals."""
        ...


class TempHumiditySensor(Protocol):
    def read_temperature(self) -> float:
        """Return the temperature in degrees Celsius."""
        ...

    def read_humidity(self) -> float:
        """Return the relative humidity in percent."""
        ...


class GasSensor(Protocol):
    def measure(self) -> GasMeasurement:
        ...

    def set_humidity(self, absolute_humidity: float) -> None:
        """Feed the absolute humidity (g/m3) used for on-chip compensation."""
        ...

    def get_baseline(self) -> Baseline:
        ...

    def set_baseline(self, baseline: Baseline) -> None:
        ...


class SerialPort(Protocol):
    """The subset of ``serial.Serial`` the serial workers rely on."""

    def read(self, size: int = 1) -> bytes:
        ...

    def write(self, data: bytes) -> int | None:
        ...

    def reset_input_buffer(self) -> None:
        ...


class LightningSource(Protocol):
    def events(self) -> Iterator[LightningEvent]:
        """Block for and yield detector interrupts until the source is closed."""
        ...

    def close(self) -> None:
        ...
