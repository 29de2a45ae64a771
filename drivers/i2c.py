"""I2C sensor adapters backed by the Adafruit CircuitPython drivers.

The driver packages talk to hardware at import time on some platforms, so they
are imported when an adapter is built rather than at module import.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from drivers.base import DeviceError
from models.records import Baseline, GasMeasurement

BMP280_ADDRESS = 0x77

_T = TypeVar("_T")


def _device_call(description: str, call: Callable[[], _T]) -> _T:
    try:
        return call()
    except (OSError, RuntimeError, ValueError) as exc:
        raise DeviceError(f"{description}: {exc}") from exc


def open_i2c() -> Any:
    import board
    import busio

    return _device_call("I2C bus unavailable", lambda: busio.I2C(board.SCL, board.SDA))


class Bmp280Adapter:
    def __init__(self, i2c: Any, address: int = BMP280_ADDRESS) -> None:
        import adafruit_bmp280

        self._sensor = _device_call(
            "BMP280 init failed", lambda: adafruit_bmp280.Adafruit_BMP280_I2C(i2c, address=address)
        )

    def measure(self) -> float:
        # The driver reports hectopascals.
        return _device_call("BMP280 read failed", lambda: self._sensor.pressure) * 100.0


class Htu21dAdapter:
    def __init__(self, i2c: Any) -> None:
        from adafruit_htu21d import HTU21D

        self._sensor = _device_call("HTU21D init failed", lambda: HTU21D(i2c))

    def read_temperature(self) -> float:
        return _device_call("HTU21D temperature read failed", lambda: self._sensor.temperature)

    def read_humidity(self) -> float:
        return _device_call("HTU21D humidity read failed", lambda: self._sensor.relative_humidity)


class Sgp30Adapter:
    # Absolute humidity is sent to the chip as an 8.8 fixed point value.
    MAX_ABSOLUTE_HUMIDITY = 255.996

    def __init__(self, i2c: Any) -> None:
        import adafruit_sgp30

        self._sensor = _device_call("SGP30 init failed", lambda: adafruit_sgp30.Adafruit_SGP30(i2c))

    def measure(self) -> GasMeasurement:
        co2eq, tvoc = _device_call("SGP30 measure failed", self._sensor.iaq_measure)
        return GasMeasurement(co2eq_ppm=int(co2eq), tvoc_ppb=int(tvoc))

    def set_humidity(self, absolute_humidity: float) -> None:
        if not 0.0 <= absolute_humidity <= self.MAX_ABSOLUTE_HUMIDITY:
            raise DeviceError(f"absolute humidity {absolute_humidity} g/m3 out of range")
        _device_call(
            "SGP30 humidity update failed",
            lambda: self._sensor.set_iaq_humidity(absolute_humidity),
        )

    def get_baseline(self) -> Baseline:
        co2eq, tvoc = _device_call("SGP30 baseline read failed", self._sensor.get_iaq_baseline)
        return Baseline(co2_reference=int(co2eq), voc_reference=int(tvoc))

    def set_baseline(self, baseline: Baseline) -> None:
        _device_call(
            "SGP30 baseline update failed",
            lambda: self._sensor.set_iaq_baseline(baseline.co2_reference, baseline.voc_reference),
        )
