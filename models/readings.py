"""Pydantic schemas for the payloads published to the broker."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import OutboundMessage


class SensorId(IntEnum):
    """Physical quantities reported as single-value readings."""

    CO2 = 52
    VOC = 53
    PRESSURE = 54
    RADIATION = 55


class Destination(str, Enum):
    """Broker destinations, relative to the configured topic prefix."""

    generic = "generic"
    temp_humidity = "temp_humidity"
    air_particulate = "air_particulate"
    thermostat = "thermostat"


class Payload(BaseModel):
    """Base for every broker payload; the subclass decides the destination."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    destination: ClassVar[Destination]

    def topic(self, prefix: str) -> str:
        return f"{prefix.rstrip('/')}/{self.destination.value}"

    def to_message(self, prefix: str) -> OutboundMessage:
        body = self.model_dump_json(exclude_none=True).encode("utf-8")
        return OutboundMessage(destination=self.topic(prefix), body=body)


class SensorReading(Payload):
    """A single named quantity with its value encoded as decimal text."""

    destination: ClassVar[Destination] = Destination.generic

    sensor_id: SensorId
    timestamp: int = Field(..., ge=0, description="Milliseconds since the Unix epoch.")
    value: str

    @field_validator("value")
    @classmethod
    def _check_decimal(cls, value: str) -> str:
        try:
            parsed = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"{value!r} is not a decimal number") from exc
        if not parsed.is_finite():
            raise ValueError(f"{value!r} is not a finite decimal number")
        return value


def format_value(number: Union[int, float]) -> str:
    """Decimal text for a reading: integers as-is, floats as their shortest round-trip form."""
    if isinstance(number, int):
        return str(number)
    return repr(float(number))


class TempHumidityReading(Payload):
    destination: ClassVar[Destination] = Destination.temp_humidity

    timestamp: int = Field(..., ge=0)
    location: int
    temp: float = Field(..., description="Degrees Fahrenheit.")
    humidity: float = Field(..., description="Relative humidity in percent.")


class AirParticulateReading(Payload):
    destination: ClassVar[Destination] = Destination.air_particulate

    timestamp: int = Field(..., ge=0)
    location: int
    pm2_5: int = Field(..., description="PM2.5 in tenths of ug/m3.")
    pm10: int = Field(..., description="PM10 in tenths of ug/m3.")


class ThermostatReading(Payload):
    """Subset of the thermostat's ``/tstat`` document."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False, extra="ignore")

    destination: ClassVar[Destination] = Destination.thermostat

    timestamp: int = Field(default=0, ge=0)
    temp: float
    tmode: int
    fmode: int
    override: int
    hold: int
    t_heat: Optional[float] = None
    t_cool: Optional[float] = None
    tstate: Optional[int] = None
    fstate: Optional[int] = None
