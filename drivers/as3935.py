"""AS3935 lightning detector: interrupt-driven event source on the shared bus."""

from __future__ import annotations

import logging
import queue
import time
from typing import Iterator, Optional, Union

from smbus2 import SMBus

from core.bus_guard import BusGuard, BusGuardBroken
from drivers.base import DeviceError
from models.records import LightningEvent, LightningEventKind, StormDistance

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = 0x03

REG_AFE_GAIN = 0x00
REG_THRESHOLD = 0x01
REG_INTERRUPT = 0x03
REG_DISTANCE = 0x07
REG_PRESET_DEFAULT = 0x3C
DIRECT_COMMAND = 0x96

AFE_INDOOR = 0x12
AFE_OUTDOOR = 0x0E

INT_NOISE = 0x01
INT_DISTURBER = 0x04
INT_LIGHTNING = 0x08

DISTANCE_OVERHEAD = 0x01
DISTANCE_OUT_OF_RANGE = 0x3F

# The interrupt register is only valid 2 ms after the IRQ line goes high.
_IRQ_SETTLE_SECONDS = 0.002

_Item = Union[LightningEvent, BusGuardBroken, None]


def decode_event(interrupt: int, distance: int) -> Optional[LightningEvent]:
    """Event for the raw interrupt and distance registers, or ``None`` if spurious."""
    reason = interrupt & 0x0F
    if reason == INT_NOISE:
        return LightningEvent(kind=LightningEventKind.noise)
    if reason == INT_DISTURBER:
        return LightningEvent(kind=LightningEventKind.disturber)
    if reason != INT_LIGHTNING:
        return None

    estimate = distance & 0x3F
    if estimate == DISTANCE_OVERHEAD:
        return LightningEvent(kind=LightningEventKind.lightning, distance=StormDistance.overhead)
    if estimate == DISTANCE_OUT_OF_RANGE:
        return LightningEvent(kind=LightningEventKind.lightning, distance=StormDistance.out_of_range)
    return LightningEvent(
        kind=LightningEventKind.lightning,
        distance=StormDistance.kilometers,
        kilometers=estimate,
    )


class As3935Source:
    """Registers a GPIO edge callback and queues decoded events for the worker."""

    def __init__(
        self,
        guard: BusGuard,
        bus_number: int,
        irq_pin: int,
        address: int = DEFAULT_ADDRESS,
        indoor: bool = True,
        spike_rejection: int = 2,
    ) -> None:
        import RPi.GPIO as GPIO

        self._gpio = GPIO
        self.guard = guard
        self.address = address
        self.irq_pin = irq_pin
        self._bus = SMBus(bus_number)
        self._events: "queue.SimpleQueue[_Item]" = queue.SimpleQueue()
        self._configure(indoor=indoor, spike_rejection=spike_rejection)

        GPIO.setmode(GPIO.BCM)
        GPIO.setup(irq_pin, GPIO.IN)
        GPIO.add_event_detect(irq_pin, GPIO.RISING, callback=self._on_interrupt)

    def events(self) -> Iterator[LightningEvent]:
        while True:
            item = self._events.get()
            if item is None:
                return
            if isinstance(item, BusGuardBroken):
                raise item
            yield item

    def close(self) -> None:
        self._gpio.remove_event_detect(self.irq_pin)
        self._events.put(None)
        self._bus.close()

    def _configure(self, indoor: bool, spike_rejection: int) -> None:
        gain = AFE_INDOOR if indoor else AFE_OUTDOOR
        with self.guard.session(holder="lightning"):
            try:
                self._bus.write_byte_data(self.address, REG_PRESET_DEFAULT, DIRECT_COMMAND)
                self._bus.write_byte_data(self.address, REG_AFE_GAIN, gain << 1)
                threshold = self._bus.read_byte_data(self.address, REG_THRESHOLD)
                self._bus.write_byte_data(
                    self.address, REG_THRESHOLD, (threshold & 0xF0) | (spike_rejection & 0x0F)
                )
            except OSError as exc:
                raise DeviceError(f"AS3935 configuration failed: {exc}") from exc

    def _on_interrupt(self, _channel: int) -> None:
        time.sleep(_IRQ_SETTLE_SECONDS)
        try:
            with self.guard.session(holder="lightning"):
                interrupt = self._bus.read_byte_data(self.address, REG_INTERRUPT)
                distance = self._bus.read_byte_data(self.address, REG_DISTANCE)
        except BusGuardBroken as exc:
            self._events.put(exc)
            return
        except OSError as exc:
            logger.error("Failed to read AS3935 interrupt: %s", exc, extra={"sensor": "lightning"})
            return

        event = decode_event(interrupt, distance)
        if event is not None:
            self._events.put(event)
