"""SGP30 air quality worker.

The sensor's dynamic baseline algorithm needs a measurement roughly once a
second, so the worker samples every tick but reports one-minute means. At
report time it also refreshes the on-chip humidity compensation from the
HTU21D pair and persists the current baseline.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.bus_guard import BusGuard
from core.derived_state import DerivedStateStore, compensation
from core.rolling import RollingWindow
from drivers.base import DeviceError, GasSensor
from models.readings import SensorId
from models.records import Baseline, GasMeasurement
from services.baseline import BaselineStore
from workers.base import SensorWorker

logger = logging.getLogger(__name__)

# One second minus the 12 ms the sensor spends measuring.
DEFAULT_PERIOD = 0.988


class GasWorker(SensorWorker):
    sensor = "gas"

    def __init__(
        self,
        device: GasSensor,
        guard: BusGuard,
        store: DerivedStateStore,
        baselines: BaselineStore,
        report_every: int = 60,
        window: int = 60,
        period: float = DEFAULT_PERIOD,
        **kwargs,
    ) -> None:
        super().__init__(period=period, **kwargs)
        self.device = device
        self.guard = guard
        self.store = store
        self.baselines = baselines
        self.report_every = report_every
        self.co2: RollingWindow[int] = RollingWindow(window)
        self.voc: RollingWindow[int] = RollingWindow(window)
        self._counter = 1
        self.restore_baseline()

    def restore_baseline(self) -> Optional[Baseline]:
        baseline = self.baselines.load()
        if baseline is None:
            return None
        with self.guard.session(holder=self.sensor):
            try:
                self.device.set_baseline(baseline)
            except DeviceError as exc:
                logger.error(
                    "Failed to apply stored baseline to SGP30: %s", exc, extra={"sensor": self.sensor}
                )
                return None
        return baseline

    def tick(self) -> None:
        measurement: Optional[GasMeasurement] = None
        with self.guard.session(holder=self.sensor):
            try:
                measurement = self.device.measure()
            except DeviceError as exc:
                logger.error("Failed to read from SGP30: %s", exc, extra={"sensor": self.sensor})
                self.record_error()

        if measurement is not None:
            self.record_sample()
            self.co2.push(measurement.co2eq_ppm)
            self.voc.push(measurement.tvoc_ppb)

        if self._counter >= self.report_every:
            self.report()
            self._counter = 0
        self._counter += 1

    def report(self) -> None:
        logger.debug("CO2 values: %s", self.co2.values())
        logger.debug("VOC values: %s", self.voc.values())
        for sensor_id, window in ((SensorId.CO2, self.co2), (SensorId.VOC, self.voc)):
            mean = window.integer_mean()
            if mean is None:
                logger.warning(
                    "No samples to report for %s", sensor_id.name, extra={"sensor": self.sensor}
                )
                continue
            self.emit_value(sensor_id, mean)

        self.apply_compensation()
        self.persist_baseline()

    def apply_compensation(self) -> Optional[float]:
        state = self.store.read()
        absolute = compensation(state)
        if absolute is None:
            logger.debug("No temperature/humidity yet, skipping SGP30 compensation")
            return None

        with self.guard.session(holder=self.sensor):
            try:
                self.device.set_humidity(absolute)
            except DeviceError as exc:
                logger.error(
                    "Failed to update the humidity value of the SGP30: %s",
                    exc,
                    extra={"sensor": self.sensor},
                )
                return None
        logger.debug(
            "Set SGP30 absolute humidity to %s from temperature %s and humidity %s",
            absolute,
            state.temperature,
            state.humidity,
        )
        return absolute

    def persist_baseline(self) -> Optional[Baseline]:
        baseline: Optional[Baseline] = None
        with self.guard.session(holder=self.sensor):
            try:
                baseline = self.device.get_baseline()
            except DeviceError as exc:
                logger.error(
                    "Failed to read the baseline data from the SGP30: %s",
                    exc,
                    extra={"sensor": self.sensor},
                )
        if baseline is not None:
            self.baselines.save(baseline)
        return baseline
