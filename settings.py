from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet


_MQTT_HOST_ENV = "MQTT_HOST"
_MQTT_PORT_ENV = "MQTT_PORT"
_MQTT_CLIENT_ID_ENV = "MQTT_CLIENT_ID"
_MAX_ATTEMPTS_ENV = "PUBLISH_MAX_ATTEMPTS"
_ATTEMPT_TIMEOUT_ENV = "PUBLISH_ATTEMPT_TIMEOUT_MS"
_BACKOFF_ENV = "PUBLISH_BACKOFF_MS"
_TOPIC_PREFIX_ENV = "TOPIC_PREFIX"
_LOCATION_ENV = "SENSOR_LOCATION"
_I2C_BUS_ENV = "I2C_BUS"
_GEIGER_PORT_ENV = "GEIGER_SERIAL_PORT"
_PARTICULATE_PORT_ENV = "PARTICULATE_SERIAL_PORT"
_THERMOSTAT_URL_ENV = "THERMOSTAT_URL"
_THERMOSTAT_TIMEOUT_ENV = "THERMOSTAT_TIMEOUT_S"
_LIGHTNING_PIN_ENV = "LIGHTNING_IRQ_PIN"
_BASELINE_DIR_ENV = "BASELINE_DIR"
_ENABLED_SENSORS_ENV = "ENABLED_SENSORS"
_STATUS_PORT_ENV = "STATUS_PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

ALL_SENSORS: FrozenSet[str] = frozenset(
    {
        "pressure",
        "temp_humidity",
        "gas",
        "radiation",
        "particulate",
        "thermostat",
        "lightning",
    }
)


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_port: int
    mqtt_client_id: str
    publish_max_attempts: int
    publish_attempt_timeout: float
    publish_backoff: float
    topic_prefix: str
    location: int
    i2c_bus: int
    geiger_port: str
    particulate_port: str
    thermostat_url: str
    thermostat_timeout: float
    lightning_irq_pin: int
    baseline_dir: str
    enabled_sensors: FrozenSet[str]
    status_port: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_int_env(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_millis_env(name: str, default_ms: int) -> float:
    return _read_int_env(name, default_ms, minimum=0) / 1000.0


def _read_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_enabled_sensors(default: FrozenSet[str]) -> FrozenSet[str]:
    value = os.getenv(_ENABLED_SENSORS_ENV)
    if value is None:
        return default
    names = {part.strip().lower() for part in value.split(",") if part.strip()}
    if not names:
        return default
    return frozenset(names & ALL_SENSORS)


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_topic_prefix(default: str) -> str:
    prefix = _read_str_env(_TOPIC_PREFIX_ENV, default).rstrip("/")
    if not prefix or "+" in prefix or "#" in prefix:
        return default
    return prefix


@lru_cache
def get_settings() -> Settings:
    return Settings(
        mqtt_host=_read_str_env(_MQTT_HOST_ENV, "localhost"),
        mqtt_port=_read_int_env(_MQTT_PORT_ENV, 1883),
        mqtt_client_id=_read_str_env(_MQTT_CLIENT_ID_ENV, "indoor_sensors"),
        publish_max_attempts=_read_int_env(_MAX_ATTEMPTS_ENV, 5),
        publish_attempt_timeout=_read_millis_env(_ATTEMPT_TIMEOUT_ENV, 1000),
        publish_backoff=_read_millis_env(_BACKOFF_ENV, 100),
        topic_prefix=_read_topic_prefix("/ws/2/grp"),
        location=_read_int_env(_LOCATION_ENV, 2, minimum=0),
        i2c_bus=_read_int_env(_I2C_BUS_ENV, 1, minimum=0),
        geiger_port=_read_str_env(_GEIGER_PORT_ENV, "/dev/ttyUSB0"),
        particulate_port=_read_str_env(_PARTICULATE_PORT_ENV, "/dev/serial0"),
        thermostat_url=_read_str_env(_THERMOSTAT_URL_ENV, "http://172.20.30.30/tstat"),
        thermostat_timeout=_read_float_env(_THERMOSTAT_TIMEOUT_ENV, 20.0),
        lightning_irq_pin=_read_int_env(_LIGHTNING_PIN_ENV, 23, minimum=0),
        baseline_dir=_read_str_env(_BASELINE_DIR_ENV, "/var/lib/indoor_sensors"),
        enabled_sensors=_read_enabled_sensors(ALL_SENSORS),
        status_port=_read_int_env(_STATUS_PORT_ENV, 0, minimum=0),
        log_level=_read_log_level("INFO"),
    )


def baseline_paths(settings: Settings) -> tuple[str, str]:
    """Return the CO2 and TVOC baseline file paths under the configured directory."""
    root = settings.baseline_dir.rstrip("/")
    return f"{root}/sgp30_co2.txt", f"{root}/sgp30_tvoc.txt"
