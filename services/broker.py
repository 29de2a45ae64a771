"""Broker collaborator used by the publisher."""

from __future__ import annotations

import logging
from typing import Protocol

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The broker did not acknowledge a publish attempt."""


class Broker(Protocol):
    def publish(self, destination: str, payload: bytes, timeout: float) -> None:
        """Hand ``payload`` to the broker, raising ``DeliveryError`` without an ack."""
        ...


class MqttBroker:
    """paho-mqtt client publishing at QoS 2 and waiting for the handshake."""

    def __init__(self, host: str, port: int, client_id: str, qos: int = 2) -> None:
        self.host = host
        self.port = port
        self.qos = qos
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)

    def connect(self) -> None:
        logger.info("Connecting to MQTT broker %s:%s", self.host, self.port)
        self._client.connect(self.host, self.port, keepalive=60)
        self._client.loop_start()

    def close(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    def publish(self, destination: str, payload: bytes, timeout: float) -> None:
        try:
            info = self._client.publish(destination, payload, qos=self.qos, retain=False)
        except ValueError as exc:
            # paho rejects wildcard or empty topics and oversized payloads up front.
            raise DeliveryError(str(exc)) from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise DeliveryError(mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(timeout=timeout)
        except (RuntimeError, ValueError) as exc:
            raise DeliveryError(str(exc)) from exc
        if not info.is_published():
            raise DeliveryError(f"no acknowledgement within {timeout}s")

    @staticmethod
    def _on_connect(_client, _userdata, _flags, reason_code, _properties=None) -> None:
        logger.info("MQTT connected (reason_code=%s)", reason_code)

    @staticmethod
    def _on_disconnect(_client, _userdata, _flags, reason_code, _properties=None) -> None:
        if reason_code == 0:
            logger.info("MQTT disconnected cleanly")
        else:
            logger.warning("MQTT disconnected (reason_code=%s)", reason_code)
