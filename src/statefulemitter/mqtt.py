"""MQTT device proxy: a component mirroring a device's JSON state topic."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import paho.mqtt.client as mqtt
from pydantic import BaseModel, ConfigDict, Field, field_validator

from statefulemitter.component import StatefulEmitter
from statefulemitter.config import EmitterConfig, MqttProxyConfig
from statefulemitter.events import Channel
from statefulemitter.exceptions import MqttProxyError

_logger = logging.getLogger(__name__)


class DeviceMessage(BaseModel):
    """Decoded state publish received from a device."""

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: dict[str, Any] = Field(default_factory=dict, description="Decoded JSON object")
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("topic")
    @classmethod
    def _normalize_topic(cls, value: str) -> str:
        topic = value.strip()
        if not topic:
            raise ValueError("topic must be non-empty")
        return topic

    @field_validator("received_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


def decode_device_message(topic: str, payload: bytes) -> DeviceMessage:
    """Decode an MQTT payload holding a JSON object."""
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MqttProxyError(f"Payload on {topic} is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise MqttProxyError(f"Payload on {topic} decoded to non-object JSON")
    return DeviceMessage(topic=topic, payload=parsed)


class MqttDeviceProxy(StatefulEmitter):
    """Component whose state follows the JSON objects a device publishes.

    paho-mqtt runs its network loop on its own thread; decoded messages are
    handed to the asyncio loop and merged there, so ``set_state()`` and every
    listener always run on the loop thread.
    """

    def __init__(
        self,
        *,
        config: MqttProxyConfig,
        loop: asyncio.AbstractEventLoop,
        initial_state: Mapping[str, Any] | None = None,
        emitter_config: EmitterConfig | None = None,
    ) -> None:
        super().__init__(initial_state, config=emitter_config)
        self._proxy_config = config
        self._loop = loop
        self._client: mqtt.Client | None = None
        self._running = False
        self._last_message: DeviceMessage | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    @property
    def last_message(self) -> DeviceMessage | None:
        return self._last_message

    def start(self) -> None:
        """Connect to the broker and subscribe to the state topic."""
        self.stop()
        config = self._proxy_config
        _logger.debug(
            "MQTT proxy start requested host=%s port=%s topic=%s client_id=%s",
            config.host,
            config.port,
            config.state_topic,
            config.client_id,
        )

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
        )
        client.enable_logger(_logger)
        if config.username is not None:
            client.username_pw_set(config.username, config.password)
        if config.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                _logger.warning("MQTT connect failed: %s", reason_code)
                return
            _logger.debug("MQTT connected reason=%s, subscribing topic=%s", reason_code, config.state_topic)
            c.subscribe(config.state_topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_publish(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                _logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(config.host, config.port, keepalive=config.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        _logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect and stop the network loop if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                _logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            _logger.debug("MQTT network loop stopped")

    def publish_command(self, command: Mapping[str, Any]) -> None:
        """Publish *command* as JSON on the configured command topic."""
        topic = self._proxy_config.command_topic
        if topic is None:
            raise MqttProxyError("No command_topic configured")
        client = self._client
        if client is None or not self._running:
            raise MqttProxyError("MQTT proxy is not running")
        body = json.dumps(dict(command), separators=(",", ":"))
        _logger.debug("MQTT publish topic=%s bytes=%d", topic, len(body))
        client.publish(topic, body, qos=0)

    def _handle_publish(self, topic: str, payload: bytes) -> None:
        """Network-thread side: decode and hand over to the event loop."""
        try:
            message = decode_device_message(topic, payload)
        except MqttProxyError as exc:
            _logger.debug("MQTT payload parse failure topic=%s", topic, exc_info=True)
            self._loop.call_soon_threadsafe(self.emit, Channel.ERROR, exc, topic)
            return
        self._loop.call_soon_threadsafe(self._apply_message, message)

    def _apply_message(self, message: DeviceMessage) -> None:
        self._last_message = message
        self.set_state(message.payload)
