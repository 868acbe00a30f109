"""Configuration for statefulemitter components."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from statefulemitter.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(name: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class EmitterConfig:
    """Notification dispatch settings.

    Parameters
    ----------
    max_listeners : int
        Number of listeners per channel above which a possible leak is
        logged (once per channel). ``0`` disables the warning.
    raise_listener_errors : bool
        Re-raise the first listener failure once every listener of the
        emission has run. By default failures are logged and routed to the
        ``error`` channel only.
    """

    max_listeners: int = 10
    raise_listener_errors: bool = False

    def __post_init__(self) -> None:
        if self.max_listeners < 0:
            raise ConfigError("max_listeners must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> EmitterConfig:
        """Create configuration from ``STATEFUL_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        max_env = env.get("STATEFUL_MAX_LISTENERS")
        if max_env is not None and "max_listeners" not in overrides:
            config_kwargs["max_listeners"] = _env_number("STATEFUL_MAX_LISTENERS", max_env, int)

        if "raise_listener_errors" not in overrides:
            config_kwargs["raise_listener_errors"] = _env_bool(
                env.get("STATEFUL_RAISE_LISTENER_ERRORS"),
                False,
            )

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class PollerConfig:
    """HTTP poller settings.

    Parameters
    ----------
    url : str
        Endpoint returning a JSON object.
    interval : float
        Seconds to wait between the end of one poll and the start of the next.
    timeout : float
        Total request timeout in seconds.
    max_polls : int or None
        Stop after this many polls. ``None`` polls until ``stop()``.
    headers : dict
        Extra request headers.
    """

    url: str
    interval: float = 60.0
    timeout: float = 10.0
    max_polls: int | None = None
    headers: dict[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.url.strip():
            raise ConfigError("url must be non-empty")
        if self.interval < 0:
            raise ConfigError("interval must be >= 0")
        if self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.max_polls is not None and self.max_polls < 1:
            raise ConfigError("max_polls must be >= 1")

    @classmethod
    def from_env(cls, **overrides: Any) -> PollerConfig:
        """Create configuration from ``STATEFUL_POLL_*`` environment variables."""
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        url = env.get("STATEFUL_POLL_URL")
        if url is not None:
            config_kwargs["url"] = url

        interval_env = env.get("STATEFUL_POLL_INTERVAL")
        if interval_env is not None and "interval" not in overrides:
            config_kwargs["interval"] = _env_number("STATEFUL_POLL_INTERVAL", interval_env, float)

        timeout_env = env.get("STATEFUL_POLL_TIMEOUT")
        if timeout_env is not None and "timeout" not in overrides:
            config_kwargs["timeout"] = _env_number("STATEFUL_POLL_TIMEOUT", timeout_env, float)

        config_kwargs.update(overrides)
        if "url" not in config_kwargs:
            raise ConfigError("STATEFUL_POLL_URL is not set and no url was given")
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class MqttProxyConfig:
    """MQTT device proxy settings.

    Parameters
    ----------
    host : str
        Broker host name.
    state_topic : str
        Topic carrying JSON state objects published by the device.
    port : int
        Broker port.
    command_topic : str or None
        Topic used by ``publish_command()``.
    client_id : str
        MQTT client id. Empty lets the broker assign one.
    username, password : str or None
        Broker credentials.
    keepalive : int
        MQTT keepalive in seconds.
    tls : bool
        Enable TLS with the system trust store.
    """

    host: str
    state_topic: str
    port: int = 1883
    command_topic: str | None = None
    client_id: str = ""
    username: str | None = None
    password: str | None = None
    keepalive: int = 60
    tls: bool = False

    def __post_init__(self) -> None:
        if not self.host.strip():
            raise ConfigError("host must be non-empty")
        if not self.state_topic.strip():
            raise ConfigError("state_topic must be non-empty")
        if self.keepalive <= 0:
            raise ConfigError("keepalive must be > 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> MqttProxyConfig:
        """Create configuration from ``STATEFUL_MQTT_*`` environment variables."""
        env = os.environ

        _ENV_CONFIG_MAP = {
            "STATEFUL_MQTT_HOST": "host",
            "STATEFUL_MQTT_STATE_TOPIC": "state_topic",
            "STATEFUL_MQTT_COMMAND_TOPIC": "command_topic",
            "STATEFUL_MQTT_CLIENT_ID": "client_id",
            "STATEFUL_MQTT_USERNAME": "username",
            "STATEFUL_MQTT_PASSWORD": "password",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        port_env = env.get("STATEFUL_MQTT_PORT")
        if port_env is not None and "port" not in overrides:
            config_kwargs["port"] = _env_number("STATEFUL_MQTT_PORT", port_env, int)

        keepalive_env = env.get("STATEFUL_MQTT_KEEPALIVE")
        if keepalive_env is not None and "keepalive" not in overrides:
            config_kwargs["keepalive"] = _env_number("STATEFUL_MQTT_KEEPALIVE", keepalive_env, int)

        if "tls" not in overrides:
            config_kwargs["tls"] = _env_bool(env.get("STATEFUL_MQTT_TLS"), False)

        config_kwargs.update(overrides)
        for required in ("host", "state_topic"):
            if required not in config_kwargs:
                raise ConfigError(f"MQTT proxy config is missing {required!r}")
        return cls(**config_kwargs)
