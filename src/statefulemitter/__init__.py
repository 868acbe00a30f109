"""statefulemitter - stateful, event-emitting components for asyncio services."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("statefulemitter")
except PackageNotFoundError:
    __version__ = "0+local"

from statefulemitter.component import StatefulEmitter
from statefulemitter.config import EmitterConfig, MqttProxyConfig, PollerConfig
from statefulemitter.emitter import Emitter
from statefulemitter.events import MISSING, Channel, field_channel
from statefulemitter.exceptions import (
    ConfigError,
    InvalidStateError,
    InvalidStateUpdateError,
    MqttProxyError,
    PollerError,
    PollerPayloadError,
    PollerTransportError,
    StatefulEmitterError,
)

__all__ = [
    "__version__",
    "MISSING",
    "Channel",
    "ConfigError",
    "Emitter",
    "EmitterConfig",
    "InvalidStateError",
    "InvalidStateUpdateError",
    "MqttProxyConfig",
    "MqttProxyError",
    "PollerConfig",
    "PollerError",
    "PollerPayloadError",
    "PollerTransportError",
    "StatefulEmitter",
    "StatefulEmitterError",
    "field_channel",
]
