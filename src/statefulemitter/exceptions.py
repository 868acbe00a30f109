"""Custom exception hierarchy for statefulemitter."""

from __future__ import annotations


class StatefulEmitterError(Exception):
    """Base exception for all statefulemitter errors."""


class ConfigError(StatefulEmitterError):
    """Invalid or missing configuration."""


class InvalidStateError(StatefulEmitterError, TypeError):
    """Initial state is not a mapping of field names to values."""


class InvalidStateUpdateError(InvalidStateError):
    """``set_state()`` was called with something other than a mapping.

    Raised before the stored snapshot is touched, so no notification is
    emitted for a rejected update.
    """


class PollerError(StatefulEmitterError):
    """Base class for HTTP poller failures."""


class PollerTransportError(PollerError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class PollerPayloadError(PollerError):
    """Polled endpoint returned JSON that is not an object."""


class MqttProxyError(StatefulEmitterError):
    """MQTT device proxy misuse or payload failure."""
