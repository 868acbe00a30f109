"""Notification channels.

Listeners receive positional payloads only:

- ``statechange``: ``(new_state, old_state)``
- ``change`` and ``change:<field>``: ``(new_value, old_value)``
- ``error``: ``(exc, context)``
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Final


class Channel(StrEnum):
    STATECHANGE = "statechange"
    CHANGE = "change"
    ERROR = "error"


FIELD_CHANNEL_PREFIX: Final = "change:"


def field_channel(field: str) -> str:
    """Channel that only carries ``change`` notifications for *field*."""
    return f"{FIELD_CHANNEL_PREFIX}{field}"


class _Missing:
    """Old value of a field that was not present in the previous snapshot."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, _memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Final = _Missing()
