"""Stateful component base.

:class:`StatefulEmitter` is a server-side workalike of a UI component's
``setState()``: it owns one state snapshot, hands out copies of it, merges
partial updates into it and announces every update to listeners.

Example
-------
```python
class ChatRoom(StatefulEmitter):
    initial_state = {"members": (), "topic": ""}

room = ChatRoom()
room.on("change:topic", lambda new, old: print(f"topic {old!r} -> {new!r}"))
room.set_state({"topic": "release planning"})
```
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, ClassVar

from statefulemitter.config import EmitterConfig
from statefulemitter.emitter import Emitter, Listener
from statefulemitter.events import MISSING, Channel, field_channel
from statefulemitter.exceptions import InvalidStateError, InvalidStateUpdateError

_logger = logging.getLogger(__name__)

_instance_ids = itertools.count(1)


def _strictly_differs(new: Any, old: Any) -> bool:
    """Inequality without cross-type coercion (``1``, ``1.0`` and ``True`` differ).

    Values whose ``!=`` raises or yields something other than a ``bool``
    (array-like values) only compare equal to themselves.
    """
    if new is old:
        return False
    if type(new) is not type(old):
        return True
    try:
        result = new != old
    except Exception:
        return True
    if isinstance(result, bool):
        return result
    return True


def _check_keys(value: Mapping[Any, Any], error: type[InvalidStateError]) -> None:
    for key in value:
        if not isinstance(key, str):
            raise error(f"state field names must be str, got {type(key).__name__}: {key!r}")


class StatefulEmitter:
    """Component owning a private state snapshot and its notifications.

    Channels
    --------
    ``statechange``
        ``(new_state, old_state)`` once per ``set_state()`` call.
    ``change``
        ``(new_value, old_value)`` for each updated field whose value differs.
    ``change:<field>``
        Same payload, only for *field*.

    The stored snapshot is never handed out: ``state`` and the ``statechange``
    payload are shallow copies, so mutating them cannot corrupt the component.
    """

    #: Default initial state for subclasses; evaluated once per construction.
    initial_state: ClassVar[Mapping[str, Any] | None] = None

    def __init__(
        self,
        initial_state: Mapping[str, Any] | None = None,
        *,
        config: EmitterConfig | None = None,
    ) -> None:
        if initial_state is None:
            initial_state = type(self).initial_state
        if initial_state is not None:
            if not isinstance(initial_state, Mapping):
                raise InvalidStateError(
                    f"initial state must be a mapping, got {type(initial_state).__name__}"
                )
            _check_keys(initial_state, InvalidStateError)

        self._id = next(_instance_ids)
        self._events = Emitter(config)
        self.__state: dict[str, Any] | None = dict(initial_state) if initial_state is not None else None

    @property
    def instance_id(self) -> int:
        """Process-unique identity assigned at construction."""
        return self._id

    @property
    def events(self) -> Emitter:
        return self._events

    @property
    def is_initialized(self) -> bool:
        return self.__state is not None

    @property
    def state(self) -> dict[str, Any] | None:
        """Shallow copy of the current snapshot, or ``None`` before any state exists."""
        snapshot = self.__state
        return dict(snapshot) if snapshot is not None else None

    def on(self, channel: str, listener: Listener) -> Listener:
        return self._events.on(channel, listener)

    def once(self, channel: str, listener: Listener) -> Listener:
        return self._events.once(channel, listener)

    def off(self, channel: str, listener: Listener) -> None:
        self._events.off(channel, listener)

    def emit(self, channel: str, *args: Any) -> bool:
        return self._events.emit(channel, *args)

    def set_state(self, value: Mapping[str, Any]) -> None:
        """Merge *value* into the current state and notify listeners.

        Fields present in *value* replace or add top-level fields; every other
        field is carried over unchanged. Nested values are never merged.

        Listeners run synchronously before this method returns. A listener
        that calls ``set_state()`` again re-enters the merge immediately; the
        outer call keeps dispatching with the snapshots it captured.

        Raises
        ------
        InvalidStateUpdateError
            *value* is not a mapping of ``str`` field names.
        Exception
            With ``EmitterConfig.raise_listener_errors``, the first listener
            failure, re-raised once every notification has been delivered.
        """
        if not isinstance(value, Mapping):
            raise InvalidStateUpdateError(
                f"set_state() expects a mapping, got {type(value).__name__}"
            )
        _check_keys(value, InvalidStateUpdateError)

        old_state = self.__state
        new_state = dict(old_state or {})
        new_state.update(value)
        self.__state = new_state

        _logger.debug(
            "Component %s#%d state updated fields=%s",
            type(self).__name__,
            self._id,
            list(value),
        )

        failures = [
            self._events.emit_collecting(
                Channel.STATECHANGE,
                dict(new_state),
                dict(old_state) if old_state is not None else None,
            )
        ]

        previous = old_state or {}
        for key in value:
            new_value = new_state[key]
            old_value = previous.get(key, MISSING)
            if _strictly_differs(new_value, old_value):
                failures.append(self._events.emit_collecting(Channel.CHANGE, new_value, old_value))
                failures.append(self._events.emit_collecting(field_channel(key), new_value, old_value))

        first_error = next((exc for exc in failures if exc is not None), None)
        if first_error is not None and self._events.raise_listener_errors:
            raise first_error

    async def wait(self, duration: float | timedelta) -> None:
        """Suspend the calling coroutine for *duration* (seconds or timedelta).

        Meant for polling loops where the next poll must not start before the
        previous one finished:

        ```python
        while True:
            await self.wait(60)
            await self.poll()
        ```
        """
        seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
        await asyncio.sleep(max(seconds, 0.0))

    def __repr__(self) -> str:
        status = "initialized" if self.__state is not None else "uninitialized"
        return f"<{type(self).__name__} id={self._id} {status}>"
