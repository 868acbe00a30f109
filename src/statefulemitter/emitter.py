"""Synchronous publish/subscribe facility.

Components hold an :class:`Emitter` instead of inheriting from one. Listeners
are plain callables invoked with positional payload arguments, in
registration order, on the thread that calls :meth:`Emitter.emit`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from statefulemitter.config import EmitterConfig
from statefulemitter.events import Channel

_logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class _Once:
    """Registration wrapper for listeners that fire a single time."""

    __slots__ = ("listener",)

    def __init__(self, listener: Listener) -> None:
        self.listener = listener

    def __repr__(self) -> str:
        return f"_Once({self.listener!r})"


def _unwrap(entry: Listener | _Once) -> Listener:
    return entry.listener if isinstance(entry, _Once) else entry


class Emitter:
    """Named-channel event emitter.

    A listener that raises does not stop delivery to the listeners after it.
    The failure is logged and, for channels other than ``error``, forwarded to
    the ``error`` channel as ``(exc, channel)`` when anyone listens there.
    """

    def __init__(self, config: EmitterConfig | None = None) -> None:
        self._config = config or EmitterConfig()
        self._listeners: dict[str, list[Listener | _Once]] = {}
        self._leak_warned: set[str] = set()

    def on(self, channel: str, listener: Listener) -> Listener:
        """Register *listener* on *channel* and return it."""
        self._add(channel, listener)
        return listener

    add_listener = on

    def once(self, channel: str, listener: Listener) -> Listener:
        """Register *listener* to be removed just before its first call."""
        self._add(channel, _Once(listener))
        return listener

    def off(self, channel: str, listener: Listener) -> None:
        """Remove the most recent registration of *listener* on *channel*."""
        entries = self._listeners.get(channel)
        if not entries:
            return
        for index in range(len(entries) - 1, -1, -1):
            if _unwrap(entries[index]) == listener:
                del entries[index]
                break
        if not entries:
            del self._listeners[channel]

    remove_listener = off

    def remove_all_listeners(self, channel: str | None = None) -> None:
        if channel is None:
            self._listeners.clear()
            self._leak_warned.clear()
            return
        self._listeners.pop(channel, None)
        self._leak_warned.discard(channel)

    def listeners(self, channel: str) -> list[Listener]:
        return [_unwrap(entry) for entry in self._listeners.get(channel, ())]

    def listener_count(self, channel: str) -> int:
        return len(self._listeners.get(channel, ()))

    def channels(self) -> list[str]:
        return list(self._listeners)

    def emit(self, channel: str, *args: Any) -> bool:
        """Invoke every listener registered on *channel* with *args*.

        The listener list is copied before dispatch: listeners added while
        emitting are only called on the next emission, while a ``once``
        listener is removed before it runs.

        Returns
        -------
        bool
            ``True`` if the channel had listeners.
        """
        had_listeners, first_error = self._dispatch(channel, args)
        if first_error is not None and self._config.raise_listener_errors:
            raise first_error
        return had_listeners

    def emit_collecting(self, channel: str, *args: Any) -> Exception | None:
        """Like :meth:`emit`, but return the first listener failure instead of raising it.

        Lets a caller that emits on several channels deliver all of them
        before deciding whether to raise.
        """
        return self._dispatch(channel, args)[1]

    @property
    def raise_listener_errors(self) -> bool:
        return self._config.raise_listener_errors

    def _dispatch(self, channel: str, args: tuple[Any, ...]) -> tuple[bool, Exception | None]:
        entries = self._listeners.get(channel)
        if not entries:
            return False, None

        first_error: Exception | None = None
        for entry in list(entries):
            if isinstance(entry, _Once):
                current = self._listeners.get(channel)
                if current is None or entry not in current:
                    continue
                current.remove(entry)
                if not current:
                    del self._listeners[channel]
            listener = _unwrap(entry)
            try:
                listener(*args)
            except Exception as exc:
                _logger.warning("Listener %r on %r failed", listener, channel, exc_info=True)
                if first_error is None:
                    first_error = exc
                if channel != Channel.ERROR and self._listeners.get(Channel.ERROR):
                    self._dispatch(Channel.ERROR, (exc, channel))

        return True, first_error

    def _add(self, channel: str, entry: Listener | _Once) -> None:
        if not callable(_unwrap(entry)):
            raise TypeError(f"listener must be callable, got {type(_unwrap(entry)).__name__}")
        entries = self._listeners.setdefault(channel, [])
        entries.append(entry)

        limit = self._config.max_listeners
        if limit and len(entries) > limit and channel not in self._leak_warned:
            self._leak_warned.add(channel)
            _logger.warning(
                "Possible listener leak: %d listeners on %r (max_listeners=%d)",
                len(entries),
                channel,
                limit,
            )
