from __future__ import annotations

import logging
from typing import Any

import pytest

from statefulemitter.config import EmitterConfig
from statefulemitter.emitter import Emitter


def test_listeners_run_in_registration_order() -> None:
    emitter = Emitter()
    order: list[str] = []
    emitter.on("tick", lambda *_: order.append("first"))
    emitter.on("tick", lambda *_: order.append("second"))

    assert emitter.emit("tick", 1) is True
    assert order == ["first", "second"]


def test_emit_without_listeners_returns_false() -> None:
    assert Emitter().emit("nothing") is False


def test_positional_payload() -> None:
    emitter = Emitter()
    received: list[tuple[Any, ...]] = []
    emitter.on("pair", lambda *args: received.append(args))

    emitter.emit("pair", "new", "old")

    assert received == [("new", "old")]


def test_on_returns_listener() -> None:
    emitter = Emitter()
    received: list[int] = []

    def _handler(value: int) -> None:
        received.append(value)

    assert emitter.on("value", _handler) is _handler
    emitter.emit("value", 7)
    assert received == [7]
    assert emitter.listeners("value") == [_handler]


def test_off_removes_only_latest_registration() -> None:
    emitter = Emitter()
    calls: list[int] = []

    def _handler() -> None:
        calls.append(1)

    emitter.on("x", _handler)
    emitter.on("x", _handler)
    emitter.off("x", _handler)

    emitter.emit("x")
    assert calls == [1]
    assert emitter.listener_count("x") == 1


def test_off_unknown_listener_is_ignored() -> None:
    emitter = Emitter()
    emitter.off("x", print)
    emitter.on("x", len)
    emitter.off("x", print)

    assert emitter.listener_count("x") == 1


def test_off_once_listener_by_original_callable() -> None:
    emitter = Emitter()
    calls: list[int] = []

    def _handler() -> None:
        calls.append(1)

    emitter.once("x", _handler)
    emitter.off("x", _handler)
    emitter.emit("x")

    assert calls == []
    assert "x" not in emitter.channels()


def test_listener_added_during_emit_waits_for_next_emit() -> None:
    emitter = Emitter()
    calls: list[str] = []

    def _late() -> None:
        calls.append("late")

    def _register() -> None:
        calls.append("register")
        emitter.on("x", _late)

    emitter.once("x", _register)
    emitter.emit("x")
    assert calls == ["register"]

    emitter.emit("x")
    assert calls == ["register", "late"]


def test_once_reentrant_emit_fires_once() -> None:
    emitter = Emitter()
    calls: list[int] = []

    def _handler(depth: int) -> None:
        calls.append(depth)
        if depth == 0:
            emitter.emit("x", 1)

    emitter.once("x", _handler)
    emitter.emit("x", 0)

    assert calls == [0]


def test_remove_all_listeners() -> None:
    emitter = Emitter()
    emitter.on("a", len)
    emitter.on("b", len)

    emitter.remove_all_listeners("a")
    assert emitter.channels() == ["b"]

    emitter.remove_all_listeners()
    assert emitter.channels() == []


def test_non_callable_listener_rejected() -> None:
    with pytest.raises(TypeError):
        Emitter().on("x", "not callable")  # type: ignore[arg-type]


def test_listener_failure_is_logged_and_isolated(caplog: pytest.LogCaptureFixture) -> None:
    emitter = Emitter()
    calls: list[str] = []

    def _boom() -> None:
        raise ValueError("bad listener")

    emitter.on("x", _boom)
    emitter.on("x", lambda: calls.append("after"))

    with caplog.at_level(logging.WARNING, logger="statefulemitter.emitter"):
        emitter.emit("x")

    assert calls == ["after"]
    assert any("failed" in record.getMessage() for record in caplog.records)


def test_failing_error_listener_does_not_recurse() -> None:
    emitter = Emitter()
    error_calls: list[Any] = []

    def _error_listener(exc: Exception, channel: str) -> None:
        error_calls.append((type(exc), channel))
        raise RuntimeError("error handler failed too")

    def _boom() -> None:
        raise ValueError("bad listener")

    emitter.on("error", _error_listener)
    emitter.on("x", _boom)
    emitter.emit("x")

    assert error_calls == [(ValueError, "x")]


def test_raise_listener_errors_reraises_after_all_listeners() -> None:
    emitter = Emitter(EmitterConfig(raise_listener_errors=True))
    calls: list[str] = []

    def _boom() -> None:
        raise ValueError("first")

    emitter.on("x", _boom)
    emitter.on("x", lambda: calls.append("after"))

    with pytest.raises(ValueError, match="first"):
        emitter.emit("x")
    assert calls == ["after"]


def test_max_listeners_warns_once(caplog: pytest.LogCaptureFixture) -> None:
    emitter = Emitter(EmitterConfig(max_listeners=2))

    with caplog.at_level(logging.WARNING, logger="statefulemitter.emitter"):
        for _ in range(4):
            emitter.on("x", lambda: None)

    leak_warnings = [r for r in caplog.records if "Possible listener leak" in r.getMessage()]
    assert len(leak_warnings) == 1
    assert emitter.listener_count("x") == 4


def test_max_listeners_zero_disables_warning(caplog: pytest.LogCaptureFixture) -> None:
    emitter = Emitter(EmitterConfig(max_listeners=0))

    with caplog.at_level(logging.WARNING, logger="statefulemitter.emitter"):
        for _ in range(20):
            emitter.on("x", lambda: None)

    assert not caplog.records


def test_emit_collecting_returns_first_failure_without_raising() -> None:
    emitter = Emitter(EmitterConfig(raise_listener_errors=True))
    calls: list[str] = []
    failure = ValueError("first")

    def _boom() -> None:
        raise failure

    emitter.on("x", _boom)
    emitter.on("x", lambda: calls.append("after"))

    assert emitter.emit_collecting("x") is failure
    assert calls == ["after"]
    assert emitter.emit_collecting("nothing") is None
