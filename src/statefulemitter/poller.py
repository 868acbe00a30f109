"""Polling component that mirrors a JSON endpoint into component state."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from statefulemitter.component import StatefulEmitter
from statefulemitter.config import EmitterConfig, PollerConfig
from statefulemitter.events import Channel
from statefulemitter.exceptions import PollerPayloadError, PollerTransportError

_logger = logging.getLogger(__name__)


class JsonSource(Protocol):
    """Structural source interface used by :class:`HttpPoller`.

    Tests pass small fakes; production code uses :class:`HttpJsonSource`.
    """

    async def fetch_json(self) -> Any:
        ...


class HttpJsonSource:
    """GET a URL with aiohttp and decode the body as JSON."""

    def __init__(
        self,
        url: str,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._url = url
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._headers: dict[str, str] = {"accept": "application/json", **(headers or {})}

    @classmethod
    def from_config(cls, config: PollerConfig, http_session: aiohttp.ClientSession) -> HttpJsonSource:
        return cls(config.url, http_session, timeout=config.timeout, headers=config.headers)

    async def fetch_json(self) -> Any:
        _logger.debug("GET %s", self._url)
        try:
            async with self._http.get(self._url, headers=self._headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise PollerTransportError(
                        f"HTTP {resp.status} from {self._url}: {text[:200]}",
                        status_code=resp.status,
                        url=self._url,
                    )
        except PollerTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise PollerTransportError(
                f"Request to {self._url} failed: {exc}",
                url=self._url,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise PollerTransportError(
                f"Invalid JSON from {self._url}: {text[:200]}",
                url=self._url,
            ) from exc


class HttpPoller(StatefulEmitter):
    """Component whose state is the last JSON object returned by a source.

    Each poll merges the fetched object into state, so fields that vanish
    from a response keep their last known value.
    """

    def __init__(
        self,
        source: JsonSource,
        *,
        config: PollerConfig,
        initial_state: Mapping[str, Any] | None = None,
        emitter_config: EmitterConfig | None = None,
    ) -> None:
        super().__init__(initial_state, config=emitter_config)
        self._source = source
        self._poller_config = config
        self._running = False
        self._poll_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def poll_count(self) -> int:
        """Number of polls attempted so far (successful or not)."""
        return self._poll_count

    async def poll(self) -> None:
        """Fetch once and merge the result into state."""
        self._poll_count += 1
        payload = await self._source.fetch_json()
        if not isinstance(payload, dict):
            raise PollerPayloadError(
                f"Expected a JSON object from {self._poller_config.url}, got {type(payload).__name__}"
            )
        self.set_state(payload)

    async def run(self) -> None:
        """Poll until :meth:`stop` is called or ``max_polls`` is reached.

        A failed poll is logged and emitted on ``error``; the loop keeps going.
        """
        self._running = True
        max_polls = self._poller_config.max_polls
        _logger.debug("Poller started url=%s interval=%s", self._poller_config.url, self._poller_config.interval)
        try:
            while self._running:
                try:
                    await self.poll()
                except (PollerTransportError, PollerPayloadError) as exc:
                    _logger.debug("Poll attempt=%d failed", self._poll_count, exc_info=True)
                    self.emit(Channel.ERROR, exc, "poll")
                if max_polls is not None and self._poll_count >= max_polls:
                    break
                if not self._running:
                    break
                await self.wait(self._poller_config.interval)
        finally:
            self._running = False
            _logger.debug("Poller stopped url=%s polls=%d", self._poller_config.url, self._poll_count)

    def stop(self) -> None:
        """Ask :meth:`run` to exit after the current iteration."""
        self._running = False
