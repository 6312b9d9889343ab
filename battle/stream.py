"""Push-based event sources feeding a sampler."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qs, urlsplit

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

EventHandler = Callable[[], None]


class StreamSource:
    """
    Base class for event sources.

    ``open`` starts delivering one ``on_event()`` call per observed event from
    an asyncio task; ``close`` stops delivery and may be called repeatedly.
    Subclasses implement ``_run`` and call ``_emit`` once per event.
    """

    def __init__(self) -> None:
        self._on_event: Optional[EventHandler] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def describe(self) -> str:
        return type(self).__name__

    @property
    def is_open(self) -> bool:
        return self._task is not None and not self._task.done()

    def open(
        self,
        on_event: EventHandler,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Begin delivering events to ``on_event`` from a task on ``loop``.

        Without an explicit loop the running loop is used.
        """
        if self._task is not None:
            raise RuntimeError(f"{self.describe} is already open")
        self._on_event = on_event
        loop = loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run())

    def close(self) -> None:
        """Stop delivery; events still in flight are dropped."""
        self._on_event = None
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _emit(self) -> None:
        handler = self._on_event
        if handler is not None:
            handler()

    async def _run(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass
class WebSocketStreamConfig:
    """Connection settings for a websocket event feed."""

    url: str
    open_timeout: float = 10.0
    ping_interval: Optional[float] = 20.0


class WebSocketStreamSource(StreamSource):
    """One event per inbound websocket frame; the payload is not inspected."""

    def __init__(self, config: WebSocketStreamConfig) -> None:
        super().__init__()
        self.config = config

    @property
    def describe(self) -> str:
        return self.config.url

    async def _run(self) -> None:
        url = self.config.url
        try:
            async with websockets.connect(
                url,
                open_timeout=self.config.open_timeout,
                ping_interval=self.config.ping_interval,
            ) as ws:
                logger.info("Stream connected: {}", url)
                async for _message in ws:
                    self._emit()
        except ConnectionClosed as exc:
            logger.warning("Stream {} closed unexpectedly: {}", url, exc)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.error("Stream {} unavailable: {}", url, exc)
        else:
            logger.info("Stream {} ended", url)


def open_source(url: str) -> StreamSource:
    """
    Build a source for ``url``.

    ``ws://`` and ``wss://`` connect to a live feed;
    ``synthetic://?rate=<events per second>&seed=<int>`` generates events
    locally.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme in ("ws", "wss"):
        return WebSocketStreamSource(WebSocketStreamConfig(url=url))
    if scheme == "synthetic":
        from .synthetic import SyntheticStreamConfig, SyntheticStreamSource

        query = parse_qs(parts.query)
        rate = float(query.get("rate", ["5.0"])[0])
        seed_values = query.get("seed")
        seed = int(seed_values[0]) if seed_values else None
        return SyntheticStreamSource(SyntheticStreamConfig(rate=rate, seed=seed))
    raise ValueError(f"Unsupported stream URL scheme '{parts.scheme}' in {url}")
