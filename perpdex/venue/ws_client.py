"""WebSocket transport capability.

The streaming subsystem only sees two small interfaces:

- ``WsTransport.connect(url)`` opens a full-duplex message channel
- ``WsConnection`` sends, receives and closes it

Every failure is raised as ``TransportError``; the supervisor treats them all
as retryable. Protocol keep-alive (ping/pong) is answered by the socket
library and never reaches callers.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import websockets  # type: ignore

from ..core.errors import TransportError

logger = logging.getLogger(__name__)


class WsConnection(ABC):
    @abstractmethod
    async def send(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive(self) -> bytes: ...

    @abstractmethod
    async def close(self) -> None: ...

    async def __aenter__(self) -> "WsConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class WsTransport(ABC):
    @abstractmethod
    async def connect(self, url: str) -> WsConnection: ...


class WebsocketsConnection(WsConnection):
    def __init__(self, ws):
        self._ws = ws

    async def send(self, data: bytes) -> None:
        try:
            # venue expects text frames
            await self._ws.send(data.decode("utf-8"))
        except websockets.ConnectionClosed as e:
            raise TransportError(f"send failed: connection closed ({e})") from e
        except OSError as e:
            raise TransportError(f"send failed: {e}") from e

    async def receive(self) -> bytes:
        try:
            raw = await self._ws.recv()
        except websockets.ConnectionClosed as e:
            raise TransportError(f"connection closed by peer ({e})") from e
        except OSError as e:
            raise TransportError(f"receive failed: {e}") from e
        if isinstance(raw, str):
            return raw.encode("utf-8")
        return bytes(raw)

    async def close(self) -> None:
        try:
            await self._ws.close()
        except (websockets.WebSocketException, OSError) as e:
            logger.debug("ignoring error while closing websocket: %s", e)


class WebsocketsTransport(WsTransport):
    """Transport backed by the ``websockets`` package."""

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        ping_interval: Optional[float] = 20.0,
        open_timeout: float = 10.0,
    ):
        self.headers = headers or {}
        self.ping_interval = ping_interval
        self.open_timeout = open_timeout

    async def connect(self, url: str) -> WsConnection:
        try:
            ws = await websockets.connect(
                url,
                additional_headers=self.headers or None,
                ping_interval=self.ping_interval,
                open_timeout=self.open_timeout,
                max_size=None,
            )
        except (websockets.WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"connect to {url} failed: {e}") from e
        return WebsocketsConnection(ws)
