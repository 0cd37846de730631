"""Scripted in-memory transport for offline runs and tests.

A script is a list of sessions, consumed one per ``connect`` call:

- ``CONNECT_FAIL`` makes that connect attempt raise ``TransportError``
- a ``MockSession`` accepts the connection and replays its frames; when the
  frames run out the session either drops (``TransportError``) or, with
  ``hold=True``, stays open until closed

Once the script is exhausted every further connect fails.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Union

from ..core.errors import TransportError
from .ws_client import WsConnection, WsTransport

CONNECT_FAIL = "connect-fail"


def frame(obj: Any) -> bytes:
    return json.dumps(obj).encode("utf-8")


@dataclass
class MockSession:
    frames: Sequence[Union[bytes, str]] = ()
    hold: bool = False
    fail_send: bool = False


@dataclass
class MockConnection(WsConnection):
    session: MockSession
    sent: List[bytes] = field(default_factory=list)
    closed: bool = False
    _pos: int = 0

    def __post_init__(self):
        self._closed_evt = asyncio.Event()

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("send on closed connection")
        if self.session.fail_send:
            raise TransportError("scripted send failure")
        self.sent.append(bytes(data))

    async def receive(self) -> bytes:
        if self.closed:
            raise TransportError("receive on closed connection")
        if self._pos < len(self.session.frames):
            raw = self.session.frames[self._pos]
            self._pos += 1
            # yield to the loop like a real socket would
            await asyncio.sleep(0)
            return raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
        if self.session.hold:
            await self._closed_evt.wait()
        raise TransportError("scripted connection drop")

    async def close(self) -> None:
        self.closed = True
        self._closed_evt.set()


class MockTransport(WsTransport):
    def __init__(self, script: Sequence[Union[str, MockSession]] = ()):
        self.script = list(script)
        self.urls: List[str] = []
        self.connections: List[MockConnection] = []

    @property
    def attempts(self) -> int:
        return len(self.urls)

    async def connect(self, url: str) -> WsConnection:
        self.urls.append(url)
        step = self.attempts - 1
        await asyncio.sleep(0)
        if step >= len(self.script) or self.script[step] == CONNECT_FAIL:
            raise TransportError(f"scripted connect failure #{step + 1}")
        conn = MockConnection(self.script[step])
        self.connections.append(conn)
        return conn
