"""Venue abstraction."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.events import StreamKind
from ..core.types import OrderBookSnapshot, OrderId, OrderRequest, Position, Trade
from ..stream.channel import EventChannel


class PerpDex(ABC):
    name: str

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def trades(self, coin: str, limit: int = 100) -> List[Trade]: ...

    @abstractmethod
    def order_book(self, coin: str, depth: int = 20) -> OrderBookSnapshot: ...

    @abstractmethod
    def place_order(self, req: OrderRequest) -> OrderId: ...

    @abstractmethod
    def cancel(self, coin: str, oid: OrderId) -> None: ...

    @abstractmethod
    def positions(self) -> List[Position]: ...

    @abstractmethod
    def subscribe(
        self, kind: StreamKind, out: EventChannel, symbol: Optional[str] = None
    ) -> "asyncio.Task[None]": ...
