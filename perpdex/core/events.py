"""Typed streaming events (market data, order status, fills).

Each event carries the ``StreamKind`` of the subscription that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .types import OrderBookSnapshot, Side, Trade


class StreamKind(str, Enum):
    TRADES = "trades"
    BBO = "bbo"
    L2_BOOK = "l2Book"
    ORDER_UPDATES = "orderUpdates"
    USER_FILLS = "userFills"

    @property
    def is_account(self) -> bool:
        return self in (StreamKind.ORDER_UPDATES, StreamKind.USER_FILLS)


@dataclass(frozen=True)
class TradeEvent:
    trade: Trade
    kind: StreamKind = field(default=StreamKind.TRADES, init=False)


@dataclass(frozen=True)
class BboEvent:
    coin: str
    bid_px: float
    ask_px: float
    ts: int
    kind: StreamKind = field(default=StreamKind.BBO, init=False)


@dataclass(frozen=True)
class OrderBookEvent:
    book: OrderBookSnapshot
    kind: StreamKind = field(default=StreamKind.L2_BOOK, init=False)


@dataclass(frozen=True)
class OrderStatusEvent:
    coin: str
    side: Side
    limit_px: float
    sz: float
    oid: int
    status: str
    timestamp: int  # status timestamp, unix ms
    kind: StreamKind = field(default=StreamKind.ORDER_UPDATES, init=False)


@dataclass(frozen=True)
class FillEvent:
    coin: str
    side: Side
    px: float
    sz: float
    oid: int
    tid: int
    time: int
    fee: float
    hash: str
    kind: StreamKind = field(default=StreamKind.USER_FILLS, init=False)


StreamEvent = Union[TradeEvent, BboEvent, OrderBookEvent, OrderStatusEvent, FillEvent]
