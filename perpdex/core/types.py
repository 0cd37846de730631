"""Core type definitions for the perpetuals client.

Passive records shared by the REST collaborator, the streaming subsystem and
the signing pipeline. Prices and quantities are plain floats that have already
been checked to be NaN-free by the parsers in ``core.utils``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

Decimalish = Union[str, int, float]


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_wire(cls, code: str) -> Optional["Side"]:
        # venue encodes sides as "B" (bid) and "A" (ask)
        return _WIRE_SIDES.get(code)


_WIRE_SIDES = {"B": Side.BUY, "A": Side.SELL}


class Tif(str, Enum):
    IOC = "Ioc"
    GTC = "Gtc"
    ALO = "Alo"


@dataclass(frozen=True)
class Trade:
    id: str
    coin: str
    side: Side
    price: float
    qty: float
    ts: int  # unix ms
    tid: int = 0


@dataclass(frozen=True)
class BookLevel:
    price: float
    qty: float
    n: int = 0


@dataclass
class OrderBookSnapshot:
    coin: str
    ts: int
    bids: List[BookLevel]
    asks: List[BookLevel]

    def mid(self) -> Optional[float]:
        if not self.bids or not self.asks:
            return None
        return (self.bids[0].price + self.asks[0].price) / 2

    def spread(self) -> Optional[float]:
        if not self.bids or not self.asks:
            return None
        return self.asks[0].price - self.bids[0].price

    def truncate(self, depth: int) -> "OrderBookSnapshot":
        return OrderBookSnapshot(
            coin=self.coin, ts=self.ts, bids=self.bids[:depth], asks=self.asks[:depth]
        )


@dataclass(frozen=True)
class OrderRequest:
    """A limit order as the caller expresses it.

    ``price`` and ``size`` may be given as strings to keep exact decimal
    representation on the wire; floats are rendered in their shortest form.
    """

    coin: str
    is_buy: bool
    price: Decimalish
    size: Decimalish
    tif: Tif = Tif.GTC
    reduce_only: bool = False


@dataclass(frozen=True)
class OrderId:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class Position:
    coin: str
    size: float = 0.0
    entry_px: Optional[float] = None
    unrealized_pnl: float = 0.0

    @property
    def is_long(self) -> bool:
        return self.size > 0


@dataclass(frozen=True)
class OpenOrder:
    coin: str
    side: Side
    limit_px: float
    sz: float
    oid: int
    timestamp: int  # unix ms
    orig_sz: float
    cloid: Optional[str] = None


@dataclass(frozen=True)
class UserFill:
    """One historical fill. ``closed_pnl`` is zero for opening fills."""

    coin: str
    side: Side
    px: float
    sz: float
    time: int
    hash: str
    oid: int
    tid: int
    fee: float
    closed_pnl: float = 0.0
    dir: str = ""
    crossed: bool = False


@dataclass(frozen=True)
class FundingRate:
    coin: str
    funding_rate: float
    premium: float
    time: int
