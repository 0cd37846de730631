"""Frame demultiplexer: one wire frame -> zero or one typed event.

``decode`` never raises. Control frames (subscription acks, pongs) and frames
that do not match the schema of the subscribed kind both yield ``None``;
schema drift in a single frame must not stop the stream.

Batched payloads (trades, order updates, fills) surface only their first
item.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union

from ..core.events import (
    BboEvent,
    FillEvent,
    OrderBookEvent,
    OrderStatusEvent,
    StreamEvent,
    StreamKind,
    TradeEvent,
)
from ..core.types import BookLevel, OrderBookSnapshot, Side, Trade
from ..core.utils import parse_int, parse_px

CONTROL_TAGS = frozenset({"subscriptionResponse", "pong"})


def _str(obj: Dict[str, Any], key: str) -> Optional[str]:
    v = obj.get(key)
    return v if isinstance(v, str) else None


def _first(payload: Any) -> Optional[Dict[str, Any]]:
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        return payload[0]
    return None


def _side(obj: Dict[str, Any]) -> Optional[Side]:
    code = _str(obj, "side")
    return Side.from_wire(code) if code is not None else None


def trade_from(t: Dict[str, Any]) -> Optional[Trade]:
    coin, side, tx_hash = _str(t, "coin"), _side(t), _str(t, "hash")
    px, sz = parse_px(t.get("px")), parse_px(t.get("sz"))
    ts, tid = parse_int(t.get("time")), parse_int(t.get("tid"))
    if None in (coin, side, tx_hash, px, sz, ts, tid):
        return None
    return Trade(id=tx_hash, coin=coin, side=side, price=px, qty=sz, ts=ts, tid=tid)


def parse_trade(payload: Any) -> Optional[TradeEvent]:
    t = _first(payload)
    trade = trade_from(t) if t is not None else None
    return TradeEvent(trade) if trade is not None else None


def parse_bbo(payload: Any) -> Optional[BboEvent]:
    if not isinstance(payload, dict):
        return None
    coin, ts = _str(payload, "coin"), parse_int(payload.get("time"))
    bid, ask = parse_px(payload.get("bestBid")), parse_px(payload.get("bestAsk"))
    if None in (coin, ts, bid, ask):
        return None
    return BboEvent(coin=coin, bid_px=bid, ask_px=ask, ts=ts)


def _levels(raw: Any) -> Optional[List[BookLevel]]:
    if not isinstance(raw, list):
        return None
    out: List[BookLevel] = []
    for lvl in raw:
        if not isinstance(lvl, dict):
            return None
        px, sz = parse_px(lvl.get("px")), parse_px(lvl.get("sz"))
        n = parse_int(lvl.get("n"))
        if None in (px, sz, n):
            return None
        out.append(BookLevel(price=px, qty=sz, n=n))
    return out


def book_from(payload: Any) -> Optional[OrderBookSnapshot]:
    if not isinstance(payload, dict):
        return None
    coin, ts = _str(payload, "coin"), parse_int(payload.get("time"))
    levels = payload.get("levels")
    if coin is None or ts is None or not isinstance(levels, list) or len(levels) != 2:
        return None
    bids, asks = _levels(levels[0]), _levels(levels[1])
    if bids is None or asks is None:
        return None
    return OrderBookSnapshot(coin=coin, ts=ts, bids=bids, asks=asks)


def parse_l2_book(payload: Any) -> Optional[OrderBookEvent]:
    book = book_from(payload)
    return OrderBookEvent(book) if book is not None else None


def parse_order_update(payload: Any) -> Optional[OrderStatusEvent]:
    u = _first(payload)
    if u is None:
        return None
    order = u.get("order")
    if not isinstance(order, dict):
        return None
    coin, side, status = _str(order, "coin"), _side(order), _str(u, "status")
    limit_px, sz = parse_px(order.get("limitPx")), parse_px(order.get("sz"))
    oid, ts = parse_int(order.get("oid")), parse_int(u.get("statusTimestamp"))
    if parse_int(order.get("timestamp")) is None:
        return None
    if None in (coin, side, status, limit_px, sz, oid, ts):
        return None
    return OrderStatusEvent(
        coin=coin,
        side=side,
        limit_px=limit_px,
        sz=sz,
        oid=oid,
        status=status,
        timestamp=ts,
    )


def parse_fill(payload: Any) -> Optional[FillEvent]:
    if not isinstance(payload, dict) or _str(payload, "user") is None:
        return None
    f = _first(payload.get("fills"))
    if f is None:
        return None
    coin, side, tx_hash = _str(f, "coin"), _side(f), _str(f, "hash")
    px, sz, fee = parse_px(f.get("px")), parse_px(f.get("sz")), parse_px(f.get("fee"))
    oid, tid = parse_int(f.get("oid")), parse_int(f.get("tid"))
    ts = parse_int(f.get("time"))
    if None in (coin, side, tx_hash, px, sz, fee, oid, tid, ts):
        return None
    return FillEvent(
        coin=coin,
        side=side,
        px=px,
        sz=sz,
        oid=oid,
        tid=tid,
        time=ts,
        fee=fee,
        hash=tx_hash,
    )


PARSERS: Dict[StreamKind, Callable[[Any], Optional[StreamEvent]]] = {
    StreamKind.TRADES: parse_trade,
    StreamKind.BBO: parse_bbo,
    StreamKind.L2_BOOK: parse_l2_book,
    StreamKind.ORDER_UPDATES: parse_order_update,
    StreamKind.USER_FILLS: parse_fill,
}


def load_frame(raw: Union[bytes, str]) -> Optional[Dict[str, Any]]:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        # ValueError covers JSONDecodeError, bad UTF-8 and oversized ints
        msg = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    return msg if isinstance(msg, dict) else None


def is_control(msg: Dict[str, Any]) -> bool:
    for key in ("method", "channel"):
        tag = msg.get(key)
        if isinstance(tag, str) and tag in CONTROL_TAGS:
            return True
    return False


class FrameClass(str, Enum):
    EVENT = "event"
    CONTROL = "control"
    MALFORMED = "malformed"


class Decoded(NamedTuple):
    status: FrameClass
    event: Optional[StreamEvent] = None


def classify(raw: Union[bytes, str], kind: StreamKind) -> Decoded:
    msg = load_frame(raw)
    if msg is None:
        return Decoded(FrameClass.MALFORMED)
    if is_control(msg):
        return Decoded(FrameClass.CONTROL)
    if "data" not in msg:
        return Decoded(FrameClass.MALFORMED)
    event = PARSERS[kind](msg["data"])
    if event is None:
        return Decoded(FrameClass.MALFORMED)
    return Decoded(FrameClass.EVENT, event)


def decode(raw: Union[bytes, str], kind: StreamKind) -> Optional[StreamEvent]:
    return classify(raw, kind).event
