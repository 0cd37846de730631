"""Hyperliquid adapter.

REST calls go to ``/info`` (public and account reads) and ``/exchange``
(signed actions). Streams are delegated to the subscription supervisor, one
task and one socket per subscription.

Features:
* Mainnet vs testnet selection via ``HYPERLIQUID_ENV=mainnet|testnet``
* Signing enabled when ``HYPERLIQUID_PRIVATE_KEY`` is set (or a signer is passed)
* Account streams (order updates, fills) subscribe with the signer's address
* Account reads (positions, open orders, fills) default to the signer's address
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests  # type: ignore

from ..core.clock import generate_client_order_id
from ..core.config import VenueSettings
from ..core.errors import ConfigurationError, ExchangeError, ParseError, TransportError
from ..core.events import StreamKind
from ..core.types import (
    FundingRate,
    OpenOrder,
    OrderBookSnapshot,
    OrderId,
    OrderRequest,
    Position,
    Side,
    Trade,
    UserFill,
)
from ..core.utils import parse_int, parse_px
from ..stream.backoff import BackoffPolicy
from ..stream.channel import EventChannel
from ..stream.demux import book_from, trade_from
from ..stream.subscription import Subscription
from ..stream.supervisor import supervise
from .base import PerpDex
from .hyperliquid_auth import (
    CancelAction,
    HlSigner,
    OrderAction,
    signed_envelope,
)
from .ws_client import WebsocketsTransport, WsTransport

logger = logging.getLogger(__name__)


def _open_order_from(o: Any) -> Optional[OpenOrder]:
    if not isinstance(o, dict):
        return None
    coin, code = o.get("coin"), o.get("side")
    side = Side.from_wire(code) if isinstance(code, str) else None
    limit_px, sz = parse_px(o.get("limitPx")), parse_px(o.get("sz"))
    orig_sz = parse_px(o.get("origSz", o.get("sz")))
    oid, ts = parse_int(o.get("oid")), parse_int(o.get("timestamp"))
    cloid = o.get("cloid")
    if not isinstance(coin, str) or None in (side, limit_px, sz, orig_sz, oid, ts):
        return None
    if cloid is not None and not isinstance(cloid, str):
        return None
    return OpenOrder(coin, side, limit_px, sz, oid, ts, orig_sz, cloid)


def _user_fill_from(f: Any) -> Optional[UserFill]:
    if not isinstance(f, dict):
        return None
    coin, tx_hash, code = f.get("coin"), f.get("hash"), f.get("side")
    side = Side.from_wire(code) if isinstance(code, str) else None
    px, sz, fee = parse_px(f.get("px")), parse_px(f.get("sz")), parse_px(f.get("fee"))
    oid, tid = parse_int(f.get("oid")), parse_int(f.get("tid"))
    ts = parse_int(f.get("time"))
    if not isinstance(coin, str) or not isinstance(tx_hash, str):
        return None
    if None in (side, px, sz, fee, oid, tid, ts):
        return None
    return UserFill(
        coin=coin,
        side=side,
        px=px,
        sz=sz,
        time=ts,
        hash=tx_hash,
        oid=oid,
        tid=tid,
        fee=fee,
        closed_pnl=parse_px(f.get("closedPnl")) or 0.0,
        dir=f.get("dir") if isinstance(f.get("dir"), str) else "",
        crossed=f.get("crossed") is True,
    )


def _funding_from(r: Any) -> Optional[FundingRate]:
    if not isinstance(r, dict) or not isinstance(r.get("coin"), str):
        return None
    rate, premium = parse_px(r.get("fundingRate")), parse_px(r.get("premium"))
    ts = parse_int(r.get("time"))
    if None in (rate, premium, ts):
        return None
    return FundingRate(coin=r["coin"], funding_rate=rate, premium=premium, time=ts)


class HyperliquidVenue(PerpDex):
    def __init__(
        self,
        settings: Optional[VenueSettings] = None,
        signer: Optional[HlSigner] = None,
        transport: Optional[WsTransport] = None,
        name: str = "hyperliquid",
    ):
        super().__init__(name)
        self.settings = settings or VenueSettings.from_env()
        if signer is None and self.settings.private_key:
            # invalid key material fails here, before any request
            signer = HlSigner.from_hex_key(self.settings.private_key)
        self.signer = signer
        self.transport = transport or WebsocketsTransport()
        self._assets: Optional[Dict[str, int]] = None

    @classmethod
    def from_env(cls, **kwargs) -> "HyperliquidVenue":
        return cls(settings=VenueSettings.from_env(), **kwargs)

    @property
    def address(self) -> str:
        return self._require_signer().address

    def _require_signer(self) -> HlSigner:
        if self.signer is None:
            raise ConfigurationError("signer required (set HYPERLIQUID_PRIVATE_KEY)")
        return self.signer

    def backoff_policy(self) -> BackoffPolicy:
        s = self.settings
        return BackoffPolicy(
            base_s=s.backoff_base_s,
            cap_s=s.backoff_cap_s,
            jitter_ratio=s.jitter_ratio,
            max_retries=s.max_retries,
        )

    # ---------- REST ----------

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        url = f"{self.settings.rest_url}{path}"
        try:
            resp = requests.post(url, json=body, timeout=self.settings.http_timeout_s)
        except requests.RequestException as e:
            raise TransportError(f"POST {path} failed: {e}") from e
        if not (200 <= resp.status_code < 300):
            raise ExchangeError(resp.text, code=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"POST {path}: response is not JSON") from e

    def info(self, body: Dict[str, Any]) -> Any:
        return self._post("/info", body)

    def trades(self, coin: str, limit: int = 100) -> List[Trade]:
        raw = self.info({"type": "recentTrades", "coin": coin})
        if not isinstance(raw, list):
            raise ParseError("recentTrades: expected a list")
        out: List[Trade] = []
        for item in raw[:limit]:
            trade = trade_from(item) if isinstance(item, dict) else None
            if trade is None:
                raise ParseError(f"recentTrades: malformed trade {item!r}")
            out.append(trade)
        return out

    def order_book(self, coin: str, depth: int = 20) -> OrderBookSnapshot:
        book = book_from(self.info({"type": "l2Book", "coin": coin}))
        if book is None:
            raise ParseError(f"l2Book: malformed book for {coin}")
        return book.truncate(depth)

    def asset_index(self, coin: str) -> int:
        """Asset index of ``coin``: its position in the perp universe."""
        if self._assets is None:
            meta = self.info({"type": "meta"})
            universe = meta.get("universe") if isinstance(meta, dict) else None
            if not isinstance(universe, list):
                raise ParseError("meta: missing universe")
            self._assets = {
                u["name"]: i
                for i, u in enumerate(universe)
                if isinstance(u, dict) and isinstance(u.get("name"), str)
            }
        try:
            return self._assets[coin]
        except KeyError:
            raise ConfigurationError(f"unknown coin {coin!r}") from None

    def positions(self) -> List[Position]:
        state = self.info({"type": "clearinghouseState", "user": self.address})
        if not isinstance(state, dict):
            raise ParseError("clearinghouseState: expected an object")
        out: List[Position] = []
        for entry in state.get("assetPositions") or []:
            pos = entry.get("position") if isinstance(entry, dict) else None
            if not isinstance(pos, dict) or not isinstance(pos.get("coin"), str):
                raise ParseError(f"clearinghouseState: malformed position {entry!r}")
            out.append(
                Position(
                    coin=pos["coin"],
                    size=parse_px(pos.get("szi")) or 0.0,
                    entry_px=parse_px(pos.get("entryPx")),
                    unrealized_pnl=parse_px(pos.get("unrealizedPnl")) or 0.0,
                )
            )
        return out

    def _records(self, body: Dict[str, Any], parse) -> list:
        raw = self.info(body)
        if not isinstance(raw, list):
            raise ParseError(f"{body['type']}: expected a list")
        out = []
        for item in raw:
            rec = parse(item)
            if rec is None:
                raise ParseError(f"{body['type']}: malformed entry {item!r}")
            out.append(rec)
        return out

    def all_mids(self) -> Dict[str, float]:
        """Mid price per coin."""
        raw = self.info({"type": "allMids"})
        if not isinstance(raw, dict):
            raise ParseError("allMids: expected an object")
        mids: Dict[str, float] = {}
        for coin, px in raw.items():
            mid = parse_px(px)
            if mid is None:
                raise ParseError(f"allMids: malformed mid for {coin}: {px!r}")
            mids[coin] = mid
        return mids

    def funding_history(
        self, coin: str, start_time: int, end_time: Optional[int] = None
    ) -> List[FundingRate]:
        body: Dict[str, Any] = {
            "type": "fundingHistory",
            "coin": coin,
            "startTime": start_time,
        }
        if end_time is not None:
            body["endTime"] = end_time
        return self._records(body, _funding_from)

    def open_orders(self, user: Optional[str] = None) -> List[OpenOrder]:
        """Resting orders of ``user`` (defaults to the signer's account)."""
        body = {"type": "openOrders", "user": user or self.address}
        return self._records(body, _open_order_from)

    def user_fills(
        self,
        user: Optional[str] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> List[UserFill]:
        """Fill history, optionally restricted to ``[start_time, end_time]`` (ms)."""
        body: Dict[str, Any] = {"type": "userFills", "user": user or self.address}
        if start_time is not None:
            body["type"] = "userFillsByTime"
            body["startTime"] = start_time
            if end_time is not None:
                body["endTime"] = end_time
        elif end_time is not None:
            raise ConfigurationError("end_time requires start_time")
        return self._records(body, _user_fill_from)

    def _exchange(self, envelope: Dict[str, Any]) -> Any:
        resp = self._post("/exchange", envelope)
        if not isinstance(resp, dict):
            raise ParseError("exchange: expected an object")
        if resp.get("status") != "ok":
            raise ExchangeError(str(resp.get("response")))
        return resp.get("response") or {}

    def place_order(self, req: OrderRequest) -> OrderId:
        signer = self._require_signer()
        action = OrderAction.from_request(req, self.asset_index(req.coin))
        nonce = generate_client_order_id()
        response = self._exchange(signed_envelope(signer, action, nonce))
        try:
            status = response["data"]["statuses"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"order: unexpected response {response!r}") from e
        if "error" in status:
            raise ExchangeError(str(status["error"]))
        for key in ("resting", "filled"):
            if key in status:
                return OrderId(str(status[key]["oid"]))
        raise ParseError(f"order: unknown status {status!r}")

    def cancel(self, coin: str, oid: OrderId) -> None:
        signer = self._require_signer()
        action = CancelAction(asset=self.asset_index(coin), oid=int(oid.value))
        response = self._exchange(
            signed_envelope(signer, action, generate_client_order_id())
        )
        statuses = (response.get("data") or {}).get("statuses") or []
        for status in statuses:
            if isinstance(status, dict) and "error" in status:
                raise ExchangeError(str(status["error"]))

    # ---------- streaming ----------

    def subscription_for(
        self, kind: StreamKind, symbol: Optional[str] = None
    ) -> Subscription:
        if kind.is_account:
            return Subscription.user(kind, self.address)
        return Subscription(kind=kind, symbol=symbol)

    def subscribe(
        self, kind: StreamKind, out: EventChannel, symbol: Optional[str] = None
    ) -> "asyncio.Task[None]":
        sub = self.subscription_for(kind, symbol)
        logger.info("subscribing %s on %s", sub.describe(), self.settings.ws_url)
        return supervise(
            sub,
            self.transport,
            out,
            url=self.settings.ws_url,
            policy=self.backoff_policy(),
        )
