import asyncio
import json
import re

import pytest
import requests

from perpdex.core.config import VenueSettings
from perpdex.core.errors import (
    ConfigurationError,
    ExchangeError,
    ParseError,
    TransportError,
)
from perpdex.core.events import StreamKind, TradeEvent
from perpdex.core.types import OrderId, OrderRequest, Side
from perpdex.stream.channel import EventChannel
from perpdex.venue.hyperliquid import HyperliquidVenue
from perpdex.venue.hyperliquid_auth import HlSigner
from perpdex.venue.mock import MockSession, MockTransport, frame

PK = "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"
SETTINGS = VenueSettings(rest_url="https://rest.test", ws_url="wss://ws.test/ws")

META = {"universe": [{"name": "BTC", "szDecimals": 5}, {"name": "ETH"}]}
TRADES = [
    {
        "coin": "BTC",
        "side": "B",
        "px": "50000.0",
        "sz": "0.1",
        "time": 1,
        "hash": "h1",
        "tid": 1,
    },
    {
        "coin": "BTC",
        "side": "A",
        "px": "49999.0",
        "sz": "0.2",
        "time": 2,
        "hash": "h2",
        "tid": 2,
    },
]
BOOK = {
    "coin": "BTC",
    "time": 5,
    "levels": [
        [{"px": "100", "sz": "1", "n": 1}, {"px": "99", "sz": "2", "n": 1}],
        [{"px": "101", "sz": "1", "n": 1}, {"px": "102", "sz": "3", "n": 2}],
    ],
}
RESTING = {
    "status": "ok",
    "response": {"type": "order", "data": {"statuses": [{"resting": {"oid": 77}}]}},
}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.text = payload if isinstance(payload, str) else json.dumps(payload)

    def json(self):
        if isinstance(self.payload, str):
            raise ValueError("not json")
        return self.payload


class FakeApi:
    """Answers /info by request type and /exchange from a queue."""

    def __init__(self, info=None, exchange=()):
        self.info = info or {}
        self.exchange = list(exchange)
        self.calls = []

    def __call__(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        if url.endswith("/exchange"):
            return self.exchange.pop(0)
        return self.info[json["type"]]

    def bodies(self, path):
        return [body for url, body in self.calls if url.endswith(path)]


@pytest.fixture
def api(monkeypatch):
    def install(**kwargs):
        fake = FakeApi(**kwargs)
        monkeypatch.setattr("perpdex.venue.hyperliquid.requests.post", fake)
        return fake

    return install


def _venue(signed=True, transport=None):
    signer = HlSigner.from_hex_key(PK) if signed else None
    return HyperliquidVenue(
        settings=SETTINGS, signer=signer, transport=transport or MockTransport()
    )


def test_private_key_in_settings_enables_signing():
    v = HyperliquidVenue(
        settings=VenueSettings(private_key=PK), transport=MockTransport()
    )
    assert v.address == HlSigner.from_hex_key(PK).address


def test_trades(api):
    fake = api(info={"recentTrades": FakeResponse(TRADES)})
    trades = _venue(signed=False).trades("BTC", limit=1)
    assert len(trades) == 1
    assert trades[0].side == Side.BUY and trades[0].price == 50000.0
    assert fake.calls == [
        ("https://rest.test/info", {"type": "recentTrades", "coin": "BTC"})
    ]


def test_malformed_trade_is_a_parse_error(api):
    api(info={"recentTrades": FakeResponse([dict(TRADES[0], px=1.0)])})
    with pytest.raises(ParseError):
        _venue(signed=False).trades("BTC")


def test_order_book_is_truncated_to_depth(api):
    api(info={"l2Book": FakeResponse(BOOK)})
    book = _venue(signed=False).order_book("BTC", depth=1)
    assert [lvl.price for lvl in book.bids] == [100.0]
    assert [lvl.price for lvl in book.asks] == [101.0]
    assert book.mid() == 100.5


def test_http_errors(api, monkeypatch):
    api(info={"l2Book": FakeResponse("rate limited", status_code=429)})
    with pytest.raises(ExchangeError) as exc:
        _venue(signed=False).order_book("BTC")
    assert exc.value.code == 429

    api(info={"l2Book": FakeResponse("<html>")})
    with pytest.raises(ParseError):
        _venue(signed=False).order_book("BTC")

    def boom(url, json=None, timeout=None):
        raise requests.ConnectionError("no route")

    monkeypatch.setattr("perpdex.venue.hyperliquid.requests.post", boom)
    with pytest.raises(TransportError):
        _venue(signed=False).order_book("BTC")


def test_asset_index_is_cached(api):
    fake = api(info={"meta": FakeResponse(META)})
    v = _venue(signed=False)
    assert v.asset_index("BTC") == 0
    assert v.asset_index("ETH") == 1
    with pytest.raises(ConfigurationError):
        v.asset_index("DOGE")
    assert len(fake.bodies("/info")) == 1


def test_positions(api):
    state = {
        "assetPositions": [
            {
                "position": {
                    "coin": "ETH",
                    "szi": "-1.5",
                    "entryPx": "3000.0",
                    "unrealizedPnl": "12.5",
                }
            }
        ]
    }
    fake = api(info={"clearinghouseState": FakeResponse(state)})
    v = _venue()
    [pos] = v.positions()
    assert pos.coin == "ETH" and pos.size == -1.5 and not pos.is_long
    assert pos.entry_px == 3000.0 and pos.unrealized_pnl == 12.5
    assert fake.bodies("/info")[0]["user"] == v.address


def test_place_order_signs_and_returns_oid(api):
    fake = api(info={"meta": FakeResponse(META)}, exchange=[FakeResponse(RESTING)])
    v = _venue()
    oid = v.place_order(OrderRequest("ETH", True, 3000.5, 0.1))
    assert oid == OrderId("77")
    [body] = fake.bodies("/exchange")
    assert body["type"] == "order"
    order = body["orders"][0]
    assert order["a"] == 1
    assert (order["p"], order["s"]) == ("3000.5", "0.1")
    assert re.match(r"^\d+_\d+$", body["nonce"])
    assert order["c"] == body["nonce"]
    assert re.match(r"^0x[0-9a-f]{130}$", body["signature"])


def test_place_order_filled(api):
    filled = {
        "status": "ok",
        "response": {"data": {"statuses": [{"filled": {"oid": 5, "totalSz": "1"}}]}},
    }
    api(info={"meta": FakeResponse(META)}, exchange=[FakeResponse(filled)])
    assert _venue().place_order(OrderRequest("BTC", False, 1, 1)) == OrderId("5")


@pytest.mark.parametrize(
    "reply",
    [
        {"status": "err", "response": "User or API Wallet does not exist."},
        {
            "status": "ok",
            "response": {"data": {"statuses": [{"error": "Insufficient margin"}]}},
        },
    ],
)
def test_place_order_rejections(api, reply):
    api(info={"meta": FakeResponse(META)}, exchange=[FakeResponse(reply)])
    with pytest.raises(ExchangeError):
        _venue().place_order(OrderRequest("BTC", True, 50000, 0.001))


def test_cancel(api):
    ok = {"status": "ok", "response": {"data": {"statuses": ["success"]}}}
    fake = api(info={"meta": FakeResponse(META)}, exchange=[FakeResponse(ok)])
    _venue().cancel("BTC", OrderId("77"))
    [body] = fake.bodies("/exchange")
    assert body["type"] == "cancel"
    assert body["cancels"] == [{"a": 0, "o": 77}]
    assert "nonce" in body and "signature" in body


def test_signed_calls_require_a_signer(api):
    api(info={"meta": FakeResponse(META)})
    v = _venue(signed=False)
    with pytest.raises(ConfigurationError):
        v.place_order(OrderRequest("BTC", True, 1, 1))
    with pytest.raises(ConfigurationError):
        v.positions()
    with pytest.raises(ConfigurationError):
        v.subscription_for(StreamKind.USER_FILLS)


def test_subscribe_streams_through_transport():
    trade = frame({"channel": "trades", "data": TRADES[:1]})
    transport = MockTransport([MockSession([trade], hold=True)])
    v = _venue(signed=False, transport=transport)

    async def main():
        out = EventChannel()
        task = v.subscribe(StreamKind.TRADES, out, symbol="BTC")
        ev = await asyncio.wait_for(out.recv(), 1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return ev

    ev = asyncio.run(main())
    assert isinstance(ev, TradeEvent)
    assert transport.urls == ["wss://ws.test/ws"]


def test_account_subscription_uses_signer_address():
    transport = MockTransport([MockSession(hold=True)])
    v = _venue(transport=transport)

    async def main():
        task = v.subscribe(StreamKind.ORDER_UPDATES, EventChannel())
        for _ in range(20):
            await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(main())
    sent = json.loads(transport.connections[0].sent[0])
    assert sent["subscription"] == {"type": "orderUpdates", "user": v.address}


def test_all_mids(api):
    fake = api(info={"allMids": FakeResponse({"BTC": "50000.5", "ETH": "3000"})})
    assert _venue(signed=False).all_mids() == {"BTC": 50000.5, "ETH": 3000.0}
    assert fake.bodies("/info") == [{"type": "allMids"}]

    api(info={"allMids": FakeResponse({"BTC": 1})})
    with pytest.raises(ParseError):
        _venue(signed=False).all_mids()


def test_funding_history(api):
    rows = [
        {"coin": "ETH", "fundingRate": "0.0000125", "premium": "-0.0002", "time": 10},
        {"coin": "ETH", "fundingRate": "-0.00001", "premium": "0.0001", "time": 20},
    ]
    fake = api(info={"fundingHistory": FakeResponse(rows)})
    v = _venue(signed=False)
    history = v.funding_history("ETH", start_time=5)
    assert [r.time for r in history] == [10, 20]
    assert history[0].funding_rate == 0.0000125 and history[1].premium == 0.0001
    v.funding_history("ETH", start_time=5, end_time=15)
    assert fake.bodies("/info") == [
        {"type": "fundingHistory", "coin": "ETH", "startTime": 5},
        {"type": "fundingHistory", "coin": "ETH", "startTime": 5, "endTime": 15},
    ]


def test_open_orders(api):
    rows = [
        {
            "coin": "BTC",
            "side": "A",
            "limitPx": "51000.0",
            "sz": "0.5",
            "oid": 42,
            "timestamp": 1700000000000,
            "origSz": "1.0",
            "cloid": None,
        }
    ]
    fake = api(info={"openOrders": FakeResponse(rows)})
    v = _venue()
    [order] = v.open_orders()
    assert order.side == Side.SELL and order.oid == 42
    assert (order.limit_px, order.sz, order.orig_sz) == (51000.0, 0.5, 1.0)
    assert order.cloid is None
    assert fake.bodies("/info") == [{"type": "openOrders", "user": v.address}]

    other = "0x" + "ab" * 20
    _venue(signed=False).open_orders(other)
    assert fake.bodies("/info")[-1]["user"] == other


def test_open_orders_malformed_side(api):
    row = {
        "coin": "BTC",
        "side": "Z",
        "limitPx": "1",
        "sz": "1",
        "oid": 1,
        "timestamp": 1,
    }
    api(info={"openOrders": FakeResponse([row])})
    with pytest.raises(ParseError):
        _venue().open_orders()


FILL = {
    "coin": "BTC",
    "px": "50000.0",
    "sz": "0.01",
    "side": "B",
    "time": 1700000000000,
    "startPosition": "0.0",
    "dir": "Open Long",
    "closedPnl": "0.0",
    "hash": "0xfeed",
    "oid": 7,
    "crossed": True,
    "fee": "0.25",
    "tid": 99,
}


def test_user_fills(api):
    fake = api(
        info={
            "userFills": FakeResponse([FILL]),
            "userFillsByTime": FakeResponse([dict(FILL, closedPnl="12.5")]),
        }
    )
    v = _venue()
    [fill] = v.user_fills()
    assert fill.side == Side.BUY and fill.crossed and fill.dir == "Open Long"
    assert (fill.oid, fill.tid, fill.fee) == (7, 99, 0.25)
    [later] = v.user_fills(start_time=1, end_time=2)
    assert later.closed_pnl == 12.5
    assert fake.bodies("/info") == [
        {"type": "userFills", "user": v.address},
        {"type": "userFillsByTime", "user": v.address, "startTime": 1, "endTime": 2},
    ]
    with pytest.raises(ConfigurationError):
        v.user_fills(end_time=2)


def test_user_fills_malformed(api):
    api(info={"userFills": FakeResponse([dict(FILL, px="1_000")])})
    with pytest.raises(ParseError):
        _venue().user_fills()
    api(info={"userFills": FakeResponse({"fills": []})})
    with pytest.raises(ParseError):
        _venue().user_fills()


def test_account_reads_require_signer_or_user():
    with pytest.raises(ConfigurationError):
        _venue(signed=False).open_orders()
    with pytest.raises(ConfigurationError):
        _venue(signed=False).user_fills()
