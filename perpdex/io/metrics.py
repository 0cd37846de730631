"""Metrics instrumentation for the streaming and signing paths."""

from __future__ import annotations

from prometheus_client import Counter

ws_reconnects_total = Counter(
    "perpdex_ws_reconnects_total",
    "Failed stream sessions followed by a backoff wait",
    ["kind"],
)
ws_events_total = Counter(
    "perpdex_ws_events_total", "Typed events delivered to subscribers", ["kind"]
)
ws_frames_dropped_total = Counter(
    "perpdex_ws_frames_dropped_total",
    "Inbound frames that failed to decode for the subscribed kind",
    ["kind"],
)
orders_signed_total = Counter("perpdex_orders_signed_total", "Actions signed")


def inc_reconnects(kind: str) -> None:
    ws_reconnects_total.labels(kind=kind).inc()


def inc_events(kind: str) -> None:
    ws_events_total.labels(kind=kind).inc()


def inc_dropped(kind: str) -> None:
    ws_frames_dropped_total.labels(kind=kind).inc()


def inc_signed(n: int = 1) -> None:
    orders_signed_total.inc(n)
