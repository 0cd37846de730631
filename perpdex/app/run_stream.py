"""Entry point for live streaming: log events for one coin.

Configure with ``HYPERLIQUID_ENV``, ``PERPDEX_COIN`` (default BTC),
``PERPDEX_STREAMS`` (comma list of kinds, default ``trades,bbo``) and
``PERPDEX_EVENT_LIMIT`` (stop after N events, default 20).
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Sequence

from ..core.errors import ConfigurationError
from ..core.events import StreamEvent, StreamKind
from ..io.log import setup_console_logger
from ..stream.channel import EventChannel
from ..venue.base import PerpDex
from ..venue.hyperliquid import HyperliquidVenue

logger = logging.getLogger(__name__)


def parse_kinds(raw: str) -> List[StreamKind]:
    kinds: List[StreamKind] = []
    for part in raw.split(","):
        name = part.strip()
        if not name:
            continue
        try:
            kinds.append(StreamKind(name))
        except ValueError:
            raise ConfigurationError(f"unknown stream kind {name!r}") from None
    if not kinds:
        raise ConfigurationError("no stream kinds given")
    return kinds


async def stream(
    venue: PerpDex, coin: str, kinds: Sequence[StreamKind], limit: int
) -> List[StreamEvent]:
    """Fan several subscriptions into one channel and collect ``limit`` events."""
    out: EventChannel = EventChannel()
    tasks = [venue.subscribe(kind, out, symbol=coin) for kind in kinds]
    events: List[StreamEvent] = []
    try:
        async for ev in out:
            logger.info("%s %s", ev.kind.value, ev)
            events.append(ev)
            if len(events) >= limit:
                break
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    return events


def main():  # pragma: no cover - manual run
    venue = HyperliquidVenue.from_env()
    setup_console_logger("perpdex", venue.settings.log_level)
    coin = os.getenv("PERPDEX_COIN", "BTC")
    kinds = parse_kinds(os.getenv("PERPDEX_STREAMS", "trades,bbo"))
    limit = int(os.getenv("PERPDEX_EVENT_LIMIT", "20"))
    events = asyncio.run(stream(venue, coin, kinds, limit))
    print(f"Finished after {len(events)} events")


if __name__ == "__main__":  # pragma: no cover
    main()
