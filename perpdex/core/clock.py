"""Clock utilities and client order id generation."""

from __future__ import annotations

import itertools
import threading
import time
from typing import Tuple

_counter = itertools.count()
_counter_lock = threading.Lock()


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_client_order_id() -> str:
    """Return ``"{time_ns}_{counter}"``.

    The counter is process-wide and strictly increasing, so two ids minted in
    the same nanosecond tick still differ.
    """
    with _counter_lock:
        n = next(_counter)
    return f"{time.time_ns()}_{n}"


def split_client_order_id(cloid: str) -> Tuple[int, int]:
    ts, _, n = cloid.partition("_")
    return int(ts), int(n)
