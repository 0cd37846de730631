"""Subscription descriptor and subscribe handshake."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import ConfigurationError
from ..core.events import StreamKind


@dataclass(frozen=True)
class Subscription:
    """One logical stream: a kind plus either a coin symbol or an account.

    Market-data kinds need ``symbol``; account kinds need ``account``.
    Validation happens in :meth:`handshake` so the supervisor can fail fast
    before it ever opens a socket.
    """

    kind: StreamKind
    symbol: Optional[str] = None
    account: Optional[str] = None

    @classmethod
    def market(cls, kind: StreamKind, symbol: str) -> "Subscription":
        return cls(kind=kind, symbol=symbol)

    @classmethod
    def user(cls, kind: StreamKind, account: str) -> "Subscription":
        return cls(kind=kind, account=account)

    def subscription_body(self) -> Dict[str, Any]:
        if self.kind.is_account:
            if not self.account:
                raise ConfigurationError(f"account required for {self.kind.value}")
            if self.symbol is not None:
                raise ConfigurationError(
                    f"{self.kind.value} is an account stream; symbol must not be set"
                )
            return {"type": self.kind.value, "user": self.account}
        if not self.symbol:
            raise ConfigurationError(f"coin required for {self.kind.value}")
        if self.account is not None:
            raise ConfigurationError(
                f"{self.kind.value} is a market stream; account must not be set"
            )
        return {"type": self.kind.value, "coin": self.symbol}

    def handshake(self) -> bytes:
        msg = {"method": "subscribe", "subscription": self.subscription_body()}
        return json.dumps(msg, separators=(",", ":")).encode("utf-8")

    def describe(self) -> str:
        target = self.account if self.kind.is_account else self.symbol
        return f"{self.kind.value}:{target}"
