"""Hyperliquid action signing.

An account-mutating request is signed in four fixed steps:

1. build the canonical action ``{"action": {...}}`` with a frozen field order
2. encode it with MessagePack (the venue hashes these bytes, not JSON)
3. hash the bytes with Keccak-256
4. sign the digest with the account's secp256k1 key (RFC 6979, so the same
   inputs always give the same signature) and render ``0x`` + r || s || v

Field order and the decimal rendering of prices and sizes are part of the
wire contract: any change produces a different hash and an invalid
signature, with no local error.

Provide the key as hex via ``HYPERLIQUID_PRIVATE_KEY`` or pass it directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import msgpack  # type: ignore
from eth_account import Account  # type: ignore
from eth_utils import keccak  # type: ignore

from ..core.errors import SigningError
from ..core.types import OrderRequest
from ..core.utils import format_decimal
from ..io import metrics

Nonce = Union[int, str]


@dataclass(frozen=True)
class OrderAction:
    """Single limit order. The nonce becomes the client id ``c``."""

    asset: int
    is_buy: bool
    price: str
    size: str
    reduce_only: bool
    tif: str
    grouping: str = "na"

    @classmethod
    def from_request(cls, req: OrderRequest, asset: int) -> "OrderAction":
        return cls(
            asset=asset,
            is_buy=req.is_buy,
            price=format_decimal(req.price),
            size=format_decimal(req.size),
            reduce_only=req.reduce_only,
            tif=req.tif.value,
        )

    def canonical(self, nonce: Nonce) -> Dict[str, Any]:
        # keys in wire order: a, b, p, s, r, t, c
        order = {
            "a": self.asset,
            "b": self.is_buy,
            "p": self.price,
            "s": self.size,
            "r": self.reduce_only,
            "t": {"limit": {"tif": self.tif}},
            "c": str(nonce),
        }
        return {"type": "order", "orders": [order], "grouping": self.grouping}


@dataclass(frozen=True)
class CancelAction:
    asset: int
    oid: int

    def canonical(self, nonce: Nonce) -> Dict[str, Any]:
        return {
            "type": "cancel",
            "cancels": [{"a": self.asset, "o": self.oid}],
            "nonce": str(nonce),
        }


SigningAction = Union[OrderAction, CancelAction]


def canonical_value(action: SigningAction, nonce: Nonce) -> Dict[str, Any]:
    return {"action": action.canonical(nonce)}


def encode_action(action: SigningAction, nonce: Nonce) -> bytes:
    try:
        return msgpack.packb(canonical_value(action, nonce), use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise SigningError(f"cannot encode {type(action).__name__}: {e}") from e


def action_hash(action: SigningAction, nonce: Nonce) -> bytes:
    return keccak(encode_action(action, nonce))


class HlSigner:
    """Holds one account key. Immutable after construction."""

    __slots__ = ("_account", "_address")

    def __init__(self, account):
        self._account = account
        # venue expects lowercase hex addresses
        self._address = account.address.lower()

    @classmethod
    def from_hex_key(cls, pk_hex: str) -> "HlSigner":
        text = (pk_hex or "").strip()
        try:
            account = Account.from_key(text)
        except Exception as e:  # eth_keys raises ValidationError, not ValueError
            raise SigningError(f"invalid private key: {e}") from e
        return cls(account)

    @property
    def address(self) -> str:
        return self._address

    def sign_digest(self, digest: bytes) -> str:
        signed = self._account.unsafe_sign_hash(digest)
        sig = bytes(signed.signature)
        if len(sig) != 65:
            raise SigningError(f"unexpected signature length {len(sig)}")
        return "0x" + sig.hex()

    def sign_action(self, action: SigningAction, nonce: Nonce) -> str:
        return sign_action(self, action, nonce)


def sign_action(signer: HlSigner, action: SigningAction, nonce: Nonce) -> str:
    """Sign ``action`` with ``nonce``; returns ``"0x"`` + 130 hex chars."""
    signature = signer.sign_digest(action_hash(action, nonce))
    metrics.inc_signed()
    return signature


def signed_envelope(
    signer: HlSigner, action: SigningAction, nonce: Nonce
) -> Dict[str, Any]:
    body = dict(action.canonical(nonce))
    body.setdefault("nonce", str(nonce))
    body["signature"] = sign_action(signer, action, nonce)
    return body


def load_signer_from_env(var: str = "HYPERLIQUID_PRIVATE_KEY") -> Optional[HlSigner]:
    """Return a signer from ``var`` or None when it is unset."""
    raw = os.getenv(var)
    if not raw or not raw.strip():
        return None
    return HlSigner.from_hex_key(raw)

