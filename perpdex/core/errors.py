"""Error taxonomy.

Transport failures are retryable and are absorbed by the stream supervisor.
Configuration and signing errors surface synchronously to the caller.
"""

from __future__ import annotations

from typing import Optional


class DexError(Exception):
    """Base class for every error raised by this package."""


class TransportError(DexError):
    """Connect, send or receive failed on a socket or HTTP session."""


class ParseError(DexError):
    """A venue response did not match the expected schema."""


class ConfigurationError(DexError):
    """Caller error: missing subscription field, missing signer, bad setting."""


class SigningError(DexError):
    """Invalid key material or an action that cannot be encoded."""


class ExchangeError(DexError):
    def __init__(self, msg: str, code: Optional[int] = None):
        super().__init__(f"exchange error {code}: {msg}" if code is not None else msg)
        self.code = code
        self.msg = msg
