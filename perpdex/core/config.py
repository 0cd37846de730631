"""Settings loaded from the environment (and ``.env`` when present).

* ``HYPERLIQUID_ENV=testnet|mainnet`` selects REST and WS endpoints
* ``HYPERLIQUID_PRIVATE_KEY`` enables signing and account streams
* ``PERPDEX_WS_*`` tune the reconnect backoff
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv  # type: ignore

from .errors import ConfigurationError

MAINNET_REST = "https://api.hyperliquid.xyz"
MAINNET_WS = "wss://api.hyperliquid.xyz/ws"
TESTNET_REST = "https://api.hyperliquid-testnet.xyz"
TESTNET_WS = "wss://api.hyperliquid-testnet.xyz/ws"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class VenueSettings:
    rest_url: str = MAINNET_REST
    ws_url: str = MAINNET_WS
    private_key: Optional[str] = None
    http_timeout_s: float = 5.0
    backoff_base_s: float = 0.5
    backoff_cap_s: float = 30.0
    jitter_ratio: float = 0.1
    max_retries: Optional[int] = None
    log_level: str = "INFO"

    @property
    def testnet(self) -> bool:
        return self.rest_url == TESTNET_REST

    @classmethod
    def for_network(cls, testnet: bool, **overrides) -> "VenueSettings":
        if testnet:
            return cls(rest_url=TESTNET_REST, ws_url=TESTNET_WS, **overrides)
        return cls(**overrides)

    @classmethod
    def from_env(cls) -> "VenueSettings":
        load_dotenv()
        env = (os.getenv("HYPERLIQUID_ENV") or "mainnet").lower()
        if env not in ("mainnet", "testnet"):
            raise ConfigurationError(
                f"HYPERLIQUID_ENV must be 'mainnet' or 'testnet', got {env!r}"
            )
        pk = (os.getenv("HYPERLIQUID_PRIVATE_KEY") or "").strip() or None
        return cls.for_network(
            env == "testnet",
            private_key=pk,
            http_timeout_s=_env_float("PERPDEX_HTTP_TIMEOUT_S", 5.0),
            backoff_base_s=_env_float("PERPDEX_WS_BACKOFF_BASE_S", 0.5),
            backoff_cap_s=_env_float("PERPDEX_WS_BACKOFF_CAP_S", 30.0),
            jitter_ratio=_env_float("PERPDEX_WS_JITTER_RATIO", 0.1),
            max_retries=_env_int("PERPDEX_WS_MAX_RETRIES"),
            log_level=(os.getenv("PERPDEX_LOG_LEVEL") or "INFO").upper(),
        )
