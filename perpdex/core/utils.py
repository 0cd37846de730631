"""Small numeric utilities shared by the parsers and the signer."""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .errors import SigningError

# plain decimal or exponent form; no whitespace or digit separators
_DECIMAL_RE = re.compile(
    r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?inf(?:inity)?", re.IGNORECASE
)


def parse_px(value: Any) -> Optional[float]:
    """Parse a decimal string from the wire into a NaN-free float.

    Returns None for anything that is not a string holding a valid number.
    """
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        return None
    return float(value)


def parse_int(value: Any) -> Optional[int]:
    # bool is an int subclass but never a valid id or timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value < 0:
        return None
    return value


def format_decimal(value: Any) -> str:
    """Render a price or size as the shortest decimal string.

    ``50000.0 -> "50000"``, ``"0.0010" -> "0.001"``, ``1e-05 -> "0.00001"``.
    The signed hash depends on these exact bytes.
    """
    if isinstance(value, bool):
        raise SigningError(f"not a decimal value: {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SigningError(f"non-finite decimal value: {value!r}")
        text = repr(value)
    elif isinstance(value, (int, str, Decimal)):
        text = str(value).strip()
    else:
        raise SigningError(f"not a decimal value: {value!r}")
    try:
        d = Decimal(text)
    except InvalidOperation as e:
        raise SigningError(f"not a decimal value: {value!r}") from e
    if not d.is_finite():
        raise SigningError(f"non-finite decimal value: {value!r}")
    if d == 0:
        return "0"
    return format(d.normalize(), "f")
