"""Numeric helpers shared by the derivation pipelines."""

from __future__ import annotations

import math
from typing import Any


def safe_ratio(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 when the denominator is zero.

    Ratios feed thresholds and scores, so NaN/Infinity must never escape.
    """
    if not denominator:
        return 0.0
    return numerator / denominator


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a dashboard would (0.25 -> 0.3), not banker's rounding."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Best-effort float conversion for loosely-typed source records.

    Args:
        value: Raw field value (number, numeric string, Decimal, None...).
        default: Returned for anything missing, malformed or non-finite.

    Returns:
        A finite float.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number
