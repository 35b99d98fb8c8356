"""Decimal utilities for answer and score arithmetic.

Answers are integers in [0, 10]; means are kept as exact Decimals for banding
and only quantized when persisted or exposed.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional


def to_decimal(value: float, places: int = 2) -> Decimal:
    """Convert a number to Decimal quantized with ROUND_HALF_UP.

    Args:
        value: Numeric value to convert.
        places: Number of decimal places to quantize to.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def mean(values: Iterable[int]) -> Optional[Decimal]:
    """Exact arithmetic mean, or ``None`` for an empty input."""
    items = [Decimal(v) for v in values]
    if not items:
        return None
    return sum(items) / Decimal(len(items))


def to_external_score(score_numeric: float) -> int:
    """Map a 0–10 score to the 0–100 integer scale shown to clients."""
    return int(to_decimal(Decimal(str(score_numeric)) * 10, places=0))


def humanize_answer(value: Optional[int]) -> Optional[str]:
    """Client wording for a 0–10 frequency answer."""
    if value is None:
        return None
    if value <= 2:
        return "quase nunca"
    if value <= 4:
        return "às vezes"
    if value <= 7:
        return "com frequência"
    return "frequentemente"
