"""
Values -- Decimal helpers for settlement amounts and rates.

Responsibility:
    Converts loosely typed numeric input (str, int, float, Decimal) into
    Decimal, rounds money to the cent, and renders the fixed two-decimal
    strings that document writers consume.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the coercion boundary and by every engine.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so the
      shortest round-trip representation is used, never the binary value.
    - Cent rounding is ROUND_HALF_UP on Decimal, the exact equivalent of
      scaled-integer rounding without binary float drift.

Failure modes:
    - ``parse_decimal`` never raises; it reports failure through its return
      value.  ``to_decimal`` raises ``ValueError`` for non-numeric input.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def parse_decimal(value: Any) -> tuple[Decimal | None, bool]:
    """Parse a loosely typed numeric value.

    Returns:
        ``(None, True)`` for blank input, ``(Decimal, True)`` for a finite
        number, ``(None, False)`` for anything that is present but not a
        finite number (including NaN and infinities).
    """
    if is_blank(value):
        return None, True
    if isinstance(value, bool):
        return None, False
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip().replace(",", ""))
        except (InvalidOperation, ValueError):
            return None, False
    else:
        return None, False
    if not parsed.is_finite():
        return None, False
    return parsed, True


def to_decimal(value: Any) -> Decimal:
    """Convert to Decimal, raising ``ValueError`` when not a finite number."""
    parsed, ok = parse_decimal(value)
    if not ok or parsed is None:
        raise ValueError(f"Not a number: {value!r}")
    return parsed


def round2(value: Decimal) -> Decimal:
    """Round to the cent, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal | int | str) -> str:
    """Fixed two-decimal string for writers and auto-fix values."""
    return str(round2(to_decimal(value)))


def format_rate(value: Decimal) -> str:
    """Human-readable rate: trailing zeros dropped, no exponent."""
    normalized = value.normalize()
    if normalized == normalized.to_integral():
        return str(normalized.quantize(ONE))
    return format(normalized, "f")
