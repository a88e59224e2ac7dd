"""
settlement_engines.cycles -- Settlement cycle classification and navigation.

Responsibility:
    Parse free-text settlement-month labels into canonical cycle keys
    (``2025-01`` monthly, ``2025Q1`` quarterly, ``2025`` yearly), step
    between cycles by key arithmetic, and aggregate records per cycle.

Architecture position:
    Engines -- pure calculation layer, zero I/O, zero clock reads.
    ``current_cycle`` takes the reference date as a parameter.

Invariants enforced:
    - Unparsable labels map to ``UNSET_CYCLE_KEY``; they are never dropped.
    - Navigation is key arithmetic: the month before ``2025-01`` is
      ``2024-12`` regardless of wall-clock time.

Failure modes:
    - InvalidCycleTypeError for a cycle type other than monthly, quarterly
      or yearly.
    - InvalidCycleKeyError when navigating from a key that is not in the
      canonical form for its cycle type.

Usage:
    from settlement_engines.cycles import CycleType, cycle_key, previous_cycle

    cycle_key("2025年3月", CycleType.QUARTERLY)   # "2025Q1"
    previous_cycle("2025-01", CycleType.MONTHLY)  # "2024-12"
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from settlement_kernel.domain.coercion import coerce_records
from settlement_kernel.domain.records import SettlementRecord
from settlement_kernel.domain.values import ZERO
from settlement_kernel.exceptions import InvalidCycleKeyError, InvalidCycleTypeError

UNSET_CYCLE_KEY = "unset"

_MIN_YEAR = 1
_MAX_YEAR = 9999


class CycleType(str, Enum):
    """Time bucket used to group settlement records."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


def _cycle_type(cycle_type: CycleType | str) -> CycleType:
    if isinstance(cycle_type, CycleType):
        return cycle_type
    try:
        return CycleType(str(cycle_type).lower())
    except ValueError:
        raise InvalidCycleTypeError(str(cycle_type)) from None


# ---------------------------------------------------------------------------
# Label parsing
# ---------------------------------------------------------------------------

_MONTH_LABELS = (
    re.compile(r"^(\d{4})[-/.](\d{1,2})$"),
    re.compile(r"^(\d{4})年(\d{1,2})月$"),
    re.compile(r"^(\d{4})(\d{2})$"),
)
_DATE_LABELS = (
    re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})(?:[T ].*)?$"),
    re.compile(r"^(\d{4})年(\d{1,2})月(\d{1,2})日$"),
)


def parse_period_label(label: Any) -> tuple[int, int] | None:
    """(year, month) for a readable period label, else None.

    Accepts ``YYYY-M[M]``, ``YYYY/M[M]``, ``YYYY.M[M]``, ``YYYYMM``,
    ``YYYY年M[M]月`` and full dates in the same separators.
    """
    if label is None:
        return None
    text = str(label).strip()
    if not text:
        return None

    for pattern in _MONTH_LABELS:
        match = pattern.match(text)
        if match:
            year, month = int(match.group(1)), int(match.group(2))
            if 1 <= month <= 12 and year >= _MIN_YEAR:
                return year, month
            return None

    for pattern in _DATE_LABELS:
        match = pattern.match(text)
        if match:
            try:
                parsed = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                return None
            return parsed.year, parsed.month

    return None


def _key_for(year: int, month: int, cycle_type: CycleType) -> str:
    if cycle_type == CycleType.MONTHLY:
        return f"{year:04d}-{month:02d}"
    if cycle_type == CycleType.QUARTERLY:
        return f"{year:04d}Q{(month - 1) // 3 + 1}"
    return f"{year:04d}"


def cycle_key(label: Any, cycle_type: CycleType | str = CycleType.MONTHLY) -> str:
    """Canonical cycle key for a period label; ``UNSET_CYCLE_KEY`` if unreadable."""
    ctype = _cycle_type(cycle_type)
    parsed = parse_period_label(label)
    if parsed is None:
        return UNSET_CYCLE_KEY
    return _key_for(parsed[0], parsed[1], ctype)


def period_key(label: Any) -> str:
    """Identity of a settlement period for cross-record comparison.

    The canonical monthly key when the label parses, so ``2025-1`` and
    ``202501`` name the same period; otherwise the stripped label itself.
    """
    parsed = parse_period_label(label)
    if parsed is None:
        return "" if label is None else str(label).strip()
    return _key_for(parsed[0], parsed[1], CycleType.MONTHLY)


# ---------------------------------------------------------------------------
# Key arithmetic
# ---------------------------------------------------------------------------

_KEY_PATTERNS = {
    CycleType.MONTHLY: re.compile(r"^(\d{4})-(\d{2})$"),
    CycleType.QUARTERLY: re.compile(r"^(\d{4})Q([1-4])$"),
    CycleType.YEARLY: re.compile(r"^(\d{4})$"),
}
_PERIODS_PER_YEAR = {
    CycleType.MONTHLY: 12,
    CycleType.QUARTERLY: 4,
    CycleType.YEARLY: 1,
}


def _parse_key(key: str, cycle_type: CycleType) -> tuple[int, int]:
    """(year, index) where index is the 1-based month/quarter (1 for yearly)."""
    match = _KEY_PATTERNS[cycle_type].match(key or "")
    if not match:
        raise InvalidCycleKeyError(key, cycle_type.value)
    year = int(match.group(1))
    index = int(match.group(2)) if cycle_type != CycleType.YEARLY else 1
    if cycle_type == CycleType.MONTHLY and not 1 <= index <= 12:
        raise InvalidCycleKeyError(key, cycle_type.value)
    return year, index


def _format_key(year: int, index: int, cycle_type: CycleType) -> str:
    if cycle_type == CycleType.MONTHLY:
        return f"{year:04d}-{index:02d}"
    if cycle_type == CycleType.QUARTERLY:
        return f"{year:04d}Q{index}"
    return f"{year:04d}"


def _shift(key: str, cycle_type: CycleType | str, step: int) -> str | None:
    ctype = _cycle_type(cycle_type)
    if key == UNSET_CYCLE_KEY:
        return None
    year, index = _parse_key(key, ctype)
    per_year = _PERIODS_PER_YEAR[ctype]
    ordinal = year * per_year + (index - 1) + step
    new_year, new_index = divmod(ordinal, per_year)
    if not _MIN_YEAR <= new_year <= _MAX_YEAR:
        return None
    return _format_key(new_year, new_index + 1, ctype)


def previous_cycle(key: str, cycle_type: CycleType | str = CycleType.MONTHLY) -> str | None:
    """Key of the cycle before ``key``; None for the unset sentinel."""
    return _shift(key, cycle_type, -1)


def next_cycle(key: str, cycle_type: CycleType | str = CycleType.MONTHLY) -> str | None:
    """Key of the cycle after ``key``; None for the unset sentinel."""
    return _shift(key, cycle_type, 1)


def cycle_bounds(
    key: str,
    cycle_type: CycleType | str = CycleType.MONTHLY,
) -> tuple[date, date] | None:
    """First and last calendar day of a cycle; None for the unset sentinel."""
    ctype = _cycle_type(cycle_type)
    if key == UNSET_CYCLE_KEY:
        return None
    year, index = _parse_key(key, ctype)
    if ctype == CycleType.MONTHLY:
        first_month, last_month = index, index
    elif ctype == CycleType.QUARTERLY:
        first_month, last_month = (index - 1) * 3 + 1, index * 3
    else:
        first_month, last_month = 1, 12
    last_day = calendar.monthrange(year, last_month)[1]
    return date(year, first_month, 1), date(year, last_month, last_day)


def cycle_display_name(key: str, cycle_type: CycleType | str = CycleType.MONTHLY) -> str:
    """Human-readable cycle name (``January 2025``, ``Q1 2025``, ``2025``)."""
    ctype = _cycle_type(cycle_type)
    if key == UNSET_CYCLE_KEY:
        return "Unset"
    year, index = _parse_key(key, ctype)
    if ctype == CycleType.MONTHLY:
        return f"{calendar.month_name[index]} {year:04d}"
    if ctype == CycleType.QUARTERLY:
        return f"Q{index} {year:04d}"
    return f"{year:04d}"


def current_cycle(as_of: date, cycle_type: CycleType | str = CycleType.MONTHLY) -> str:
    """Cycle key containing ``as_of``."""
    return _key_for(as_of.year, as_of.month, _cycle_type(cycle_type))


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Cycle:
    """Derived per-cycle aggregate, rebuilt on demand from a record list."""

    key: str
    type: CycleType
    display_name: str
    start_date: date | None
    end_date: date | None
    record_count: int
    total_amount: Decimal

    @property
    def is_unset(self) -> bool:
        return self.key == UNSET_CYCLE_KEY


def build_cycles(
    records: Iterable[SettlementRecord | Mapping[str, Any]],
    cycle_type: CycleType | str = CycleType.MONTHLY,
) -> tuple[Cycle, ...]:
    """Group records into cycles, newest first, unset last."""
    ctype = _cycle_type(cycle_type)
    counts: dict[str, int] = {}
    totals: dict[str, Decimal] = {}
    for record in coerce_records(records):
        key = cycle_key(record.settlement_month, ctype)
        counts[key] = counts.get(key, 0) + 1
        totals[key] = totals.get(key, ZERO) + record.settlement_amount

    dated = sorted((k for k in counts if k != UNSET_CYCLE_KEY), reverse=True)
    ordered = dated + ([UNSET_CYCLE_KEY] if UNSET_CYCLE_KEY in counts else [])

    cycles: list[Cycle] = []
    for key in ordered:
        bounds = cycle_bounds(key, ctype)
        cycles.append(Cycle(
            key=key,
            type=ctype,
            display_name=cycle_display_name(key, ctype),
            start_date=bounds[0] if bounds else None,
            end_date=bounds[1] if bounds else None,
            record_count=counts[key],
            total_amount=totals[key],
        ))
    return tuple(cycles)


def filter_records_by_cycle(
    records: Iterable[SettlementRecord | Mapping[str, Any]],
    key: str,
    cycle_type: CycleType | str = CycleType.MONTHLY,
) -> tuple[SettlementRecord, ...]:
    """Records whose settlement month falls in ``key`` (unset matches unreadable labels)."""
    ctype = _cycle_type(cycle_type)
    return tuple(
        record for record in coerce_records(records)
        if cycle_key(record.settlement_month, ctype) == key
    )


class CycleClassifier:
    """Cycle operations bound to one cycle type.

    Usage:
        quarterly = CycleClassifier(CycleType.QUARTERLY)
        quarterly.key("202505")       # "2025Q2"
        quarterly.previous("2025Q1")  # "2024Q4"
    """

    def __init__(self, cycle_type: CycleType | str = CycleType.MONTHLY) -> None:
        self.cycle_type = _cycle_type(cycle_type)

    def key(self, label: Any) -> str:
        return cycle_key(label, self.cycle_type)

    def previous(self, key: str) -> str | None:
        return previous_cycle(key, self.cycle_type)

    def next(self, key: str) -> str | None:
        return next_cycle(key, self.cycle_type)

    def bounds(self, key: str) -> tuple[date, date] | None:
        return cycle_bounds(key, self.cycle_type)

    def display_name(self, key: str) -> str:
        return cycle_display_name(key, self.cycle_type)

    def group(self, records: Iterable[SettlementRecord | Mapping[str, Any]]) -> tuple[Cycle, ...]:
        return build_cycles(records, self.cycle_type)
