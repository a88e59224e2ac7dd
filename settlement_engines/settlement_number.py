"""
settlement_engines.settlement_number -- Settlement number generation.

Responsibility:
    Produce human-facing settlement numbers that continue the sequence of
    the numbers already issued, and check numbers for shape and uniqueness.

Architecture position:
    Engines -- pure calculation layer.  The timestamp is a parameter; this
    module never reads the clock or any stored format preference.

Formats:
    DATE_SEQUENCE           JS-20250115-001
    MONTH_PARTNER_SEQUENCE  JS-202501-ABC-001
    DATETIME                SETTLEMENT-20250115-143022
    MONTH_SEQUENCE          JS-202501-001

Failure modes:
    - InvalidSettlementNumberFormatError for an unknown format name.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from settlement_kernel.exceptions import InvalidSettlementNumberFormatError

_SEQUENCE_WIDTH = 3
_PARTNER_CODE_LENGTH = 3
_UNKNOWN_PARTNER = "UNK"
_TRAILING_SEQUENCE = re.compile(r"-(\d+)$")


class SettlementNumberFormat(str, Enum):
    DATE_SEQUENCE = "DATE_SEQUENCE"
    MONTH_PARTNER_SEQUENCE = "MONTH_PARTNER_SEQUENCE"
    DATETIME = "DATETIME"
    MONTH_SEQUENCE = "MONTH_SEQUENCE"


_VALID_PATTERNS: dict[SettlementNumberFormat, re.Pattern[str]] = {
    SettlementNumberFormat.DATE_SEQUENCE: re.compile(r"^JS-\d{8}-\d{3}$"),
    SettlementNumberFormat.MONTH_PARTNER_SEQUENCE: re.compile(r"^JS-\d{6}-[A-Z0-9]{1,10}-\d{3}$"),
    SettlementNumberFormat.DATETIME: re.compile(r"^SETTLEMENT-\d{8}-\d{6}$"),
    SettlementNumberFormat.MONTH_SEQUENCE: re.compile(r"^JS-\d{6}-\d{3}$"),
}


def _format(fmt: SettlementNumberFormat | str) -> SettlementNumberFormat:
    if isinstance(fmt, SettlementNumberFormat):
        return fmt
    try:
        return SettlementNumberFormat(str(fmt).upper())
    except ValueError:
        raise InvalidSettlementNumberFormatError(str(fmt)) from None


def partner_code(partner: str | None) -> str:
    """First three characters of the partner name, uppercased; ``UNK`` if blank."""
    text = (partner or "").strip()
    if not text:
        return _UNKNOWN_PARTNER
    return text[:_PARTNER_CODE_LENGTH].upper()


def next_sequence(existing: Iterable[str], prefix: str) -> int:
    """One past the highest trailing sequence among numbers sharing ``prefix``."""
    highest = 0
    for number in existing:
        if not number or not number.startswith(prefix):
            continue
        match = _TRAILING_SEQUENCE.search(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def generate_settlement_number(
    existing: Iterable[str],
    at: datetime,
    fmt: SettlementNumberFormat | str = SettlementNumberFormat.DATE_SEQUENCE,
    partner: str | None = None,
) -> str:
    """Next settlement number for ``at`` in the given format.

    Args:
        existing: Settlement numbers already issued.
        at: Timestamp the number is issued for.
        fmt: Number format (enum member or its name).
        partner: Partner name, used by ``MONTH_PARTNER_SEQUENCE`` only.
    """
    number_format = _format(fmt)
    day = at.strftime("%Y%m%d")
    month = at.strftime("%Y%m")

    if number_format == SettlementNumberFormat.DATETIME:
        return f"SETTLEMENT-{day}-{at.strftime('%H%M%S')}"

    if number_format == SettlementNumberFormat.DATE_SEQUENCE:
        prefix = f"JS-{day}-"
    elif number_format == SettlementNumberFormat.MONTH_PARTNER_SEQUENCE:
        prefix = f"JS-{month}-{partner_code(partner)}-"
    else:
        prefix = f"JS-{month}-"

    sequence = next_sequence(existing, prefix)
    return f"{prefix}{sequence:0{_SEQUENCE_WIDTH}d}"


def is_valid_settlement_number(number: str | None) -> bool:
    """True when ``number`` matches any known format."""
    if not number:
        return False
    return any(p.match(number) for p in _VALID_PATTERNS.values())


def is_settlement_number_unique(
    number: str,
    existing: Iterable[tuple[str, str]],
    exclude_id: str | None = None,
) -> bool:
    """True when no other record carries ``number``.

    ``existing`` yields (record_id, settlement_number) pairs; the record
    being edited is skipped via ``exclude_id``.
    """
    return not any(
        other == number and record_id != exclude_id
        for record_id, other in existing
    )
