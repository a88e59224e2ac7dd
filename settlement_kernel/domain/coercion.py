"""
Coercion boundary: raw record snapshots to typed records.

The only place where loosely typed input (camelCase or snake_case keys,
numbers as strings, missing fields) becomes ``SettlementRecord`` /
``InvoiceRecord``.  Runs once at ingestion; checks and engines never
re-parse raw values.  ZERO I/O, never raises for bad field values.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

from settlement_kernel.domain.records import (
    NUMERIC_FIELDS,
    TEXT_FIELDS,
    InvoiceRecord,
    InvoiceStatus,
    RecordStatus,
    SettlementRecord,
)
from settlement_kernel.domain.values import ONE, ZERO, parse_decimal
from settlement_kernel.logging_config import get_logger

logger = get_logger("domain.coercion")

# camelCase snapshot keys accepted alongside the snake_case field names
_SETTLEMENT_ALIASES: dict[str, str] = {
    "settlementMonth": "settlement_month",
    "settlementNumber": "settlement_number",
    "gameFlow": "game_flow",
    "testingFee": "testing_fee",
    "channelFeeRate": "channel_fee_rate",
    "taxPoint": "tax_point",
    "revenueShareRatio": "revenue_share_ratio",
    "settlementAmount": "settlement_amount",
}

_INVOICE_ALIASES: dict[str, str] = {
    "taxNo": "tax_no",
    "issueDate": "issue_date",
    "verifiedRecordIds": "verified_record_ids",
}

_NUMERIC_DEFAULTS: dict[str, Decimal] = {name: ZERO for name in NUMERIC_FIELDS}
_NUMERIC_DEFAULTS["discount"] = ONE


def _normalize_keys(raw: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for key, value in raw.items():
        name = aliases.get(key, key)
        # snake_case wins when both spellings are present
        if name in data and key != name:
            continue
        data[name] = value
    return data


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _status(value: Any, status_type: type[Enum], default: Enum) -> Any:
    if isinstance(value, status_type):
        return value
    try:
        return status_type(_text(value).lower())
    except ValueError:
        return default


def _record_id(value: Any, position: int | None) -> str:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return f"#{position + 1}" if position is not None else ""
    return str(value)


def coerce_record(
    raw: Mapping[str, Any] | SettlementRecord,
    position: int | None = None,
) -> SettlementRecord:
    """Build a ``SettlementRecord`` from a raw snapshot mapping.

    Blank numeric fields take their default (0; 1 for ``discount``).
    Present-but-non-numeric fields also take the default and are listed in
    ``malformed`` with their raw text.  Records without an id get a
    positional id (``#1``, ``#2``...) when ``position`` is given.

    Already-typed records pass through unchanged.
    """
    if isinstance(raw, SettlementRecord):
        return raw

    data = _normalize_keys(raw, _SETTLEMENT_ALIASES)
    values: dict[str, Any] = {}
    malformed: dict[str, str] = {}

    for name in NUMERIC_FIELDS:
        parsed, ok = parse_decimal(data.get(name))
        if not ok:
            malformed[name] = str(data.get(name))
        values[name] = parsed if parsed is not None else _NUMERIC_DEFAULTS[name]

    for name in TEXT_FIELDS:
        values[name] = _text(data.get(name))

    status = _status(data.get("status"), RecordStatus, RecordStatus.PENDING)

    record_id = _record_id(data.get("id"), position)
    if malformed:
        logger.debug(
            "record_malformed_fields",
            extra={"record_id": record_id, "fields": sorted(malformed)},
        )

    return SettlementRecord(
        id=record_id,
        status=status,
        malformed=MappingProxyType(malformed),
        **values,
    )


def coerce_records(
    raws: Iterable[Mapping[str, Any] | SettlementRecord],
) -> tuple[SettlementRecord, ...]:
    """Single coercion pass over a record list, preserving order."""
    return tuple(coerce_record(raw, position) for position, raw in enumerate(raws))


def apply_changes(record: SettlementRecord, changes: Mapping[str, Any]) -> SettlementRecord:
    """Copy of ``record`` with the given raw field values coerced and applied.

    Only the named fields change.  A numeric field set to a non-number takes
    its default and enters ``malformed``; a valid value clears a previous
    malformed entry.  The id cannot be changed; unknown keys are ignored.
    """
    data = _normalize_keys(changes, _SETTLEMENT_ALIASES)
    values: dict[str, Any] = {}
    malformed = dict(record.malformed)

    for name in NUMERIC_FIELDS:
        if name not in data:
            continue
        parsed, ok = parse_decimal(data[name])
        if ok:
            malformed.pop(name, None)
        else:
            malformed[name] = str(data[name])
        values[name] = parsed if parsed is not None else _NUMERIC_DEFAULTS[name]

    for name in TEXT_FIELDS:
        if name in data:
            values[name] = _text(data[name])

    if "status" in data:
        values["status"] = _status(data["status"], RecordStatus, RecordStatus.PENDING)

    return replace(record, malformed=MappingProxyType(malformed), **values)


def _issue_date(value: Any) -> date | None:
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    text = _text(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _unique_ids(values: Any) -> tuple[str, ...]:
    if values is None or isinstance(values, (str, bytes)):
        return ()
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value), None)
    return tuple(seen)


def coerce_invoice(raw: Mapping[str, Any] | InvoiceRecord) -> InvoiceRecord:
    """Build an ``InvoiceRecord`` from a raw snapshot mapping."""
    if isinstance(raw, InvoiceRecord):
        return raw

    data = _normalize_keys(raw, _INVOICE_ALIASES)
    amount, _ = parse_decimal(data.get("amount"))
    status = _status(data.get("status"), InvoiceStatus, InvoiceStatus.UNISSUED)

    return InvoiceRecord(
        id=_text(data.get("id")),
        title=_text(data.get("title")),
        tax_no=_text(data.get("tax_no")),
        amount=amount if amount is not None else ZERO,
        status=status,
        issue_date=_issue_date(data.get("issue_date")),
        verified_record_ids=_unique_ids(data.get("verified_record_ids")),
    )
