"""
Pure domain layer.

Typed records, Decimal helpers, and the coercion boundary, with NO
dependencies on storage, clocks, or I/O.  All domain objects are
immutable and deterministic.
"""

from settlement_kernel.domain.coercion import (
    apply_changes,
    coerce_invoice,
    coerce_record,
    coerce_records,
)
from settlement_kernel.domain.records import (
    MONETARY_FIELDS,
    NUMERIC_FIELDS,
    PERCENTAGE_FIELDS,
    InvoiceRecord,
    InvoiceStatus,
    RecordStatus,
    SettlementRecord,
)
from settlement_kernel.domain.values import (
    format_amount,
    parse_decimal,
    round2,
    to_decimal,
)

__all__ = [
    "InvoiceRecord",
    "InvoiceStatus",
    "MONETARY_FIELDS",
    "NUMERIC_FIELDS",
    "PERCENTAGE_FIELDS",
    "RecordStatus",
    "SettlementRecord",
    "apply_changes",
    "coerce_invoice",
    "coerce_record",
    "coerce_records",
    "format_amount",
    "parse_decimal",
    "round2",
    "to_decimal",
]
