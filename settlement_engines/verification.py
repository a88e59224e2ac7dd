"""
settlement_engines.verification -- Invoice-to-settlement verification.

Responsibility:
    Record which settlement records an invoice covers and derive the
    verified amount from the current record list on every call.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Invoices are frozen;
    ``attach_verification`` returns a new ``InvoiceRecord``.

Invariants enforced:
    - The verified amount is never cached; it follows record edits and
      deletions immediately.
    - Ids that no longer resolve to a record are excluded from the amount
      silently and reported by ``dangling_record_ids``.
    - Void invoices do not take part in overlap detection.

Failure modes:
    - VerificationOverlapError from ``attach_verification(exclusive=True)``
      when a record is already verified on another non-void invoice.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from settlement_kernel.domain.coercion import coerce_invoice, coerce_records
from settlement_kernel.domain.records import InvoiceRecord, SettlementRecord
from settlement_kernel.domain.values import ZERO
from settlement_kernel.exceptions import VerificationOverlapError
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.verification")

InvoiceLike = InvoiceRecord | Mapping[str, Any]
RecordsLike = Iterable[SettlementRecord | Mapping[str, Any]]


@dataclass(frozen=True)
class VerificationOverlap:
    """A settlement record verified on more than one live invoice."""

    record_id: str
    invoice_ids: tuple[str, ...]


@dataclass(frozen=True)
class VerificationSummary:
    """Verification state of one invoice against the current records."""

    invoice_id: str
    invoice_amount: Decimal
    verified_amount: Decimal
    referenced_count: int
    found_count: int
    dangling_record_ids: tuple[str, ...]

    @property
    def difference(self) -> Decimal:
        """Invoice amount minus verified amount."""
        return self.invoice_amount - self.verified_amount

    @property
    def fully_resolved(self) -> bool:
        return not self.dangling_record_ids


class ReconciliationMatcher:
    """Pure matcher between invoices and settlement records.

    Usage:
        matcher = ReconciliationMatcher()
        invoice = matcher.attach_verification(invoice, ["r1", "r2"])
        amount = matcher.verified_amount(invoice, records)
    """

    def attach_verification(
        self,
        invoice: InvoiceLike,
        record_ids: Iterable[str],
        other_invoices: Iterable[InvoiceLike] = (),
        exclusive: bool = False,
    ) -> InvoiceRecord:
        """Replace the invoice's verified record set wholesale.

        Args:
            invoice: Invoice to update.
            record_ids: New verified set; duplicates collapse, order is kept.
            other_invoices: The rest of the invoice list, consulted only
                when ``exclusive`` is set.
            exclusive: Refuse record ids already verified on another
                non-void invoice.

        Raises:
            VerificationOverlapError: exclusive and an overlap exists.
        """
        inv = coerce_invoice(invoice)
        ids = tuple(dict.fromkeys(str(r).strip() for r in record_ids if str(r).strip()))

        if exclusive:
            wanted = set(ids)
            overlaps: dict[str, list[str]] = {}
            for other in (coerce_invoice(o) for o in other_invoices):
                if other.id == inv.id or other.is_void:
                    continue
                for rid in other.verified_record_ids:
                    if rid in wanted:
                        overlaps.setdefault(rid, []).append(other.id)
            if overlaps:
                raise VerificationOverlapError(
                    inv.id, {rid: tuple(owners) for rid, owners in overlaps.items()},
                )

        with LogContext.bind(invoice_id=inv.id):
            logger.info(
                "verification_attached",
                extra={
                    "previous_count": len(inv.verified_record_ids),
                    "record_count": len(ids),
                },
            )
        return replace(inv, verified_record_ids=ids)

    def verified_records(
        self,
        invoice: InvoiceLike,
        records: RecordsLike,
    ) -> tuple[SettlementRecord, ...]:
        """Records referenced by the invoice, in record-list order."""
        wanted = set(coerce_invoice(invoice).verified_record_ids)
        return tuple(r for r in coerce_records(records) if r.id in wanted)

    def verified_amount(self, invoice: InvoiceLike, records: RecordsLike) -> Decimal:
        """Sum of settlement amounts of the referenced records that exist."""
        return sum(
            (r.settlement_amount for r in self.verified_records(invoice, records)),
            ZERO,
        )

    def dangling_record_ids(
        self,
        invoice: InvoiceLike,
        records: RecordsLike,
    ) -> tuple[str, ...]:
        """Referenced ids with no matching record."""
        present = {r.id for r in coerce_records(records)}
        return tuple(
            rid for rid in coerce_invoice(invoice).verified_record_ids
            if rid not in present
        )

    def summarize(self, invoice: InvoiceLike, records: RecordsLike) -> VerificationSummary:
        inv = coerce_invoice(invoice)
        typed = coerce_records(records)
        found = self.verified_records(inv, typed)
        return VerificationSummary(
            invoice_id=inv.id,
            invoice_amount=inv.amount,
            verified_amount=sum((r.settlement_amount for r in found), ZERO),
            referenced_count=len(inv.verified_record_ids),
            found_count=len(found),
            dangling_record_ids=self.dangling_record_ids(inv, typed),
        )

    def find_overlaps(
        self,
        invoices: Sequence[InvoiceLike],
    ) -> tuple[VerificationOverlap, ...]:
        """Record ids verified on more than one non-void invoice."""
        owners: dict[str, list[str]] = {}
        for inv in (coerce_invoice(i) for i in invoices):
            if inv.is_void:
                continue
            for rid in inv.verified_record_ids:
                owners.setdefault(rid, []).append(inv.id)
        return tuple(
            VerificationOverlap(record_id=rid, invoice_ids=tuple(ids))
            for rid, ids in owners.items()
            if len(ids) > 1
        )
