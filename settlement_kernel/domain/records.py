"""
Settlement and invoice records.

Pure frozen dataclasses for the two persisted entities the engine reads.
Records are built by ``settlement_kernel.domain.coercion`` from raw
snapshots; engines never see untyped input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from settlement_kernel.domain.values import ONE, ZERO

# Numeric fields in declaration order; coercion and range checks walk them.
MONETARY_FIELDS: tuple[str, ...] = (
    "game_flow",
    "testing_fee",
    "voucher",
    "refund",
    "settlement_amount",
)
PERCENTAGE_FIELDS: tuple[str, ...] = (
    "channel_fee_rate",
    "tax_point",
    "revenue_share_ratio",
)
NUMERIC_FIELDS: tuple[str, ...] = (
    "game_flow",
    "testing_fee",
    "voucher",
    "channel_fee_rate",
    "tax_point",
    "revenue_share_ratio",
    "discount",
    "refund",
    "settlement_amount",
)
TEXT_FIELDS: tuple[str, ...] = (
    "settlement_month",
    "partner",
    "game",
    "settlement_number",
)


class RecordStatus(str, Enum):
    """Workflow tag of a settlement record. Not acted on by the engine."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SETTLED = "settled"
    INVOICED = "invoiced"
    VERIFIED = "verified"


class InvoiceStatus(str, Enum):
    """Lifecycle of an invoice document."""

    UNISSUED = "unissued"
    ISSUED = "issued"
    VOID = "void"


@dataclass(frozen=True)
class SettlementRecord:
    """One payout calculation for a (partner, game, period) tuple.

    Numeric fields are already Decimal.  A numeric field whose raw input
    was present but not a number holds its default (0, or 1 for
    ``discount``) and its raw text is kept in ``malformed`` so validation
    can report it.
    """

    id: str
    settlement_month: str = ""
    partner: str = ""
    game: str = ""
    settlement_number: str = ""
    game_flow: Decimal = ZERO
    testing_fee: Decimal = ZERO
    voucher: Decimal = ZERO
    channel_fee_rate: Decimal = ZERO
    tax_point: Decimal = ZERO
    revenue_share_ratio: Decimal = ZERO
    discount: Decimal = ONE
    refund: Decimal = ZERO
    settlement_amount: Decimal = ZERO
    status: RecordStatus = RecordStatus.PENDING
    malformed: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}), compare=False,
    )

    @property
    def total_fee(self) -> Decimal:
        """Testing fee plus voucher."""
        return self.testing_fee + self.voucher

    @property
    def group_key(self) -> tuple[str, str]:
        """(game, partner) key used by cross-record checks."""
        return (self.game, self.partner)

    def is_malformed(self, field_name: str) -> bool:
        return field_name in self.malformed

    def to_dict(self) -> dict[str, object]:
        """Snapshot shape with camelCase keys and 2-decimal amount string."""
        return {
            "id": self.id,
            "settlementMonth": self.settlement_month,
            "partner": self.partner,
            "game": self.game,
            "settlementNumber": self.settlement_number,
            "gameFlow": str(self.game_flow),
            "testingFee": str(self.testing_fee),
            "voucher": str(self.voucher),
            "channelFeeRate": str(self.channel_fee_rate),
            "taxPoint": str(self.tax_point),
            "revenueShareRatio": str(self.revenue_share_ratio),
            "discount": str(self.discount),
            "refund": str(self.refund),
            "settlementAmount": str(self.settlement_amount.quantize(Decimal("0.01"))),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class InvoiceRecord:
    """A billing document issued to a partner.

    ``verified_record_ids`` is changed only through
    ``ReconciliationMatcher.attach_verification``.  Ids that no longer
    resolve to a settlement record are tolerated.
    """

    id: str
    title: str = ""
    tax_no: str = ""
    amount: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.UNISSUED
    issue_date: date | None = None
    verified_record_ids: tuple[str, ...] = ()

    @property
    def verified(self) -> bool:
        return len(self.verified_record_ids) > 0

    @property
    def is_void(self) -> bool:
        return self.status == InvoiceStatus.VOID
