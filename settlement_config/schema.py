"""
Engine configuration schema.

Frozen dataclasses describing every tunable the validation engine reads:
numeric field ranges, business-rule thresholds, accepted settlement-month
patterns, the rate fields compared across periods, field display labels,
and the settlement-number format preset.

The dataclass defaults are the built-in configuration and equal the
bundled ``defaults/engine.yaml``.  Engines receive an ``EngineConfig``
value as an argument; they never read files or module globals for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class FieldRange:
    """Inclusive bounds for one numeric record field. ``None`` max = unbounded."""

    field: str
    min_value: Decimal
    max_value: Decimal | None = None

    def __post_init__(self) -> None:
        if self.max_value is not None and self.max_value < self.min_value:
            raise ValueError(
                f"FieldRange {self.field}: max {self.max_value} < min {self.min_value}"
            )


@dataclass(frozen=True)
class BusinessThresholds:
    """Ratios and tolerances used by the business and cross-record checks."""

    max_fee_ratio: Decimal = Decimal("0.5")
    fee_ratio_warning: Decimal = Decimal("0.3")
    min_settlement_ratio: Decimal = Decimal("0.1")
    max_settlement_ratio: Decimal = Decimal("0.9")
    amount_tolerance: Decimal = Decimal("0.01")
    rate_drift_tolerance: Decimal = Decimal("0.01")


DEFAULT_FIELD_RANGES: tuple[FieldRange, ...] = (
    FieldRange("game_flow", Decimal("0")),
    FieldRange("testing_fee", Decimal("0")),
    FieldRange("voucher", Decimal("0")),
    FieldRange("refund", Decimal("0")),
    FieldRange("channel_fee_rate", Decimal("0"), Decimal("100")),
    FieldRange("tax_point", Decimal("0"), Decimal("100")),
    FieldRange("revenue_share_ratio", Decimal("0"), Decimal("100")),
    FieldRange("discount", Decimal("0"), Decimal("1")),
    FieldRange("settlement_amount", Decimal("0")),
)

DEFAULT_MONTH_PATTERNS: tuple[str, ...] = (
    r"^\d{4}-\d{1,2}$",
    r"^\d{4}年\d{1,2}月$",
    r"^\d{6}$",
)

DEFAULT_RATE_FIELDS: tuple[str, ...] = (
    "channel_fee_rate",
    "tax_point",
    "revenue_share_ratio",
    "discount",
)

DEFAULT_FIELD_LABELS: tuple[tuple[str, str], ...] = (
    ("game", "Game"),
    ("game_flow", "Game flow"),
    ("testing_fee", "Testing fee"),
    ("voucher", "Voucher"),
    ("refund", "Refund"),
    ("channel_fee_rate", "Channel fee rate"),
    ("tax_point", "Tax point"),
    ("revenue_share_ratio", "Revenue share ratio"),
    ("discount", "Discount"),
    ("settlement_amount", "Settlement amount"),
    ("settlement_month", "Settlement month"),
    ("partner", "Partner"),
    ("settlement_number", "Settlement number"),
    ("fees", "Fees"),
    ("duplicate", "Duplicate record"),
)


@dataclass(frozen=True)
class EngineConfig:
    """Complete, immutable configuration passed into the engines."""

    name: str = "default"
    version: int = 1
    field_ranges: tuple[FieldRange, ...] = DEFAULT_FIELD_RANGES
    thresholds: BusinessThresholds = field(default_factory=BusinessThresholds)
    month_patterns: tuple[str, ...] = DEFAULT_MONTH_PATTERNS
    rate_fields: tuple[str, ...] = DEFAULT_RATE_FIELDS
    field_labels: tuple[tuple[str, str], ...] = DEFAULT_FIELD_LABELS
    settlement_number_format: str = "DATE_SEQUENCE"

    def label_for(self, field_name: str) -> str:
        """Display label for a field; the field name itself when unlabelled."""
        for name, label in self.field_labels:
            if name == field_name:
                return label
        return field_name

    def range_for(self, field_name: str) -> FieldRange | None:
        for field_range in self.field_ranges:
            if field_range.field == field_name:
                return field_range
        return None
