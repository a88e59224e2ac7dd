"""
Settlement calculator (``settlement_engines.calculator``).

Responsibility
--------------
Turns the raw fields of one settlement record into its payout amount:

    base           = game_flow - testing_fee - voucher
    after_channel  = base * (1 - channel_fee_rate / 100)
    after_tax      = after_channel * (1 - tax_point / 100)
    after_share    = after_tax * (revenue_share_ratio / 100)
    after_discount = after_share * discount
    final          = after_discount - refund
    result         = max(0, round2(final))

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO clock reads.

Invariants enforced
-------------------
* Decimal-only arithmetic; rounding is ROUND_HALF_UP to the cent.
* The result is never negative.
* Same inputs, same output.

Failure modes
-------------
* Never raises.  Missing or malformed numeric fields count as 0
  (``discount`` as 1) because coercion already substituted the defaults.
  Arithmetic overflow on absurd magnitudes yields 0 and a warning log.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from settlement_kernel.domain.coercion import coerce_record
from settlement_kernel.domain.records import SettlementRecord
from settlement_kernel.domain.values import HUNDRED, ONE, ZERO, round2
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")

AmountCalculator = Callable[[SettlementRecord], Decimal]


def _as_record(record: SettlementRecord | Mapping[str, Any] | None) -> SettlementRecord:
    if isinstance(record, (SettlementRecord, Mapping)):
        return coerce_record(record)
    return coerce_record({})


def calculate_settlement_amount(
    record: SettlementRecord | Mapping[str, Any],
) -> Decimal:
    """Settlement amount for one record, rounded to the cent, never negative.

    Args:
        record: A typed record, or a raw snapshot mapping which is coerced
            first.

    Returns:
        Decimal with two decimal places.
    """
    rec = _as_record(record)
    try:
        base = rec.game_flow - rec.testing_fee - rec.voucher
        after_channel = base * (ONE - rec.channel_fee_rate / HUNDRED)
        after_tax = after_channel * (ONE - rec.tax_point / HUNDRED)
        after_share = after_tax * (rec.revenue_share_ratio / HUNDRED)
        after_discount = after_share * rec.discount
        final = after_discount - rec.refund
        rounded = round2(final)
        return rounded if rounded > ZERO else round2(ZERO)
    except ArithmeticError:
        logger.warning(
            "settlement_calculation_overflow",
            extra={"record_id": rec.id},
            exc_info=True,
        )
        return round2(ZERO)


class SettlementCalculator:
    """Object seam around ``calculate_settlement_amount``.

    Usage:
        calculator = SettlementCalculator()
        amount = calculator.calculate(record)
        issues = validate_all(records, calculate=calculator)
    """

    def calculate(self, record: SettlementRecord | Mapping[str, Any]) -> Decimal:
        return calculate_settlement_amount(record)

    def __call__(self, record: SettlementRecord | Mapping[str, Any]) -> Decimal:
        return self.calculate(record)
