"""
ValidationEngine -- Pure rule engine over a settlement record list.

Scans every record for completeness, range, business-logic, consistency
and format problems, then runs one cross-record pass for duplicates and
historical rate drift.  Returns ``ValidationIssue`` values; it never raises
for bad data and never mutates its inputs.

Architecture: settlement_engines -- pure calculation, zero I/O.
The amount calculator is injected so the validator can be tested without
the real formula and the formula can change without touching the checks.

Ordering (deterministic):
    for each record in input order:
        completeness -> range -> business (incl. consistency) -> format
    then, once over the whole list, per record in input order:
        duplicates -> rate drift

Failure isolation:
    An exception while checking one record (for example from the injected
    calculator) is logged, that record's remaining checks are skipped, the
    issues already found for it are kept, and the batch carries on.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from settlement_config.schema import EngineConfig
from settlement_engines.calculator import AmountCalculator, calculate_settlement_amount
from settlement_engines.cycles import UNSET_CYCLE_KEY, cycle_key, parse_period_label, period_key
from settlement_engines.tracer import traced_engine
from settlement_engines.validation.types import (
    IssueCategory,
    IssueType,
    ValidationIssue,
)
from settlement_kernel.domain.coercion import coerce_records
from settlement_kernel.domain.records import SettlementRecord
from settlement_kernel.domain.values import HUNDRED, ZERO, format_amount, format_rate, to_decimal
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.validation.checker")

_PCT = Decimal("0.1")


def _pct(ratio: Decimal) -> str:
    return str((ratio * HUNDRED).quantize(_PCT))


class ValidationEngine:
    """Pure engine for settlement record validation.

    Usage:
        engine = ValidationEngine(config=get_engine_config())
        issues = engine.validate_all(records)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        calculate: AmountCalculator = calculate_settlement_amount,
    ) -> None:
        self.config = config or EngineConfig()
        self.calculate = calculate
        self._month_patterns = tuple(re.compile(p) for p in self.config.month_patterns)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _label(self, field_name: str) -> str:
        return self.config.label_for(field_name)

    @staticmethod
    def _issue(
        record: SettlementRecord,
        index: int,
        type_: IssueType,
        category: IssueCategory,
        field: str,
        message: str,
        suggestion: str = "",
        auto_fix_value: str | None = None,
        related_records: tuple[str, ...] = (),
    ) -> ValidationIssue:
        return ValidationIssue(
            type=type_,
            category=category,
            record_id=record.id,
            record_index=index,
            field=field,
            message=message,
            suggestion=suggestion,
            auto_fix_value=auto_fix_value,
            related_records=related_records,
        )

    # -----------------------------------------------------------------
    # Completeness
    # -----------------------------------------------------------------

    def check_completeness(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Required fields are errors; recommended fields are warning/info."""
        issues: list[ValidationIssue] = []
        C = IssueCategory.COMPLETENESS

        if not record.game:
            issues.append(self._issue(
                record, index, IssueType.ERROR, C, "game",
                f"{self._label('game')} must not be empty",
                f"Enter the {self._label('game').lower()} name",
            ))

        if record.game_flow <= ZERO:
            issues.append(self._issue(
                record, index, IssueType.ERROR, C, "game_flow",
                f"{self._label('game_flow')} must be greater than 0",
                f"Enter a valid {self._label('game_flow').lower()} amount",
            ))

        if not record.partner:
            issues.append(self._issue(
                record, index, IssueType.WARNING, C, "partner",
                f"{self._label('partner')} is recommended",
                f"Fill in the {self._label('partner').lower()} so records can be managed per partner",
            ))

        if not record.settlement_month:
            issues.append(self._issue(
                record, index, IssueType.WARNING, C, "settlement_month",
                f"{self._label('settlement_month')} is recommended",
                f"Fill in the {self._label('settlement_month').lower()} so the record joins a settlement cycle",
            ))

        if not record.settlement_number:
            issues.append(self._issue(
                record, index, IssueType.INFO, C, "settlement_number",
                f"No {self._label('settlement_number').lower()} set",
                "A settlement number can be generated when the record is saved",
            ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Range
    # -----------------------------------------------------------------

    def check_ranges(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Every configured numeric field must be a number within its bounds."""
        issues: list[ValidationIssue] = []
        R = IssueCategory.RANGE

        for field_range in self.config.field_ranges:
            name = field_range.field
            label = self._label(name)

            if record.is_malformed(name):
                issues.append(self._issue(
                    record, index, IssueType.ERROR, R, name,
                    f"{label} is not a valid number ({record.malformed[name]!r})",
                    "Enter a valid number",
                ))
                continue

            value: Decimal = getattr(record, name)
            if value < field_range.min_value:
                issues.append(self._issue(
                    record, index, IssueType.ERROR, R, name,
                    f"{label} must not be less than {format_rate(field_range.min_value)}",
                    f"Adjust {label.lower()} to {format_rate(field_range.min_value)} or above",
                ))
            if field_range.max_value is not None and value > field_range.max_value:
                issues.append(self._issue(
                    record, index, IssueType.ERROR, R, name,
                    f"{label} must not be greater than {format_rate(field_range.max_value)}",
                    f"Adjust {label.lower()} to {format_rate(field_range.max_value)} or below",
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Business rules and amount consistency
    # -----------------------------------------------------------------

    def check_business_rules(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Fee ratio ladder, settlement plausibility, recomputation check."""
        issues: list[ValidationIssue] = []
        B = IssueCategory.BUSINESS
        t = self.config.thresholds

        game_flow = record.game_flow
        total_fee = record.total_fee
        amount = record.settlement_amount
        fees = self._label("fees")

        if total_fee > game_flow:
            issues.append(self._issue(
                record, index, IssueType.ERROR, B, "fees",
                f"Testing fee plus voucher ({format_amount(total_fee)}) exceeds "
                f"{self._label('game_flow').lower()} ({format_amount(game_flow)}); the data is impossible",
                "Check the testing fee and voucher amounts",
            ))
        elif game_flow > ZERO and total_fee > game_flow * t.max_fee_ratio:
            issues.append(self._issue(
                record, index, IssueType.ERROR, B, "fees",
                f"Testing fee plus voucher ({format_amount(total_fee)}) is "
                f"{_pct(total_fee / game_flow)}% of game flow, fee ratio too high",
                f"{fees} should not exceed {_pct(t.max_fee_ratio)}% of game flow",
            ))
        elif game_flow > ZERO and total_fee > game_flow * t.fee_ratio_warning:
            issues.append(self._issue(
                record, index, IssueType.WARNING, B, "fees",
                f"Testing fee plus voucher ({format_amount(total_fee)}) is "
                f"{_pct(total_fee / game_flow)}% of game flow, please confirm",
                f"Confirm the {fees.lower()} are correct",
            ))

        if game_flow > ZERO and amount > ZERO:
            ratio = amount / game_flow
            label = self._label("settlement_amount")
            if ratio < t.min_settlement_ratio:
                issues.append(self._issue(
                    record, index, IssueType.WARNING, B, "settlement_amount",
                    f"{label} ({format_amount(amount)}) is only {_pct(ratio)}% of game flow",
                    f"Confirm the {label.lower()} calculation",
                ))
            elif ratio > t.max_settlement_ratio:
                issues.append(self._issue(
                    record, index, IssueType.WARNING, B, "settlement_amount",
                    f"{label} ({format_amount(amount)}) is {_pct(ratio)}% of game flow",
                    f"Confirm the {label.lower()} calculation",
                ))

        issues.extend(self.check_amount_consistency(record, index))
        return tuple(issues)

    def check_amount_consistency(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Stored settlement amount must equal the recomputed amount."""
        calculated = to_decimal(self.calculate(record))
        difference = abs(record.settlement_amount - calculated)
        if difference <= self.config.thresholds.amount_tolerance:
            return ()

        label = self._label("settlement_amount")
        expected = format_amount(calculated)
        return (self._issue(
            record, index, IssueType.ERROR, IssueCategory.CONSISTENCY, "settlement_amount",
            f"{label} ({format_amount(record.settlement_amount)}) differs from the "
            f"calculated value ({expected}) by {format_amount(difference)}",
            f"Update the {label.lower()} to {expected}",
            auto_fix_value=expected,
        ),)

    # -----------------------------------------------------------------
    # Format
    # -----------------------------------------------------------------

    def check_month_format(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Settlement month, when present, must use an accepted pattern."""
        label = record.settlement_month
        if not label:
            return ()

        name = self._label("settlement_month")
        F = IssueCategory.FORMAT

        if any(pattern.search(label) for pattern in self._month_patterns):
            if parse_period_label(label) is None:
                return (self._issue(
                    record, index, IssueType.WARNING, F, "settlement_month",
                    f"{name} {label!r} does not name a real month",
                    "Use a month between 1 and 12, for example 2025-01",
                ),)
            return ()

        canonical = cycle_key(label)
        if canonical != UNSET_CYCLE_KEY:
            return (self._issue(
                record, index, IssueType.WARNING, F, "settlement_month",
                f"{name} {label!r} is not in a standard format",
                f"Use {canonical}",
                auto_fix_value=canonical,
            ),)
        return (self._issue(
            record, index, IssueType.WARNING, F, "settlement_month",
            f"{name} {label!r} is not in a standard format",
            "Use YYYY-MM (for example 2025-01) or YYYY年M月 (for example 2025年1月)",
        ),)

    # -----------------------------------------------------------------
    # Cross-record
    # -----------------------------------------------------------------

    def check_cross_record(
        self,
        records: Sequence[SettlementRecord],
    ) -> tuple[ValidationIssue, ...]:
        """Duplicates and rate drift, indexed by (game, partner)."""
        groups: dict[tuple[str, str], list[tuple[int, SettlementRecord, str]]] = defaultdict(list)
        for position, record in enumerate(records):
            groups[record.group_key].append((position, record, period_key(record.settlement_month)))

        issues: list[ValidationIssue] = []
        for position, record in enumerate(records):
            found: list[ValidationIssue] = []
            try:
                group = groups[record.group_key]
                period = period_key(record.settlement_month)
                found.extend(self._duplicates(record, position, period, group))
                found.extend(self._rate_drift(record, position, period, group))
            except Exception:
                logger.warning(
                    "cross_record_check_failed",
                    extra={"record_id": record.id, "record_index": position + 1},
                    exc_info=True,
                )
            issues.extend(found)
        return tuple(issues)

    def _duplicates(
        self,
        record: SettlementRecord,
        position: int,
        period: str,
        group: list[tuple[int, SettlementRecord, str]],
    ) -> tuple[ValidationIssue, ...]:
        others = tuple(
            other.id for pos, other, other_period in group
            if pos != position and other.id != record.id and other_period == period
        )
        if not others:
            return ()
        return (self._issue(
            record, position + 1, IssueType.WARNING, IssueCategory.CONSISTENCY, "duplicate",
            f"Found {len(others)} duplicate record(s) with the same game, partner and settlement month",
            "Check whether the record was entered twice, or merge the records",
            related_records=others,
        ),)

    def _rate_drift(
        self,
        record: SettlementRecord,
        position: int,
        period: str,
        group: list[tuple[int, SettlementRecord, str]],
    ) -> tuple[ValidationIssue, ...]:
        tolerance = self.config.thresholds.rate_drift_tolerance
        issues: list[ValidationIssue] = []
        for pos, other, other_period in group:
            if pos == position or other.id == record.id or other_period == period:
                continue
            for name in self.config.rate_fields:
                if record.is_malformed(name) or other.is_malformed(name):
                    continue
                mine: Decimal = getattr(record, name)
                theirs: Decimal = getattr(other, name)
                if abs(mine - theirs) <= tolerance:
                    continue
                label = self._label(name)
                issues.append(self._issue(
                    record, position + 1, IssueType.INFO, IssueCategory.CONSISTENCY, name,
                    f"{label} ({format_rate(mine)}) differs from the "
                    f"{other.settlement_month or 'unset'} record {other.id} ({format_rate(theirs)})",
                    f"Confirm the {label.lower()}; rates for the same game and partner usually stay the same",
                    related_records=(other.id,),
                ))
        return tuple(issues)

    # -----------------------------------------------------------------
    # Run all
    # -----------------------------------------------------------------

    def validate_record(
        self,
        record: SettlementRecord,
        index: int,
    ) -> tuple[ValidationIssue, ...]:
        """Per-record checks in order; a fault keeps what was found so far."""
        found: list[ValidationIssue] = []
        checks = (
            self.check_completeness,
            self.check_ranges,
            self.check_business_rules,
            self.check_month_format,
        )
        with LogContext.bind(record_id=record.id):
            try:
                for check in checks:
                    found.extend(check(record, index))
            except Exception:
                logger.warning(
                    "record_validation_failed",
                    extra={"record_index": index, "issues_kept": len(found)},
                    exc_info=True,
                )
        return tuple(found)

    @traced_engine("settlement_validation", "1.0", fingerprint_fields=("records",))
    def validate_all(
        self,
        records: Iterable[SettlementRecord | Mapping[str, Any]],
    ) -> tuple[ValidationIssue, ...]:
        """Run every check over ``records`` and return the issues in order."""
        typed = coerce_records(records)
        issues: list[ValidationIssue] = []
        for index, record in enumerate(typed, start=1):
            issues.extend(self.validate_record(record, index))
        issues.extend(self.check_cross_record(typed))

        logger.info(
            "validation_completed",
            extra={
                "record_count": len(typed),
                "issue_count": len(issues),
                "error_count": sum(1 for i in issues if i.type == IssueType.ERROR),
            },
        )
        return tuple(issues)


def validate_all(
    records: Iterable[SettlementRecord | Mapping[str, Any]],
    calculate: AmountCalculator = calculate_settlement_amount,
    config: EngineConfig | None = None,
) -> tuple[ValidationIssue, ...]:
    """Validate a record list with the given calculator and configuration."""
    return ValidationEngine(config=config, calculate=calculate).validate_all(records)
