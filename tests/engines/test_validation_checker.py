"""
Tests for ValidationEngine.

Covers the four per-record check families (completeness, range, business
with amount consistency, format), the cross-record pass (duplicates and
rate drift), ordering, configuration and per-record fault isolation.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from settlement_config import BusinessThresholds, EngineConfig
from settlement_engines.calculator import calculate_settlement_amount
from settlement_engines.validation import (
    IssueCategory,
    IssueType,
    ValidationEngine,
    validate_all,
)
from settlement_kernel.domain.coercion import coerce_record


# =============================================================================
# Helpers
# =============================================================================


def _of(issues, category=None, field=None, type_=None):
    return [
        i for i in issues
        if (category is None or i.category == category)
        and (field is None or i.field == field)
        and (type_ is None or i.type == type_)
    ]


@pytest.fixture
def engine():
    return ValidationEngine()


# =============================================================================
# Baseline
# =============================================================================


class TestBaseline:

    def test_empty_list_yields_no_issues(self):
        assert validate_all([], calculate_settlement_amount) == ()

    def test_clean_record_yields_no_issues(self, raw_record):
        assert validate_all([raw_record()]) == ()

    def test_typed_records_accepted(self, raw_record):
        assert validate_all([coerce_record(raw_record())]) == ()

    def test_inputs_not_mutated(self, raw_record):
        raw = raw_record(game="")
        snapshot = dict(raw)
        validate_all([raw])
        assert raw == snapshot


# =============================================================================
# Completeness
# =============================================================================


class TestCompleteness:

    def test_empty_game_and_zero_flow(self):
        issues = validate_all([{"game": "", "gameFlow": 0}])
        errors = _of(issues, type_=IssueType.ERROR)
        assert len(errors) >= 2
        fields = {i.field for i in _of(errors, category=IssueCategory.COMPLETENESS)}
        assert {"game", "game_flow"} <= fields

    def test_zero_flow_message(self):
        issues = validate_all([{"game": "X", "gameFlow": 0}])
        [flow] = _of(issues, category=IssueCategory.COMPLETENESS, field="game_flow")
        assert flow.type == IssueType.ERROR
        assert flow.message == "Game flow must be greater than 0"

    def test_missing_partner_is_warning(self, raw_record):
        issues = validate_all([raw_record(partner="")])
        [issue] = issues
        assert issue.type == IssueType.WARNING
        assert issue.field == "partner"
        assert not issue.fixable

    def test_missing_month_is_warning(self, raw_record):
        issues = validate_all([raw_record(settlementMonth="  ")])
        [issue] = issues
        assert issue.type == IssueType.WARNING
        assert issue.field == "settlement_month"

    def test_missing_settlement_number_is_info(self, raw_record):
        issues = validate_all([raw_record(settlementNumber="")])
        [issue] = issues
        assert issue.type == IssueType.INFO
        assert issue.category == IssueCategory.COMPLETENESS

    def test_missing_id_gets_positional_id(self):
        issues = validate_all([{"game": "", "gameFlow": "10"}])
        assert issues[0].record_id == "#1"
        assert issues[0].record_index == 1


# =============================================================================
# Range
# =============================================================================


class TestRange:

    def test_non_numeric_value(self, raw_record):
        issues = validate_all([raw_record(testingFee="abc")])
        [issue] = _of(issues, category=IssueCategory.RANGE)
        assert issue.type == IssueType.ERROR
        assert issue.field == "testing_fee"
        assert "not a valid number" in issue.message

    def test_negative_monetary_value(self, raw_record):
        issues = validate_all([raw_record(refund="-10")])
        [issue] = _of(issues, category=IssueCategory.RANGE)
        assert issue.field == "refund"
        assert "less than 0" in issue.message

    def test_percentage_above_100(self, raw_record):
        issues = validate_all([raw_record(channelFeeRate="150")])
        [issue] = _of(issues, category=IssueCategory.RANGE)
        assert issue.field == "channel_fee_rate"
        assert "greater than 100" in issue.message

    def test_discount_above_one(self, raw_record):
        issues = validate_all([raw_record(discount="1.5")])
        [issue] = _of(issues, category=IssueCategory.RANGE)
        assert issue.field == "discount"

    def test_malformed_discount_not_also_out_of_range(self, raw_record):
        issues = validate_all([raw_record(discount="ninety")])
        range_issues = _of(issues, category=IssueCategory.RANGE)
        assert [i.field for i in range_issues] == ["discount"]

    def test_boundaries_inclusive(self, raw_record):
        issues = validate_all([raw_record(taxPoint="0", channelFeeRate="0", discount="0", settlementAmount="0")])
        assert _of(issues, category=IssueCategory.RANGE) == []


# =============================================================================
# Business rules
# =============================================================================


class TestBusinessRules:

    def test_fees_exceed_flow(self, raw_record):
        issues = validate_all([raw_record(testingFee="200000")])
        [issue] = _of(issues, category=IssueCategory.BUSINESS, field="fees")
        assert issue.type == IssueType.ERROR
        assert "impossible" in issue.message

    def test_fee_ratio_too_high(self, raw_record):
        issues = validate_all([raw_record(testingFee="55000", voucher="5000")])
        [issue] = _of(issues, category=IssueCategory.BUSINESS, field="fees")
        assert issue.type == IssueType.ERROR
        assert "60.0%" in issue.message

    def test_fee_ratio_warning(self, raw_record):
        issues = validate_all([raw_record(testingFee="30000", voucher="5000")])
        [issue] = _of(issues, category=IssueCategory.BUSINESS, field="fees")
        assert issue.type == IssueType.WARNING

    def test_fee_ratio_at_warning_threshold_is_clean(self, raw_record):
        issues = validate_all([raw_record(testingFee="28000", voucher="2000")])
        assert _of(issues, category=IssueCategory.BUSINESS, field="fees") == []

    def test_low_settlement_ratio(self, raw_record):
        issues = validate_all([raw_record(settlementAmount="5000")])
        [issue] = _of(issues, category=IssueCategory.BUSINESS, field="settlement_amount")
        assert issue.type == IssueType.WARNING

    def test_high_settlement_ratio(self, raw_record):
        issues = validate_all([raw_record(settlementAmount="95000")])
        [issue] = _of(issues, category=IssueCategory.BUSINESS, field="settlement_amount")
        assert issue.type == IssueType.WARNING

    def test_zero_flow_skips_ratio_checks(self):
        issues = validate_all([{"id": "z", "game": "X", "gameFlow": "0", "testingFee": "0"}])
        assert _of(issues, category=IssueCategory.BUSINESS) == []


# =============================================================================
# Amount consistency
# =============================================================================


class TestAmountConsistency:

    def test_off_by_five_cents(self, raw_record):
        record = raw_record(settlementAmount="24914.75")
        issues = validate_all([record], calculate_settlement_amount)

        errors = _of(issues, type_=IssueType.ERROR)
        assert len(errors) == 1
        [issue] = errors
        assert issue.category == IssueCategory.CONSISTENCY
        assert issue.field == "settlement_amount"
        assert issue.auto_fix_value == "24914.70"
        assert issue.fixable

    def test_within_tolerance(self, raw_record):
        assert validate_all([raw_record(settlementAmount="24914.71")]) == ()

    def test_injected_calculator_used(self, raw_record):
        issues = validate_all([raw_record()], calculate=lambda r: Decimal("1.00"))
        [issue] = _of(issues, category=IssueCategory.CONSISTENCY)
        assert issue.auto_fix_value == "1.00"

    def test_engine_class_matches_function(self, raw_record):
        records = [raw_record(settlementAmount="1"), raw_record(id="r2", game="")]
        assert ValidationEngine().validate_all(records) == validate_all(records)


# =============================================================================
# Format
# =============================================================================


class TestMonthFormat:

    @pytest.mark.parametrize("label", ["2025-01", "2025-1", "2025年1月", "202501"])
    def test_accepted_formats(self, raw_record, label):
        assert _of(validate_all([raw_record(settlementMonth=label)]), category=IssueCategory.FORMAT) == []

    def test_parseable_label_is_fixable(self, raw_record):
        issues = validate_all([raw_record(settlementMonth="2025/01")])
        [issue] = _of(issues, category=IssueCategory.FORMAT)
        assert issue.type == IssueType.WARNING
        assert issue.auto_fix_value == "2025-01"
        assert issue.fixable

    def test_unreadable_label_not_fixable(self, raw_record):
        issues = validate_all([raw_record(settlementMonth="Jan 2025")])
        [issue] = _of(issues, category=IssueCategory.FORMAT)
        assert issue.type == IssueType.WARNING
        assert not issue.fixable

    def test_month_out_of_range(self, raw_record):
        issues = validate_all([raw_record(settlementMonth="2025-13")])
        [issue] = _of(issues, category=IssueCategory.FORMAT)
        assert "real month" in issue.message
        assert not issue.fixable


# =============================================================================
# Cross-record
# =============================================================================


class TestDuplicates:

    def test_each_duplicate_references_the_other(self, raw_record):
        issues = validate_all([raw_record(id="r1"), raw_record(id="r2")])
        dups = _of(issues, field="duplicate")
        assert len(dups) == 2
        by_record = {i.record_id: i for i in dups}
        assert by_record["r1"].related_records == ("r2",)
        assert by_record["r2"].related_records == ("r1",)
        assert all(i.type == IssueType.WARNING for i in dups)
        assert all(i.category == IssueCategory.CONSISTENCY for i in dups)

    def test_month_spellings_compare_equal(self, raw_record):
        issues = validate_all([
            raw_record(id="r1", settlementMonth="2025-1"),
            raw_record(id="r2", settlementMonth="202501"),
        ])
        assert len(_of(issues, field="duplicate")) == 2

    def test_different_partner_not_duplicate(self, raw_record):
        issues = validate_all([raw_record(id="r1"), raw_record(id="r2", partner="Other Co")])
        assert _of(issues, field="duplicate") == []

    def test_three_way_duplicate(self, raw_record):
        issues = validate_all([raw_record(id=rid) for rid in ("a", "b", "c")])
        by_record = {i.record_id: i for i in _of(issues, field="duplicate")}
        assert by_record["b"].related_records == ("a", "c")


class TestRateDrift:

    def test_changed_share_ratio_reported_on_both(self, raw_record):
        issues = validate_all([
            raw_record(id="r1", settlementMonth="2025-01"),
            raw_record(
                id="r2",
                settlementMonth="2025-02",
                revenueShareRatio="35",
                settlementAmount="29067.15",
            ),
        ])
        drift = _of(issues, field="revenue_share_ratio")
        assert len(drift) == 2
        assert all(i.type == IssueType.INFO for i in drift)
        assert {i.record_id: i.related_records for i in drift} == {"r1": ("r2",), "r2": ("r1",)}
        assert len(issues) == 2

    def test_change_within_tolerance_ignored(self, raw_record):
        issues = validate_all([
            raw_record(id="r1", settlementMonth="2025-01"),
            raw_record(id="r2", settlementMonth="2025-02", channelFeeRate="5.005"),
        ])
        assert _of(issues, field="channel_fee_rate") == []


# =============================================================================
# Ordering and configuration
# =============================================================================


class TestOrdering:

    def test_per_record_order_then_cross_record(self, raw_record):
        issues = validate_all([
            raw_record(id="r1", game="", settlementMonth="2025/01"),
            raw_record(id="r2", refund="-1"),
        ])
        categories = [(i.record_id, i.category) for i in issues]
        assert categories == [
            ("r1", IssueCategory.COMPLETENESS),
            ("r1", IssueCategory.FORMAT),
            ("r2", IssueCategory.RANGE),
            ("r2", IssueCategory.CONSISTENCY),
        ]
        assert [i.record_index for i in issues] == [1, 1, 2, 2]

    def test_deterministic(self, raw_record):
        records = [raw_record(id="r1"), raw_record(id="r2", testingFee="x")]
        assert validate_all(records) == validate_all(records)


class TestConfiguration:

    def test_custom_thresholds(self, raw_record):
        config = replace(
            EngineConfig(),
            thresholds=BusinessThresholds(fee_ratio_warning=Decimal("0.05")),
        )
        issues = validate_all([raw_record()], config=config)
        [issue] = issues
        assert issue.field == "fees"
        assert issue.type == IssueType.WARNING

    def test_custom_month_patterns(self, raw_record):
        config = replace(EngineConfig(), month_patterns=(r"^\d{4}/\d{2}$",))
        assert validate_all([raw_record(settlementMonth="2025/01")], config=config) == ()

    def test_custom_labels_in_messages(self):
        config = replace(EngineConfig(), field_labels=(("game", "Title"),))
        issues = validate_all([{"id": "x", "game": "", "gameFlow": "1"}], config=config)
        assert issues[0].message == "Title must not be empty"


# =============================================================================
# Fault isolation
# =============================================================================


class TestFaultIsolation:

    def test_calculator_failure_isolated_to_one_record(self, raw_record):
        def flaky(record):
            if record.id == "bad":
                raise RuntimeError("calculator exploded")
            return calculate_settlement_amount(record)

        issues = validate_all(
            [
                raw_record(id="bad", game="", settlementMonth="nonsense"),
                raw_record(id="good", game="Moon Harbor"),
            ],
            calculate=flaky,
        )

        bad = [i for i in issues if i.record_id == "bad"]
        assert [i.field for i in bad] == ["game"]
        assert [i for i in issues if i.record_id == "good"] == []

    def test_failure_logged(self, raw_record, caplog):
        def broken(record):
            raise ValueError("nope")

        with caplog.at_level("WARNING", logger="settlement_kernel"):
            validate_all([raw_record()], calculate=broken)

        assert any(r.getMessage() == "record_validation_failed" for r in caplog.records)
