"""
Tests for SettlementLedgerService -- record-list commands and cached validation.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from settlement_engines.validation import IssueCategory, IssueType, ValidationIssue
from settlement_kernel.domain.records import RecordStatus
from settlement_kernel.exceptions import IssueNotFixableError, RecordNotFoundError


# =============================================================================
# Helpers
# =============================================================================


@pytest.fixture
def records(ledger_service, raw_record):
    return ledger_service.import_records((), [
        raw_record(id="r1"),
        raw_record(id="r2", game="Moon Harbor", settlementNumber="JS-20250115-002"),
    ])


def _by_id(records, record_id):
    return next(r for r in records if r.id == record_id)


# =============================================================================
# Commands
# =============================================================================


class TestAddAndImport:

    def test_add_recomputes_amount(self, ledger_service):
        records = ledger_service.add_record((), {
            "game": "Star Trail",
            "gameFlow": "100000",
            "testingFee": "1000",
            "voucher": "500",
            "channelFeeRate": "5",
            "revenueShareRatio": "30",
            "discount": "0.9",
            "settlementAmount": "1",
        })
        [record] = records
        assert record.settlement_amount == Decimal("25265.25")
        assert record.id == "new-1"

    def test_add_generates_settlement_number(self, ledger_service, records):
        updated = ledger_service.add_record(
            records,
            {"id": "r3", "game": "X", "gameFlow": "10"},
            issued_at=datetime(2025, 1, 15, 9, 0),
        )
        assert _by_id(updated, "r3").settlement_number == "JS-20250115-003"

    def test_add_keeps_given_settlement_number(self, ledger_service):
        [record] = ledger_service.add_record(
            (), {"id": "a", "settlementNumber": "JS-20240101-001"}, issued_at=datetime(2025, 1, 1),
        )
        assert record.settlement_number == "JS-20240101-001"

    def test_import_assigns_missing_ids_and_recomputes(self, ledger_service):
        imported = ledger_service.import_records((), [
            {"game": "A", "gameFlow": "200", "revenueShareRatio": "50", "settlementAmount": "oops"},
            {"id": "keep", "game": "B"},
        ])
        assert [r.id for r in imported] == ["new-1", "keep"]
        assert imported[0].settlement_amount == Decimal("100.00")
        assert not imported[0].is_malformed("settlement_amount")

    def test_input_tuple_untouched(self, ledger_service, records):
        before = tuple(records)
        ledger_service.add_record(records, {"id": "r9"})
        assert records == before


class TestUpdate:

    def test_update_recomputes(self, ledger_service, records):
        updated = ledger_service.update_record(records, "r1", {"revenueShareRatio": "35"})
        assert _by_id(updated, "r1").settlement_amount == Decimal("29067.15")
        assert _by_id(updated, "r2") == _by_id(records, "r2")

    def test_update_unknown_record(self, ledger_service, records):
        with pytest.raises(RecordNotFoundError) as exc_info:
            ledger_service.update_record(records, "nope", {"game": "X"})
        assert exc_info.value.record_id == "nope"

    def test_batch_update(self, ledger_service, records):
        updated = ledger_service.batch_update(records, ["r1", "r2"], {"discount": "0.5"})
        assert all(r.discount == Decimal("0.5") for r in updated)
        assert _by_id(updated, "r1").settlement_amount == Decimal("12457.35")

    def test_batch_update_unknown_id_changes_nothing(self, ledger_service, records):
        with pytest.raises(RecordNotFoundError):
            ledger_service.batch_update(records, ["r1", "missing"], {"discount": "0.5"})

    def test_set_status(self, ledger_service, records):
        updated = ledger_service.set_status(records, ["r2"], "settled")
        assert _by_id(updated, "r2").status == RecordStatus.SETTLED
        assert _by_id(updated, "r1").status == RecordStatus.PENDING

    def test_update_with_status_member(self, ledger_service, records):
        updated = ledger_service.update_record(records, "r1", {"status": RecordStatus.SETTLED})
        assert _by_id(updated, "r1").status == RecordStatus.SETTLED

    def test_set_status_rejects_unknown_status(self, ledger_service, records):
        with pytest.raises(ValueError):
            ledger_service.set_status(records, ["r1"], "archived")


class TestCopyAndDelete:

    def test_copy_inserted_after_source(self, ledger_service, records):
        updated = ledger_service.copy_record(records, "r1")
        assert [r.id for r in updated] == ["r1", "new-1", "r2"]
        copy = updated[1]
        assert copy.settlement_number == ""
        assert copy.status == RecordStatus.PENDING
        assert copy.settlement_amount == _by_id(records, "r1").settlement_amount

    def test_delete(self, ledger_service, records):
        updated = ledger_service.delete_record(records, "r1")
        assert [r.id for r in updated] == ["r2"]

    def test_delete_unknown(self, ledger_service, records):
        with pytest.raises(RecordNotFoundError):
            ledger_service.delete_record(records, "r7")


# =============================================================================
# Fixes
# =============================================================================


class TestApplyFix:

    def test_month_fix(self, ledger_service, raw_record):
        records = ledger_service.import_records((), [raw_record(settlementMonth="2025/01")])
        [issue] = ledger_service.validate(records)
        assert issue.fixable

        fixed = ledger_service.apply_fix(records, issue)
        assert fixed[0].settlement_month == "2025-01"
        assert ledger_service.validate(fixed) == ()

    def test_non_fixable_rejected(self, ledger_service, records):
        issue = ValidationIssue(
            type=IssueType.WARNING,
            category=IssueCategory.COMPLETENESS,
            record_id="r1",
            record_index=1,
            field="partner",
            message="Partner is recommended",
        )
        with pytest.raises(IssueNotFixableError) as exc_info:
            ledger_service.apply_fix(records, issue)
        assert exc_info.value.code == "ISSUE_NOT_FIXABLE"

    def test_fix_for_deleted_record(self, ledger_service, records):
        issue = ValidationIssue(
            type=IssueType.WARNING,
            category=IssueCategory.FORMAT,
            record_id="gone",
            record_index=3,
            field="settlement_month",
            message="m",
            auto_fix_value="2025-01",
        )
        with pytest.raises(RecordNotFoundError):
            ledger_service.apply_fix(records, issue)


# =============================================================================
# Validation cache
# =============================================================================


class TestValidate:

    def test_clean_records(self, ledger_service, records):
        assert ledger_service.validate(records) == ()
        assert ledger_service.statistics(records).total == 0

    def test_same_content_served_from_cache(self, ledger_service, raw_record):
        raws = [raw_record(game="")]
        first = ledger_service.validate(raws)
        second = ledger_service.validate([raw_record(game="")])
        assert first is second

    def test_changed_content_revalidated(self, ledger_service, records):
        first = ledger_service.validate(records)
        updated = ledger_service.update_record(records, "r1", {"game": ""})
        second = ledger_service.validate(updated)
        assert first != second
        assert any(i.field == "game" for i in second)

    def test_clear_cache(self, ledger_service, raw_record):
        raws = [raw_record(game="")]
        first = ledger_service.validate(raws)
        ledger_service.clear_cache()
        second = ledger_service.validate(raws)
        assert second is not first
        assert second == first
