"""
Tests for settlement number generation and checks.
"""

from datetime import datetime

import pytest

from settlement_engines.settlement_number import (
    SettlementNumberFormat,
    generate_settlement_number,
    is_settlement_number_unique,
    is_valid_settlement_number,
    next_sequence,
    partner_code,
)
from settlement_kernel.exceptions import InvalidSettlementNumberFormatError

AT = datetime(2025, 1, 15, 14, 30, 22)


class TestGenerate:

    def test_first_number_of_the_day(self):
        assert generate_settlement_number([], AT) == "JS-20250115-001"

    def test_continues_highest_sequence(self):
        existing = ["JS-20250115-001", "JS-20250115-007", "JS-20250114-009", ""]
        assert generate_settlement_number(existing, AT) == "JS-20250115-008"

    def test_month_sequence(self):
        existing = ["JS-202501-002"]
        result = generate_settlement_number(existing, AT, SettlementNumberFormat.MONTH_SEQUENCE)
        assert result == "JS-202501-003"

    def test_month_partner_sequence(self):
        existing = ["JS-202501-ACM-001", "JS-202501-XYZ-004"]
        result = generate_settlement_number(existing, AT, "MONTH_PARTNER_SEQUENCE", partner="acme games")
        assert result == "JS-202501-ACM-002"

    def test_unknown_partner(self):
        result = generate_settlement_number([], AT, SettlementNumberFormat.MONTH_PARTNER_SEQUENCE)
        assert result == "JS-202501-UNK-001"

    def test_datetime_format(self):
        result = generate_settlement_number(["SETTLEMENT-20250115-143022"], AT, "datetime")
        assert result == "SETTLEMENT-20250115-143022"

    def test_unknown_format(self):
        with pytest.raises(InvalidSettlementNumberFormatError) as exc_info:
            generate_settlement_number([], AT, "WEEKLY")
        assert exc_info.value.format_name == "WEEKLY"

    def test_sequence_beyond_999(self):
        assert next_sequence(["JS-20250115-999"], "JS-20250115-") == 1000

    def test_partner_code(self):
        assert partner_code("  ab ") == "AB"
        assert partner_code(None) == "UNK"


class TestChecks:

    @pytest.mark.parametrize(
        "number",
        ["JS-20250115-001", "JS-202501-ACM-001", "SETTLEMENT-20250115-143022", "JS-202501-001"],
    )
    def test_valid_numbers(self, number):
        assert is_valid_settlement_number(number)

    @pytest.mark.parametrize("number", ["", None, "JS-2025-001", "js-20250115-001", "JS-202501-acm-001"])
    def test_invalid_numbers(self, number):
        assert not is_valid_settlement_number(number)

    def test_unique_excludes_record_being_edited(self):
        existing = [("r1", "JS-20250115-001"), ("r2", "JS-20250115-002")]
        assert is_settlement_number_unique("JS-20250115-003", existing)
        assert not is_settlement_number_unique("JS-20250115-001", existing)
        assert is_settlement_number_unique("JS-20250115-001", existing, exclude_id="r1")
