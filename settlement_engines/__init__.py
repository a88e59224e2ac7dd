"""
Module: settlement_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    settlement engines.  This is the import surface for the service layer
    and the CLI scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import settlement_kernel, sibling engine modules and the
    settlement_config schema types.  MUST NOT import settlement_services.

Invariants enforced:
    - Purity: engines never read the clock.  Dates and timestamps are
      parameters supplied by the caller.
    - Decimal-only arithmetic for amounts and rates.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from settlement_engines import validate_all, summarize_issues
    from settlement_engines import ReconciliationMatcher, CycleClassifier
"""

from settlement_engines.aggregation import (
    ValidationStatistics,
    group_issues_by_category,
    group_issues_by_record,
    has_blocking_issues,
    summarize_issues,
)
from settlement_engines.calculator import (
    AmountCalculator,
    SettlementCalculator,
    calculate_settlement_amount,
)
from settlement_engines.cycles import (
    UNSET_CYCLE_KEY,
    Cycle,
    CycleClassifier,
    CycleType,
    build_cycles,
    current_cycle,
    cycle_bounds,
    cycle_display_name,
    cycle_key,
    filter_records_by_cycle,
    next_cycle,
    parse_period_label,
    period_key,
    previous_cycle,
)
from settlement_engines.settlement_number import (
    SettlementNumberFormat,
    generate_settlement_number,
    is_settlement_number_unique,
    is_valid_settlement_number,
)
from settlement_engines.tracer import traced_engine
from settlement_engines.validation import (
    IssueCategory,
    IssueType,
    ValidationEngine,
    ValidationIssue,
    validate_all,
)
from settlement_engines.verification import (
    ReconciliationMatcher,
    VerificationOverlap,
    VerificationSummary,
)

__all__ = [
    # Aggregation
    "ValidationStatistics",
    "group_issues_by_category",
    "group_issues_by_record",
    "has_blocking_issues",
    "summarize_issues",
    # Calculator
    "AmountCalculator",
    "SettlementCalculator",
    "calculate_settlement_amount",
    # Cycles
    "UNSET_CYCLE_KEY",
    "Cycle",
    "CycleClassifier",
    "CycleType",
    "build_cycles",
    "current_cycle",
    "cycle_bounds",
    "cycle_display_name",
    "cycle_key",
    "filter_records_by_cycle",
    "next_cycle",
    "parse_period_label",
    "period_key",
    "previous_cycle",
    # Settlement numbers
    "SettlementNumberFormat",
    "generate_settlement_number",
    "is_settlement_number_unique",
    "is_valid_settlement_number",
    # Tracing
    "traced_engine",
    # Validation
    "IssueCategory",
    "IssueType",
    "ValidationEngine",
    "ValidationIssue",
    "validate_all",
    # Verification
    "ReconciliationMatcher",
    "VerificationOverlap",
    "VerificationSummary",
]
