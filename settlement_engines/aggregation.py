"""
settlement_engines.aggregation -- Pure reductions over validation issues.

Responsibility:
    Count issues by severity and category, and group them for display.
    Nothing here inspects records; the input is the issue tuple produced by
    ``validate_all``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``group_issues_by_category`` always returns all five categories, in
      declaration order, even when a category has no issues.
    - Grouping preserves the input order of issues within each group.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from settlement_engines.validation.types import IssueCategory, IssueType, ValidationIssue


@dataclass(frozen=True)
class ValidationStatistics:
    """Issue counts for one validation pass."""

    total: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0
    fixable: int = 0
    by_category: Mapping[IssueCategory, int] = field(
        default_factory=lambda: MappingProxyType({c: 0 for c in IssueCategory}),
    )

    @property
    def has_errors(self) -> bool:
        return self.errors > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info,
            "fixable": self.fixable,
            "byCategory": {c.value: n for c, n in self.by_category.items()},
        }


def summarize_issues(issues: Iterable[ValidationIssue]) -> ValidationStatistics:
    """Severity, fixability and per-category counts."""
    items = tuple(issues)
    by_category = {c: 0 for c in IssueCategory}
    for issue in items:
        by_category[issue.category] += 1

    return ValidationStatistics(
        total=len(items),
        errors=sum(1 for i in items if i.type == IssueType.ERROR),
        warnings=sum(1 for i in items if i.type == IssueType.WARNING),
        info=sum(1 for i in items if i.type == IssueType.INFO),
        fixable=sum(1 for i in items if i.fixable),
        by_category=MappingProxyType(by_category),
    )


def group_issues_by_category(
    issues: Iterable[ValidationIssue],
) -> dict[IssueCategory, tuple[ValidationIssue, ...]]:
    grouped: dict[IssueCategory, list[ValidationIssue]] = {c: [] for c in IssueCategory}
    for issue in issues:
        grouped[issue.category].append(issue)
    return {c: tuple(v) for c, v in grouped.items()}


def group_issues_by_record(
    issues: Iterable[ValidationIssue],
) -> dict[str, tuple[ValidationIssue, ...]]:
    """Issues keyed by record id, in first-seen order."""
    grouped: dict[str, list[ValidationIssue]] = {}
    for issue in issues:
        grouped.setdefault(issue.record_id, []).append(issue)
    return {k: tuple(v) for k, v in grouped.items()}


def has_blocking_issues(issues: Iterable[ValidationIssue]) -> bool:
    """True when any issue is an ERROR."""
    return any(issue.type == IssueType.ERROR for issue in issues)
