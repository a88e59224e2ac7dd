"""
Validation domain types.

Pure frozen dataclasses and enums for the settlement validation engine.
Issues are ephemeral: recomputed from the current record list on every
validation pass, never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class IssueType(str, Enum):
    """Severity of a validation issue."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    """Which family of checks produced the issue."""

    COMPLETENESS = "completeness"
    RANGE = "range"
    BUSINESS = "business"
    CONSISTENCY = "consistency"
    FORMAT = "format"


# =============================================================================
# Output type
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """One reported problem on one settlement record.

    ``fixable`` is true exactly when the engine proposes a concrete
    ``auto_fix_value``; applying it is a separate caller-owned command.
    ``related_records`` lists the other records involved in duplicate and
    rate-drift findings.
    """

    type: IssueType
    category: IssueCategory
    record_id: str
    record_index: int
    field: str
    message: str
    suggestion: str = ""
    auto_fix_value: str | None = None
    related_records: tuple[str, ...] = ()

    @property
    def fixable(self) -> bool:
        return self.auto_fix_value is not None

    @property
    def is_error(self) -> bool:
        return self.type == IssueType.ERROR

    def to_dict(self) -> dict[str, Any]:
        """Presentation shape with camelCase keys."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "category": self.category.value,
            "recordId": self.record_id,
            "recordIndex": self.record_index,
            "field": self.field,
            "message": self.message,
            "fixable": self.fixable,
            "suggestion": self.suggestion,
        }
        if self.auto_fix_value is not None:
            data["autoFixValue"] = self.auto_fix_value
        if self.related_records:
            data["relatedRecords"] = list(self.related_records)
        return data
