"""Settlement record validation engine."""

from settlement_engines.validation.checker import ValidationEngine, validate_all
from settlement_engines.validation.types import (
    IssueCategory,
    IssueType,
    ValidationIssue,
)

__all__ = [
    "IssueCategory",
    "IssueType",
    "ValidationEngine",
    "ValidationIssue",
    "validate_all",
]
