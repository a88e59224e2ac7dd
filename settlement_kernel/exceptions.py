"""
Typed Exception Hierarchy for the Settlement Kernel.

Every error has a typed class, a machine-readable ``code`` class attribute,
and carries its context as attributes rather than only in the message.

Validation never raises for bad data: malformed records are reported as
``ValidationIssue`` values.  The exceptions below cover programming errors
and caller commands that cannot be carried out.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- CycleError
    |   +-- InvalidCycleTypeError
    |   +-- InvalidCycleKeyError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |
    +-- FixError
    |   +-- IssueNotFixableError
    |
    +-- VerificationError
    |   +-- VerificationOverlapError
    |
    +-- SettlementNumberError
        +-- InvalidSettlementNumberFormatError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Config          | INVALID_CONFIGURATION         | YAML config missing keys / bad values
----------------|-------------------------------|---------------------------------------
Cycle           | INVALID_CYCLE_TYPE            | Cycle type not monthly/quarterly/yearly
                | INVALID_CYCLE_KEY             | Key not in the canonical form for type
----------------|-------------------------------|---------------------------------------
Record          | RECORD_NOT_FOUND              | Command targets an unknown record id
----------------|-------------------------------|---------------------------------------
Fix             | ISSUE_NOT_FIXABLE             | Applying a fix without auto_fix_value
----------------|-------------------------------|---------------------------------------
Verification    | VERIFICATION_OVERLAP          | Exclusive attach hits another invoice
----------------|-------------------------------|---------------------------------------
Number          | INVALID_SETTLEMENT_NUMBER_FMT | Unknown settlement-number format
"""


class SettlementKernelError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_KERNEL_ERROR"


# Configuration


class ConfigurationError(SettlementKernelError):
    """Engine configuration could not be parsed."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, reason: str, source: str | None = None):
        self.reason = reason
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"Invalid engine configuration{where}: {reason}")


# Cycles


class CycleError(SettlementKernelError):
    """Base exception for settlement cycle errors."""

    code: str = "CYCLE_ERROR"


class InvalidCycleTypeError(CycleError):
    """Cycle type is not one of the supported types."""

    code: str = "INVALID_CYCLE_TYPE"

    def __init__(self, cycle_type: str):
        self.cycle_type = cycle_type
        super().__init__(f"Unsupported cycle type: {cycle_type!r}")


class InvalidCycleKeyError(CycleError):
    """Cycle key does not have the canonical form for its cycle type."""

    code: str = "INVALID_CYCLE_KEY"

    def __init__(self, cycle_key: str, cycle_type: str):
        self.cycle_key = cycle_key
        self.cycle_type = cycle_type
        super().__init__(
            f"Invalid {cycle_type} cycle key: {cycle_key!r}"
        )


# Records


class RecordError(SettlementKernelError):
    """Base exception for settlement record commands."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """No record with the given id exists in the record list."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Settlement record not found: {record_id}")


# Fixes


class FixError(SettlementKernelError):
    """Base exception for applying validation fixes."""

    code: str = "FIX_ERROR"


class IssueNotFixableError(FixError):
    """The issue carries no concrete replacement value."""

    code: str = "ISSUE_NOT_FIXABLE"

    def __init__(self, record_id: str, field: str):
        self.record_id = record_id
        self.field = field
        super().__init__(
            f"Issue on record {record_id} field {field!r} has no auto-fix value"
        )


# Verification


class VerificationError(SettlementKernelError):
    """Base exception for invoice verification."""

    code: str = "VERIFICATION_ERROR"


class VerificationOverlapError(VerificationError):
    """Settlement records are already verified on another invoice."""

    code: str = "VERIFICATION_OVERLAP"

    def __init__(self, invoice_id: str, overlaps: dict[str, tuple[str, ...]]):
        self.invoice_id = invoice_id
        self.overlaps = overlaps
        ids = ", ".join(sorted(overlaps))
        super().__init__(
            f"Invoice {invoice_id}: records already verified elsewhere: {ids}"
        )


# Settlement numbers


class SettlementNumberError(SettlementKernelError):
    """Base exception for settlement-number handling."""

    code: str = "SETTLEMENT_NUMBER_ERROR"


class InvalidSettlementNumberFormatError(SettlementNumberError):
    """Settlement-number format name is not known."""

    code: str = "INVALID_SETTLEMENT_NUMBER_FMT"

    def __init__(self, format_name: str):
        self.format_name = format_name
        super().__init__(f"Unknown settlement number format: {format_name!r}")
