"""
settlement_services.ledger_service -- Record-list commands and cached validation.

Responsibility:
    The caller-side contract around the engines: add, edit, copy, import,
    delete and fix settlement records, keeping ``settlement_amount`` equal
    to the calculator's result, and serve validation results for the
    current record list.

Architecture position:
    Services -- orchestration over engines + kernel.  Holds an
    ``EngineConfig`` and a calculator but never the record list itself;
    every command takes the current records and returns a fresh tuple.

Invariants enforced:
    - Every command except ``delete_record`` recomputes the settlement
      amount of the records it touches, quantized to 0.01.
    - Input tuples are never mutated.
    - ``validate`` returns the same tuple for the same record content.

Failure modes:
    - RecordNotFoundError: a command names a record id that is not present.
    - IssueNotFixableError: ``apply_fix`` on an issue without an auto-fix
      value.

Usage:
    from settlement_services import SettlementLedgerService

    service = SettlementLedgerService(config=get_engine_config())
    records = service.add_record((), {"game": "Star Trail", "gameFlow": 10000})
    issues = service.validate(records)
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

from settlement_config.schema import EngineConfig
from settlement_engines.aggregation import ValidationStatistics, summarize_issues
from settlement_engines.calculator import AmountCalculator, calculate_settlement_amount
from settlement_engines.settlement_number import generate_settlement_number
from settlement_engines.tracer import compute_input_fingerprint
from settlement_engines.validation import ValidationEngine, ValidationIssue
from settlement_kernel.domain.coercion import apply_changes, coerce_record, coerce_records
from settlement_kernel.domain.records import RecordStatus, SettlementRecord
from settlement_kernel.domain.values import round2, to_decimal
from settlement_kernel.exceptions import IssueNotFixableError, RecordNotFoundError
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.ledger")

RecordLike = SettlementRecord | Mapping[str, Any]

_DEFAULT_CACHE_SIZE = 16


def _new_record_id() -> str:
    return uuid.uuid4().hex


class SettlementLedgerService:
    """
    Commands over an in-memory settlement record list.

    Contract:
        Given the current records and a command, return the new record
        tuple.  Records are matched by id.

    Non-goals:
        - Does NOT persist anything; storage belongs to the caller.
        - Does NOT validate on write.  Call ``validate`` when issues are
          needed.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        calculate: AmountCalculator = calculate_settlement_amount,
        id_factory: Callable[[], str] = _new_record_id,
        cache_size: int = _DEFAULT_CACHE_SIZE,
    ):
        self.config = config or EngineConfig()
        self.calculate = calculate
        self.id_factory = id_factory
        self.engine = ValidationEngine(config=self.config, calculate=calculate)
        self._cache: OrderedDict[str, tuple[ValidationIssue, ...]] = OrderedDict()
        self._cache_size = cache_size

    # =========================================================================
    # Helpers
    # =========================================================================

    def recompute(self, record: SettlementRecord) -> SettlementRecord:
        """Record with ``settlement_amount`` set to the calculated value."""
        amount = round2(to_decimal(self.calculate(record)))
        malformed = {k: v for k, v in record.malformed.items() if k != "settlement_amount"}
        return replace(
            record,
            settlement_amount=amount,
            malformed=MappingProxyType(malformed),
        )

    def _new_record(self, raw: RecordLike) -> SettlementRecord:
        record = coerce_record(raw)
        if not record.id:
            record = replace(record, id=self.id_factory())
        return record

    @staticmethod
    def _index_of(records: Sequence[SettlementRecord], record_id: str) -> int:
        for position, record in enumerate(records):
            if record.id == record_id:
                return position
        raise RecordNotFoundError(record_id)

    # =========================================================================
    # Commands
    # =========================================================================

    def add_record(
        self,
        records: Iterable[RecordLike],
        raw: RecordLike,
        issued_at: datetime | None = None,
    ) -> tuple[SettlementRecord, ...]:
        """Append a new record.

        Args:
            records: Current record list.
            raw: The new record; an id is assigned when missing.
            issued_at: When given and the record has no settlement number,
                one is generated in the configured format for this time.
        """
        current = coerce_records(records)
        record = self.recompute(self._new_record(raw))

        if issued_at is not None and not record.settlement_number:
            number = generate_settlement_number(
                (r.settlement_number for r in current),
                issued_at,
                self.config.settlement_number_format,
                partner=record.partner,
            )
            record = replace(record, settlement_number=number)

        logger.info("settlement_record_added", extra={
            "record_id": record.id,
            "settlement_amount": record.settlement_amount,
        })
        return current + (record,)

    def update_record(
        self,
        records: Iterable[RecordLike],
        record_id: str,
        changes: Mapping[str, Any],
    ) -> tuple[SettlementRecord, ...]:
        """Apply field changes to one record."""
        current = list(coerce_records(records))
        position = self._index_of(current, record_id)
        current[position] = self.recompute(apply_changes(current[position], changes))

        with LogContext.bind(record_id=record_id):
            logger.info("settlement_record_updated", extra={
                "fields": sorted(changes),
                "settlement_amount": current[position].settlement_amount,
            })
        return tuple(current)

    def copy_record(
        self,
        records: Iterable[RecordLike],
        record_id: str,
    ) -> tuple[SettlementRecord, ...]:
        """Insert a pending copy directly after the source record.

        The copy gets a fresh id and no settlement number.
        """
        current = list(coerce_records(records))
        position = self._index_of(current, record_id)
        copy = replace(
            current[position],
            id=self.id_factory(),
            settlement_number="",
            status=RecordStatus.PENDING,
        )
        current.insert(position + 1, self.recompute(copy))

        logger.info("settlement_record_copied", extra={
            "source_record_id": record_id,
            "record_id": copy.id,
        })
        return tuple(current)

    def batch_update(
        self,
        records: Iterable[RecordLike],
        record_ids: Iterable[str],
        changes: Mapping[str, Any],
    ) -> tuple[SettlementRecord, ...]:
        """Apply the same field changes to several records.

        Raises:
            RecordNotFoundError: for the first id not present; nothing is
                changed in that case.
        """
        current = list(coerce_records(records))
        positions = [self._index_of(current, rid) for rid in dict.fromkeys(record_ids)]
        for position in positions:
            current[position] = self.recompute(apply_changes(current[position], changes))

        logger.info("settlement_records_batch_updated", extra={
            "record_count": len(positions),
            "fields": sorted(changes),
        })
        return tuple(current)

    def import_records(
        self,
        records: Iterable[RecordLike],
        raws: Iterable[RecordLike],
    ) -> tuple[SettlementRecord, ...]:
        """Append imported records, assigning ids where missing."""
        current = coerce_records(records)
        imported = tuple(self.recompute(self._new_record(raw)) for raw in raws)

        logger.info("settlement_records_imported", extra={
            "imported_count": len(imported),
            "malformed_count": sum(1 for r in imported if r.malformed),
        })
        return current + imported

    def delete_record(
        self,
        records: Iterable[RecordLike],
        record_id: str,
    ) -> tuple[SettlementRecord, ...]:
        """Remove one record.  Invoices referencing it are left as they are."""
        current = list(coerce_records(records))
        del current[self._index_of(current, record_id)]

        logger.info("settlement_record_deleted", extra={"record_id": record_id})
        return tuple(current)

    def set_status(
        self,
        records: Iterable[RecordLike],
        record_ids: Iterable[str],
        status: RecordStatus | str,
    ) -> tuple[SettlementRecord, ...]:
        """Move records to a workflow status.

        Raises:
            ValueError: ``status`` is not a known record status.
        """
        new_status = RecordStatus(status)
        current = list(coerce_records(records))
        positions = [self._index_of(current, rid) for rid in dict.fromkeys(record_ids)]
        for position in positions:
            current[position] = self.recompute(replace(current[position], status=new_status))

        logger.info("settlement_record_status_changed", extra={
            "record_count": len(positions),
            "status": new_status.value,
        })
        return tuple(current)

    def apply_fix(
        self,
        records: Iterable[RecordLike],
        issue: ValidationIssue,
    ) -> tuple[SettlementRecord, ...]:
        """Write an issue's auto-fix value into its field.

        Raises:
            IssueNotFixableError: the issue carries no auto-fix value.
            RecordNotFoundError: the issue's record is no longer present.
        """
        if not issue.fixable:
            raise IssueNotFixableError(issue.record_id, issue.field)

        current = list(coerce_records(records))
        position = self._index_of(current, issue.record_id)
        current[position] = self.recompute(
            apply_changes(current[position], {issue.field: issue.auto_fix_value}),
        )

        with LogContext.bind(record_id=issue.record_id):
            logger.info("validation_fix_applied", extra={
                "field": issue.field,
                "auto_fix_value": issue.auto_fix_value,
            })
        return tuple(current)

    # =========================================================================
    # Queries
    # =========================================================================

    def validate(self, records: Iterable[RecordLike]) -> tuple[ValidationIssue, ...]:
        """Validation issues for ``records``, memoized by record content."""
        typed = coerce_records(records)
        key = compute_input_fingerprint(("records",), {"records": typed})

        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            logger.debug("validation_cache_hit", extra={"fingerprint": key})
            return cached

        issues = self.engine.validate_all(typed)
        self._cache[key] = issues
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return issues

    def statistics(self, records: Iterable[RecordLike]) -> ValidationStatistics:
        return summarize_issues(self.validate(records))

    def clear_cache(self) -> None:
        self._cache.clear()
