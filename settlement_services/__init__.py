"""
Module: settlement_services
Responsibility:
    Orchestration over the pure engines: record-list commands and cached
    validation for callers that own the record storage.

Architecture position:
    Services -- may import settlement_engines, settlement_config and
    settlement_kernel.  Nothing below this layer imports it.
"""

from settlement_services.ledger_service import SettlementLedgerService

__all__ = ["SettlementLedgerService"]
