"""
Pytest fixtures for the settlement test suite.

Provides:
- Raw record builders in the camelCase snapshot shape
- Default engine configuration and service instances
- Logging isolation between tests
"""

import itertools
from decimal import Decimal

import pytest

from settlement_config import EngineConfig
from settlement_kernel.logging_config import LogContext, reset_logging
from settlement_services import SettlementLedgerService


def make_raw_record(**overrides) -> dict:
    """A record that validates without issues.

    (100000 - 5000 - 2000) * 0.95 * 0.94 * 0.30 * 1 - 0 = 24914.70.
    Overriding an input field also requires overriding settlementAmount.
    """
    raw = {
        "id": "r1",
        "settlementMonth": "2025-01",
        "partner": "Acme Games",
        "game": "Star Trail",
        "settlementNumber": "JS-20250115-001",
        "gameFlow": "100000",
        "testingFee": "5000",
        "voucher": "2000",
        "channelFeeRate": "5",
        "taxPoint": "6",
        "revenueShareRatio": "30",
        "discount": "1",
        "refund": "0",
        "settlementAmount": "24914.70",
    }
    raw.update(overrides)
    return raw


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def raw_record():
    """Factory for raw records; keyword overrides replace fields."""
    return make_raw_record


@pytest.fixture
def ledger_service(engine_config) -> SettlementLedgerService:
    counter = itertools.count(1)
    return SettlementLedgerService(
        config=engine_config,
        id_factory=lambda: f"new-{next(counter)}",
    )


@pytest.fixture
def sample_amount() -> Decimal:
    return Decimal("24914.70")
