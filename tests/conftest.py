"""
Shared fixtures.

Engines get deterministic ids and a pinned clock so assertions can name
exact records. Stores are in-memory unless a test is about storage.
"""

import itertools
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence
from uuid import UUID

import pytest

from profit_pilot.engine import SettlementEngine
from profit_pilot.ledger_service import LedgerService
from profit_pilot.models.ledger import Partner, Sale, Settlement
from profit_pilot.services.storage import InMemoryLedgerStore, StorageError

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def sequential_ids():
    counter = itertools.count(1)
    return lambda: UUID(int=next(counter))


class RecordingStore(InMemoryLedgerStore):
    """In-memory store that counts writes."""

    def __init__(self) -> None:
        super().__init__()
        self.save_calls = 0

    async def save(
        self,
        owner_id: str,
        sales: Sequence[Sale],
        partners: Sequence[Partner],
        settlements: Sequence[Settlement],
    ) -> bool:
        self.save_calls += 1
        return await super().save(owner_id, sales, partners, settlements)


class FailingStore(InMemoryLedgerStore):
    """Store whose writes always fail."""

    async def save(self, owner_id, sales, partners, settlements) -> bool:
        raise StorageError("disk full")


@pytest.fixture
def engine():
    return SettlementEngine(id_factory=sequential_ids(), clock=lambda: FIXED_NOW)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def service(store, engine):
    return LedgerService(store, engine)


def make_sale(
    profit: str,
    partner_ids=(),
    timestamp: datetime = FIXED_NOW,
    name: str = "Item",
    purchase: str = "0",
) -> Sale:
    """A sale with the given profit, bypassing the engine."""
    purchase_price = Decimal(purchase)
    return Sale(
        name=name,
        purchase_price=purchase_price,
        sold_price=purchase_price + Decimal(profit),
        profit=Decimal(profit),
        timestamp=timestamp,
        partner_ids=tuple(partner_ids),
    )
