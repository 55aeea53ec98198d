"""
Tests for the ledger service.

Service methods are coroutines; each test drives one scenario with
asyncio.run() over an in-memory store.
"""

import asyncio
import csv
import io
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import FIXED_NOW, FailingStore
from profit_pilot.config import get_settings
from profit_pilot.ledger_service import LedgerService, create_ledger_service
from profit_pilot.models import RejectionReason, SalesQuery, SaleSortOption
from profit_pilot.services.export import ExportError
from profit_pilot.services.storage import (
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    StorageError,
)

OWNER = "owner-1"


class TestReads:
    """Tests for reading ledgers."""

    def test_unknown_owner_has_empty_ledger(self, service, store):
        """Test NotFound is treated as an empty ledger."""
        ledger = asyncio.run(service.get_ledger(OWNER))
        assert ledger.is_empty
        assert asyncio.run(service.get_balances(OWNER)) == {}
        assert store.save_calls == 0

    def test_owners_are_isolated(self, service):
        """Test one owner's records never show up for another."""
        async def scenario():
            await service.add_partner(OWNER, "Alice", 50)
            return await service.get_ledger("owner-2")

        assert asyncio.run(scenario()).is_empty


class TestAddPartner:
    """Tests for LedgerService.add_partner."""

    def test_partners_are_appended(self, service):
        """Test partners keep creation order."""
        async def scenario():
            await service.add_partner(OWNER, "Alice", 60)
            await service.add_partner(OWNER, "Bob", 40)
            return await service.get_ledger(OWNER)

        ledger = asyncio.run(scenario())
        assert [p.name for p in ledger.partners] == ["Alice", "Bob"]

    def test_rejection_does_not_write(self, service, store):
        """Test a rejected partner never reaches storage."""
        async def scenario():
            await service.add_partner(OWNER, "Alice", 60)
            return await service.add_partner(OWNER, "Bob", 50)

        outcome = asyncio.run(scenario())
        assert outcome.reason == RejectionReason.ALLOCATION_EXCEEDED
        assert "Current total: 60%" in outcome.rejection.message
        assert store.save_calls == 1

    def test_total_allocated(self, service):
        """Test the allocation sum view."""
        async def scenario():
            await service.add_partner(OWNER, "Alice", "12.5")
            await service.add_partner(OWNER, "Bob", "30")
            return await service.get_total_allocated(OWNER)

        assert asyncio.run(scenario()) == Decimal("42.5")

    def test_concurrent_adds_respect_ceiling(self, service):
        """Test two racing 60% partners cannot both be accepted."""
        async def scenario():
            return await asyncio.gather(
                service.add_partner(OWNER, "Alice", 60),
                service.add_partner(OWNER, "Bob", 60),
            )

        outcomes = asyncio.run(scenario())
        assert sorted(o.ok for o in outcomes) == [False, True]
        ledger = asyncio.run(service.get_ledger(OWNER))
        assert len(ledger.partners) == 1

    def test_idle_owner_locks_are_dropped(self, service):
        """Test the per-owner lock table only holds owners with writes in flight."""
        async def scenario():
            await asyncio.gather(
                service.add_partner(OWNER, "Alice", 60),
                service.add_partner(OWNER, "Bob", 60),
                *(service.add_sale(f"owner-{n}", "Item", "1", "2") for n in range(2, 50)),
            )
            await service.add_sale(OWNER, "Item", "1", "2")

        asyncio.run(scenario())
        assert service._locks == {}
        assert service._lock_users == {}


class TestAddSale:
    """Tests for LedgerService.add_sale."""

    def test_defaults_to_all_partners(self, service):
        """Test a sale without partner_ids is shared by every partner."""
        async def scenario():
            a = (await service.add_partner(OWNER, "Alice", 60)).value
            b = (await service.add_partner(OWNER, "Bob", 40)).value
            sale = (await service.add_sale(OWNER, "Bike", "50", "150")).value
            return a, b, sale

        a, b, sale = asyncio.run(scenario())
        assert set(sale.partner_ids) == {a.id, b.id}

    def test_explicit_partner_subset(self, service):
        """Test a sale can be assigned to some partners only."""
        async def scenario():
            a = (await service.add_partner(OWNER, "Alice", 60)).value
            b = (await service.add_partner(OWNER, "Bob", 40)).value
            await service.add_sale(OWNER, "Bike", "50", "150", partner_ids=[a.id])
            return a, b, await service.get_balances(OWNER)

        a, b, balances = asyncio.run(scenario())
        assert balances == {a.id: Decimal("60"), b.id: Decimal("0")}

    def test_unknown_partner_is_rejected(self, service, store):
        """Test naming a partner that does not exist."""
        outcome = asyncio.run(service.add_sale(OWNER, "Bike", "1", "2", partner_ids=[uuid4()]))
        assert outcome.reason == RejectionReason.UNKNOWN_PARTNER
        assert store.save_calls == 0

    def test_newest_sale_first(self, service):
        """Test sales are prepended."""
        async def scenario():
            await service.add_sale(OWNER, "First", "1", "2")
            await service.add_sale(OWNER, "Second", "1", "3")
            return await service.get_ledger(OWNER)

        ledger = asyncio.run(scenario())
        assert [s.name for s in ledger.sales] == ["Second", "First"]

    def test_invalid_margin_is_rejected(self, service, store):
        """Test validation rejections come back as values."""
        outcome = asyncio.run(service.add_sale(OWNER, "Bike", "150", "50"))
        assert outcome.reason == RejectionReason.INVALID_MARGIN
        assert store.save_calls == 0

    def test_oversized_prices_are_rejected(self, service, store):
        """Test prices past the cap come back as a rejection, not an error."""
        outcome = asyncio.run(service.add_sale(OWNER, "X", "1e26", "1e26"))
        assert outcome.reason == RejectionReason.INVALID_PRICE
        assert store.save_calls == 0


class TestSettleAndDelete:
    """Tests for settlements and the partner cascade through the service."""

    def test_worked_example(self, service):
        """Test the A 60% / B 40% walkthrough against a store."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", 60)).value
            b = (await service.add_partner(OWNER, "B", 40)).value
            await service.add_sale(OWNER, "Bike", "0", "100")
            before = await service.get_balances(OWNER)

            settled = await service.add_settlement(OWNER, a.id, "30")
            after_settle = await service.get_balances(OWNER)

            refused = await service.add_settlement(OWNER, a.id, "50")
            await service.add_settlement(OWNER, b.id, "10")

            ledger = await service.delete_partner(OWNER, b.id)
            after_delete = await service.get_balances(OWNER)
            return a, b, before, settled, after_settle, refused, ledger, after_delete

        a, b, before, settled, after_settle, refused, ledger, after_delete = asyncio.run(scenario())

        assert before == {a.id: Decimal("60"), b.id: Decimal("40")}
        assert settled.ok
        assert after_settle == {a.id: Decimal("30"), b.id: Decimal("40")}
        assert refused.reason == RejectionReason.EXCEEDS_OWED
        assert refused.rejection.details["owed"] == Decimal("30.00")
        assert [s.partner_id for s in ledger.settlements] == [a.id]
        assert ledger.sales[0].partner_ids == (a.id,)
        assert after_delete == {a.id: Decimal("30")}

    def test_settlements_are_appended(self, service):
        """Test settlement order is creation order."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", 100)).value
            await service.add_sale(OWNER, "Bike", "0", "100")
            await service.add_settlement(OWNER, a.id, "10")
            await service.add_settlement(OWNER, a.id, "20")
            return await service.get_ledger(OWNER)

        ledger = asyncio.run(scenario())
        assert [s.amount for s in ledger.settlements] == [Decimal("10.00"), Decimal("20.00")]

    def test_settle_unknown_partner(self, service, store):
        """Test settling a partner that does not exist."""
        outcome = asyncio.run(service.add_settlement(OWNER, uuid4(), "5"))
        assert outcome.reason == RejectionReason.UNKNOWN_PARTNER
        assert store.save_calls == 0

    def test_oversized_settlement_is_rejected(self, service, store):
        """Test a payout past the cap comes back as a rejection, not an error."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", 50)).value
            await service.add_sale(OWNER, "Bike", "0", "20", partner_ids=[a.id])
            return await service.add_settlement(OWNER, a.id, "1e30")

        outcome = asyncio.run(scenario())
        assert outcome.reason == RejectionReason.INVALID_AMOUNT
        assert store.save_calls == 2

    def test_delete_unknown_partner_writes_nothing(self, service, store):
        """Test a no-op delete is idempotent and issues no write."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", 50)).value
            await service.delete_partner(OWNER, a.id)
            writes = store.save_calls
            ledger = await service.delete_partner(OWNER, a.id)
            return writes, ledger

        writes, ledger = asyncio.run(scenario())
        assert ledger.partners == ()
        assert store.save_calls == writes == 2

    def test_deletion_frees_allocation(self, service):
        """Test a deleted partner's percentage can be reused."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", 100)).value
            await service.delete_partner(OWNER, a.id)
            return await service.add_partner(OWNER, "B", 100)

        assert asyncio.run(scenario()).ok

    def test_partner_standings(self, service):
        """Test owed balances with suggested payouts."""
        async def scenario():
            a = (await service.add_partner(OWNER, "A", "33.33")).value
            await service.add_partner(OWNER, "B", "10")
            await service.add_sale(OWNER, "Pen", "0", "0.10", partner_ids=[a.id])
            return await service.get_partner_standings(OWNER)

        standing_a, standing_b = asyncio.run(scenario())
        assert standing_a.owed == Decimal("0.03333")
        assert standing_a.suggested_settlement == Decimal("0.03")
        assert standing_a.can_settle
        assert standing_b.owed == 0
        assert not standing_b.can_settle

    def test_storage_errors_propagate(self, engine):
        """Test StorageError reaches the caller unchanged."""
        service = LedgerService(FailingStore(), engine)
        with pytest.raises(StorageError, match="disk full"):
            asyncio.run(service.add_partner(OWNER, "A", 50))
        assert service._locks == {}


class TestQueries:
    """Tests for the read-side views."""

    @pytest.fixture
    def filled(self, service):
        async def scenario():
            await service.add_partner(OWNER, "Alice", 60)
            await service.add_sale(OWNER, "Lamp", "10", "30", description="brass")
            await service.add_sale(OWNER, "Chair", "5", "100")
        asyncio.run(scenario())
        return service

    def test_list_sales_sorted(self, filled):
        """Test the listing honours the requested order."""
        query = SalesQuery(sort=SaleSortOption.PROFIT_ASC)
        sales = asyncio.run(filled.list_sales(OWNER, query))
        assert [s.name for s in sales] == ["Lamp", "Chair"]

    def test_list_sales_date_filter(self, filled):
        """Test sales outside the range are dropped."""
        query = SalesQuery(start_date=date(2024, 6, 16))
        assert asyncio.run(filled.list_sales(OWNER, query)) == []

    def test_profit_overview(self, filled):
        """Test today and this-month totals."""
        overview = asyncio.run(filled.profit_overview(OWNER, now=FIXED_NOW))
        assert overview.today.profit == Decimal("115")
        assert overview.this_month.revenue == Decimal("130")
        assert overview.this_month.sale_count == 2

    def test_sales_history(self, filled):
        """Test the default history window."""
        history = asyncio.run(filled.sales_history(OWNER, now=FIXED_NOW))
        assert len(history) == 6
        assert history[-1].label == "Jun"
        assert history[-1].profit == Decimal("115")
        assert history[0].profit == 0

    def test_export(self, filled):
        """Test CSV export through the service."""
        text = asyncio.run(filled.export_sales_csv(OWNER))
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0][-1] == "Alice (60%) Cut"
        assert [row[2] for row in rows[1:]] == ["Chair", "Lamp"]

    def test_export_nothing(self, service):
        """Test exporting an empty ledger."""
        with pytest.raises(ExportError, match="No data to export."):
            asyncio.run(service.export_sales_csv(OWNER))


class TestFactory:
    """Tests for create_ledger_service."""

    @pytest.fixture(autouse=True)
    def fresh_settings(self, monkeypatch):
        for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_memory_backend(self, monkeypatch):
        """Test the memory backend is selected from the environment."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        service = create_ledger_service()
        assert isinstance(service._store, InMemoryLedgerStore)

    def test_json_backend(self, monkeypatch, tmp_path):
        """Test the JSON backend writes under LEDGER_DATA_DIR."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "json")
        monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path))
        service = create_ledger_service()

        asyncio.run(service.add_partner(OWNER, "Alice", 50))

        assert isinstance(service._store, JsonFileLedgerStore)
        assert len(list(tmp_path.glob("*.json"))) == 1

    def test_unconfigured_sheets_falls_back_to_json(self, monkeypatch, tmp_path):
        """Test a missing Google Sheets configuration is not fatal."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path))
        service = create_ledger_service()
        assert isinstance(service._store, JsonFileLedgerStore)

    def test_currency_symbol_reaches_engine(self, monkeypatch):
        """Test LEDGER_CURRENCY_SYMBOL is used in rejection messages."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LEDGER_CURRENCY_SYMBOL", "€")
        service = create_ledger_service()

        async def scenario():
            a = (await service.add_partner(OWNER, "A", 50)).value
            return await service.add_settlement(OWNER, a.id, "1")

        outcome = asyncio.run(scenario())
        assert outcome.rejection.message == "Cannot settle more than the owed amount of €0.00."
