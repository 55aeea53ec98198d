"""
Ledger Service

This module ties the settlement engine to a ledger store and defines
the four mutations a ledger owner can make:
1. Add a sale
2. Add a partner
3. Delete a partner (cascades)
4. Settle with a partner

plus the read-side views built on top of a loaded ledger.

DESIGN DECISION: The service enforces the boundaries:
- Every mutation is ONE read-modify-write of one owner's ledger
- The engine validates before anything is written
- A rejected mutation never touches storage
- Storage errors reach the caller unchanged (no retries here)

Mutations for the same owner are serialized in-process with an
asyncio.Lock. Nothing guards against a second process writing the same
owner's ledger.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import AsyncIterator, Iterable, Optional
from uuid import UUID

from profit_pilot.config import Settings, get_settings
from profit_pilot.engine import SettlementEngine
from profit_pilot.logger import configure_logging, get_logger
from profit_pilot.models.ledger import LedgerSnapshot, Partner, Sale, Settlement
from profit_pilot.models.money import NumberLike
from profit_pilot.models.queries import (
    MonthlyTotals,
    PartnerStanding,
    ProfitOverview,
    SalesQuery,
)
from profit_pilot.models.results import Outcome, RejectionReason
from profit_pilot.queries import (
    filter_and_sort_sales,
    monthly_history,
    partner_standings,
    profit_overview,
)
from profit_pilot.services.export import export_sales_csv
from profit_pilot.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
)


class LedgerService:
    """
    Orchestrates ledger reads and mutations for any number of owners.

    Usage:
        service = LedgerService(InMemoryLedgerStore())
        outcome = await service.add_partner("owner-1", "Alice", 60)
        if not outcome.ok:
            print(outcome.rejection.message)
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        engine: Optional[SettlementEngine] = None,
        history_months: int = 6,
        tz: tzinfo = timezone.utc,
    ):
        self._store = store
        self._engine = engine or SettlementEngine()
        self._history_months = history_months
        self._tz = tz
        # Only owners with a mutation in flight have an entry
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._logger = get_logger(__name__)

    @property
    def engine(self) -> SettlementEngine:
        return self._engine

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_ledger(self, owner_id: str) -> LedgerSnapshot:
        """Load an owner's ledger; an unknown owner has an empty one."""
        try:
            return await self._store.load(owner_id)
        except NotFoundError:
            return LedgerSnapshot.empty()

    async def get_balances(self, owner_id: str) -> dict[UUID, Decimal]:
        ledger = await self.get_ledger(owner_id)
        return self._balances(ledger)

    async def get_partner_standings(self, owner_id: str) -> list[PartnerStanding]:
        """Every partner with what they are owed, in creation order."""
        ledger = await self.get_ledger(owner_id)
        return partner_standings(ledger.partners, self._balances(ledger))

    async def get_total_allocated(self, owner_id: str) -> Decimal:
        ledger = await self.get_ledger(owner_id)
        return self._engine.total_allocated(ledger.partners)

    async def list_sales(
        self,
        owner_id: str,
        query: Optional[SalesQuery] = None,
    ) -> list[Sale]:
        ledger = await self.get_ledger(owner_id)
        return filter_and_sort_sales(ledger.sales, query, tz=self._tz)

    async def profit_overview(
        self,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> ProfitOverview:
        ledger = await self.get_ledger(owner_id)
        return profit_overview(ledger.sales, now=now, tz=self._tz)

    async def sales_history(
        self,
        owner_id: str,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[MonthlyTotals]:
        ledger = await self.get_ledger(owner_id)
        return monthly_history(
            ledger.sales,
            now=now,
            months=months or self._history_months,
            tz=self._tz,
        )

    async def export_sales_csv(
        self,
        owner_id: str,
        query: Optional[SalesQuery] = None,
    ) -> str:
        """
        CSV of the (filtered, sorted) sales listing.

        Raises:
            ExportError: If no sale matches
        """
        ledger = await self.get_ledger(owner_id)
        sales = filter_and_sort_sales(ledger.sales, query, tz=self._tz)
        return export_sales_csv(sales, ledger.partners, tz=self._tz)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_sale(
        self,
        owner_id: str,
        name: Optional[str],
        purchase_price: Optional[NumberLike],
        sold_price: Optional[NumberLike],
        description: Optional[str] = None,
        partner_ids: Optional[Iterable[UUID]] = None,
    ) -> Outcome[Sale]:
        """
        Record a sale.

        partner_ids=None assigns every current partner. Naming a partner
        that does not exist rejects the sale.
        """
        async with self._owner_lock(owner_id):
            ledger = await self.get_ledger(owner_id)

            if partner_ids is None:
                assigned = tuple(partner.id for partner in ledger.partners)
            else:
                assigned = tuple(partner_ids)
                unknown = [pid for pid in assigned if ledger.find_partner(pid) is None]
                if unknown:
                    outcome = Outcome[Sale].reject(
                        RejectionReason.UNKNOWN_PARTNER,
                        "Sale references a partner that does not exist.",
                        partner_ids=[str(pid) for pid in unknown],
                    )
                    self._log_rejected("add_sale", owner_id, outcome)
                    return outcome

            outcome = self._engine.validate_new_sale(
                name,
                purchase_price,
                sold_price,
                description=description,
                partner_ids=assigned,
            )
            if not outcome.ok:
                self._log_rejected("add_sale", owner_id, outcome)
                return outcome

            sale = outcome.value
            # Newest sale first
            await self._store.save(
                owner_id,
                (sale, *ledger.sales),
                ledger.partners,
                ledger.settlements,
            )

        self._logger.info(
            "sale_added",
            owner_id=owner_id,
            sale_id=str(sale.id),
            profit=str(sale.profit),
            partners=len(sale.partner_ids),
        )
        return outcome

    async def add_partner(
        self,
        owner_id: str,
        name: Optional[str],
        percentage: Optional[NumberLike],
    ) -> Outcome[Partner]:
        """Add a partner if the 100% allocation ceiling allows it."""
        async with self._owner_lock(owner_id):
            ledger = await self.get_ledger(owner_id)

            outcome = self._engine.validate_new_partner(ledger.partners, name, percentage)
            if not outcome.ok:
                self._log_rejected("add_partner", owner_id, outcome)
                return outcome

            partner = outcome.value
            await self._store.save(
                owner_id,
                ledger.sales,
                (*ledger.partners, partner),
                ledger.settlements,
            )

        self._logger.info(
            "partner_added",
            owner_id=owner_id,
            partner_id=str(partner.id),
            percentage=str(partner.percentage),
        )
        return outcome

    async def delete_partner(self, owner_id: str, partner_id: UUID) -> LedgerSnapshot:
        """
        Delete a partner, their settlements, and their sale assignments.

        Idempotent: deleting an unknown partner changes nothing and
        writes nothing.

        Returns:
            The ledger after the deletion
        """
        async with self._owner_lock(owner_id):
            ledger = await self.get_ledger(owner_id)

            sales, settlements, partners = self._engine.apply_partner_deletion(
                ledger.sales,
                ledger.settlements,
                ledger.partners,
                partner_id,
            )
            unchanged = (
                len(partners) == len(ledger.partners)
                and len(settlements) == len(ledger.settlements)
                and all(new is old for new, old in zip(sales, ledger.sales))
            )
            if unchanged:
                self._logger.debug(
                    "partner_delete_noop", owner_id=owner_id, partner_id=str(partner_id)
                )
                return ledger

            await self._store.save(owner_id, sales, partners, settlements)

        self._logger.info(
            "partner_deleted",
            owner_id=owner_id,
            partner_id=str(partner_id),
            settlements_removed=len(ledger.settlements) - len(settlements),
        )
        return LedgerSnapshot(sales=sales, partners=partners, settlements=settlements)

    async def add_settlement(
        self,
        owner_id: str,
        partner_id: UUID,
        amount: Optional[NumberLike],
    ) -> Outcome[Settlement]:
        """Pay a partner out of their owed balance."""
        async with self._owner_lock(owner_id):
            ledger = await self.get_ledger(owner_id)

            partner = ledger.find_partner(partner_id)
            balance = self._balances(ledger).get(partner_id, Decimal(0))
            outcome = self._engine.validate_settlement(partner, balance, amount)
            if not outcome.ok:
                self._log_rejected("add_settlement", owner_id, outcome)
                return outcome

            settlement = outcome.value
            await self._store.save(
                owner_id,
                ledger.sales,
                ledger.partners,
                (*ledger.settlements, settlement),
            )

        self._logger.info(
            "settlement_added",
            owner_id=owner_id,
            partner_id=str(partner_id),
            amount=str(settlement.amount),
        )
        return outcome

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _owner_lock(self, owner_id: str) -> AsyncIterator[None]:
        """Serialize mutations for one owner; the lock is dropped when idle."""
        lock = self._locks.setdefault(owner_id, asyncio.Lock())
        self._lock_users[owner_id] = self._lock_users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[owner_id] -= 1
            if not self._lock_users[owner_id]:
                del self._lock_users[owner_id]
                del self._locks[owner_id]

    def _balances(self, ledger: LedgerSnapshot) -> dict[UUID, Decimal]:
        return self._engine.compute_balances(
            ledger.sales, ledger.partners, ledger.settlements
        )

    def _log_rejected(self, operation: str, owner_id: str, outcome: Outcome) -> None:
        self._logger.warning(
            "mutation_rejected",
            operation=operation,
            owner_id=owner_id,
            reason=outcome.rejection.reason.value,
            category=outcome.rejection.reason.category,
            message=outcome.rejection.message,
        )


def create_ledger_service(settings: Optional[Settings] = None) -> LedgerService:
    """
    Factory function to create a configured LedgerService.

    Picks the store from LEDGER_STORAGE_BACKEND. If Google Sheets is
    selected but not configured, falls back to local JSON files.
    """
    settings = settings or get_settings()
    app = settings.app
    configure_logging(app.effective_log_level, app.log_format)
    logger = get_logger(__name__)

    ledger_settings = settings.ledger
    store: LedgerStoreInterface
    if ledger_settings.storage_backend == "memory":
        store = InMemoryLedgerStore()
    elif ledger_settings.storage_backend == "google_sheets":
        try:
            store = GoogleSheetsLedgerStore(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            # Storage not configured - continue with local files
            logger.warning(
                "google_sheets_unavailable",
                error=str(e),
                fallback="json",
                data_dir=str(ledger_settings.data_dir),
            )
            store = JsonFileLedgerStore(ledger_settings.data_dir)
    else:
        store = JsonFileLedgerStore(ledger_settings.data_dir)

    engine = SettlementEngine(currency_symbol=ledger_settings.currency_symbol)
    logger.info("ledger_service_ready", backend=type(store).__name__)
    return LedgerService(store, engine, history_months=ledger_settings.history_months)
