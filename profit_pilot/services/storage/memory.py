"""
In-memory ledger store.

Used by tests and by the "memory" backend. Snapshots are immutable, so
replacing the dict entry is the whole transaction.
"""

from typing import Sequence

from profit_pilot.logger import get_logger
from profit_pilot.models.ledger import LedgerSnapshot, Partner, Sale, Settlement
from profit_pilot.services.storage.interface import LedgerStoreInterface, NotFoundError

logger = get_logger(__name__)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Keeps one LedgerSnapshot per owner in a dict."""

    def __init__(self) -> None:
        self._ledgers: dict[str, LedgerSnapshot] = {}

    async def load(self, owner_id: str) -> LedgerSnapshot:
        try:
            return self._ledgers[owner_id]
        except KeyError:
            raise NotFoundError(f"No ledger for owner: {owner_id}") from None

    async def save(
        self,
        owner_id: str,
        sales: Sequence[Sale],
        partners: Sequence[Partner],
        settlements: Sequence[Settlement],
    ) -> bool:
        self._ledgers[owner_id] = LedgerSnapshot(
            sales=tuple(sales),
            partners=tuple(partners),
            settlements=tuple(settlements),
        )
        logger.debug(
            "ledger_saved",
            owner_id=owner_id,
            sales=len(sales),
            partners=len(partners),
            settlements=len(settlements),
        )
        return True

    def owners(self) -> list[str]:
        return sorted(self._ledgers)
