"""
Abstract Ledger Store Interface

DESIGN DECISION: We define an abstract interface for ledger persistence.
This allows us to:
1. Swap local JSON files for Google Sheets (or a real database) later
2. Use in-memory storage for testing
3. Keep the settlement engine completely free of I/O

The interface is intentionally tiny. A ledger is always read and written
whole, per owner, so a reader never observes half of a mutation.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from profit_pilot.models.ledger import LedgerSnapshot, Partner, Sale, Settlement


class LedgerStoreInterface(ABC):
    """
    Abstract interface for owner-keyed ledger storage.

    Any storage implementation (JSON files, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load(self, owner_id: str) -> LedgerSnapshot:
        """
        Load an owner's sales, partners and settlements.

        Args:
            owner_id: Identity of the ledger owner

        Returns:
            The owner's full ledger, collections in stored order

        Raises:
            NotFoundError: If nothing has ever been saved for this owner
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def save(
        self,
        owner_id: str,
        sales: Sequence[Sale],
        partners: Sequence[Partner],
        settlements: Sequence[Settlement],
    ) -> bool:
        """
        Replace an owner's three collections.

        The replacement must appear atomic to other readers of the
        same owner.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the write fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """No ledger stored for this owner."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
