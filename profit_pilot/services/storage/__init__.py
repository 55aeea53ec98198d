"""
Storage Services Package

Provides the abstract ledger store interface and its implementations.
Local JSON files are the default backend; in-memory and Google Sheets
are swappable through configuration.
"""

from profit_pilot.services.storage.interface import (
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from profit_pilot.services.storage.json_file import JsonFileLedgerStore
from profit_pilot.services.storage.memory import InMemoryLedgerStore
from profit_pilot.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interface
    "LedgerStoreInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
]
