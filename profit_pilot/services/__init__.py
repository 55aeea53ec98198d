"""Services package."""

from profit_pilot.services.export import ExportError, export_sales_csv
from profit_pilot.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Export
    "ExportError",
    "export_sales_csv",
    # Storage services
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
]
