"""Export services package."""

from profit_pilot.services.export.csv_export import (
    BASE_HEADERS,
    ExportError,
    export_sales_csv,
)

__all__ = ["BASE_HEADERS", "ExportError", "export_sales_csv"]
