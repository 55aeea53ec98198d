"""Ledger analytics package."""

from profit_pilot.queries.analytics import (
    filter_and_sort_sales,
    monthly_history,
    partner_cuts,
    partner_standings,
    profit_overview,
    summarize_profit,
)

__all__ = [
    "filter_and_sort_sales",
    "monthly_history",
    "partner_cuts",
    "partner_standings",
    "profit_overview",
    "summarize_profit",
]
