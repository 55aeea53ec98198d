"""
Data Models Package

This package contains the Pydantic models used across Profit Pilot.
All ledger data flowing through the system must conform to these schemas.
"""

from profit_pilot.models.ledger import (
    LedgerSnapshot,
    Partner,
    Sale,
    Settlement,
    utc_now,
)
from profit_pilot.models.money import (
    CENT,
    MAX_AMOUNT,
    MAX_PERCENTAGE_PLACES,
    decimal_places,
    format_money,
    format_percentage,
    quantize_money,
    to_decimal,
)
from profit_pilot.models.queries import (
    MonthlyTotals,
    PartnerStanding,
    ProfitOverview,
    ProfitSummary,
    SaleSortOption,
    SalesQuery,
)
from profit_pilot.models.results import (
    Outcome,
    Rejection,
    RejectionReason,
)

__all__ = [
    # Ledger models
    "LedgerSnapshot",
    "Partner",
    "Sale",
    "Settlement",
    "utc_now",
    # Money helpers
    "CENT",
    "MAX_AMOUNT",
    "MAX_PERCENTAGE_PLACES",
    "decimal_places",
    "format_money",
    "format_percentage",
    "quantize_money",
    "to_decimal",
    # Query models
    "MonthlyTotals",
    "PartnerStanding",
    "ProfitOverview",
    "ProfitSummary",
    "SaleSortOption",
    "SalesQuery",
    # Outcomes
    "Outcome",
    "Rejection",
    "RejectionReason",
]
