"""
Query Models

Read-side shapes: how a sales listing is filtered and sorted, and the
summaries computed over it. None of these are persisted.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from profit_pilot.models.ledger import Partner


class SaleSortOption(str, Enum):
    """Orderings offered for the sales history."""
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    PROFIT_DESC = "profit_desc"
    PROFIT_ASC = "profit_asc"
    SOLD_DESC = "sold_desc"
    SOLD_ASC = "sold_asc"


class SalesQuery(BaseModel):
    """
    Filter and ordering for a sales listing.

    Both dates are inclusive calendar days in the caller's timezone.
    """
    model_config = ConfigDict(frozen=True)

    start_date: Optional[date] = Field(
        default=None,
        description="Only sales on or after this day"
    )
    end_date: Optional[date] = Field(
        default=None,
        description="Only sales on or before this day"
    )
    sort: SaleSortOption = Field(
        default=SaleSortOption.DATE_DESC,
        description="Ordering of the result"
    )

    @model_validator(mode='after')
    def validate_range(self) -> 'SalesQuery':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class ProfitSummary(BaseModel):
    """Totals over a set of sales."""
    model_config = ConfigDict(frozen=True)

    profit: Decimal = Decimal(0)
    revenue: Decimal = Decimal(0)
    sale_count: int = Field(default=0, ge=0)


class ProfitOverview(BaseModel):
    """Dashboard figures: today so far and the month so far."""
    model_config = ConfigDict(frozen=True)

    today: ProfitSummary
    this_month: ProfitSummary


class MonthlyTotals(BaseModel):
    """Profit and revenue for one calendar month."""
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(ge=1, le=12)
    label: str = Field(description="Short month name, e.g. 'Jan'")
    profit: Decimal = Decimal(0)
    revenue: Decimal = Decimal(0)


class PartnerStanding(BaseModel):
    """
    A partner together with what they are currently owed.

    suggested_settlement is the owed amount rounded DOWN to cents, so
    paying it out is always accepted.
    """
    model_config = ConfigDict(frozen=True)

    partner: Partner
    owed: Decimal
    suggested_settlement: Decimal

    @property
    def can_settle(self) -> bool:
        return self.suggested_settlement > 0
