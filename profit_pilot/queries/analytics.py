"""
Ledger Analytics

Deterministic read-side calculations over a ledger snapshot:
- sales listing with date filter and ordering
- today / this-month profit and revenue
- month-by-month history (the data behind the sales chart)
- per-sale partner cuts and per-partner standings

Everything here is pure. Day and month boundaries are taken in the
timezone passed by the caller, UTC by default.
"""

import calendar
from datetime import datetime, time, timedelta, timezone, tzinfo
from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Mapping, Optional, Sequence
from uuid import UUID

from profit_pilot.engine import partner_share
from profit_pilot.models.ledger import Partner, Sale, utc_now
from profit_pilot.models.money import CENT
from profit_pilot.models.queries import (
    MonthlyTotals,
    PartnerStanding,
    ProfitOverview,
    ProfitSummary,
    SaleSortOption,
    SalesQuery,
)

_SORT_KEYS = {
    SaleSortOption.DATE_DESC: (lambda s: s.timestamp, True),
    SaleSortOption.DATE_ASC: (lambda s: s.timestamp, False),
    SaleSortOption.PROFIT_DESC: (lambda s: s.profit, True),
    SaleSortOption.PROFIT_ASC: (lambda s: s.profit, False),
    SaleSortOption.SOLD_DESC: (lambda s: s.sold_price, True),
    SaleSortOption.SOLD_ASC: (lambda s: s.sold_price, False),
}


def filter_and_sort_sales(
    sales: Iterable[Sale],
    query: Optional[SalesQuery] = None,
    tz: tzinfo = timezone.utc,
) -> list[Sale]:
    """
    Apply a SalesQuery to a collection of sales.

    start_date counts from midnight, end_date through the last
    microsecond of that day.
    """
    query = query or SalesQuery()
    selected = list(sales)

    if query.start_date:
        start = datetime.combine(query.start_date, time.min, tzinfo=tz)
        selected = [s for s in selected if s.timestamp >= start]
    if query.end_date:
        end = datetime.combine(query.end_date, time.max, tzinfo=tz)
        selected = [s for s in selected if s.timestamp <= end]

    key, reverse = _SORT_KEYS[query.sort]
    selected.sort(key=key, reverse=reverse)
    return selected


def summarize_profit(sales: Iterable[Sale]) -> ProfitSummary:
    """Total profit, revenue and count."""
    profit = Decimal(0)
    revenue = Decimal(0)
    count = 0
    for sale in sales:
        profit += sale.profit
        revenue += sale.sold_price
        count += 1
    return ProfitSummary(profit=profit, revenue=revenue, sale_count=count)


def profit_overview(
    sales: Sequence[Sale],
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> ProfitOverview:
    """Profit and revenue for the local calendar day and month containing ``now``."""
    local_now = (now or utc_now()).astimezone(tz)
    today = local_now.date()
    today_start = datetime.combine(today, time.min, tzinfo=tz)
    today_end = today_start + timedelta(days=1)
    month_start = datetime.combine(today.replace(day=1), time.min, tzinfo=tz)
    next_year, next_month = _shift_month(today.year, today.month, 1)
    month_end = datetime(next_year, next_month, 1, tzinfo=tz)

    return ProfitOverview(
        today=summarize_profit(s for s in sales if today_start <= s.timestamp < today_end),
        this_month=summarize_profit(s for s in sales if month_start <= s.timestamp < month_end),
    )


def monthly_history(
    sales: Iterable[Sale],
    now: Optional[datetime] = None,
    months: int = 6,
    tz: tzinfo = timezone.utc,
) -> list[MonthlyTotals]:
    """
    Profit and revenue per calendar month, oldest first.

    Covers the current month and the ``months - 1`` before it. Months
    without sales are present with zero totals.
    """
    if months < 1:
        raise ValueError("months must be at least 1")

    local_now = (now or utc_now()).astimezone(tz)
    buckets: dict[tuple[int, int], list[Decimal]] = {}
    for offset in range(months - 1, -1, -1):
        buckets[_shift_month(local_now.year, local_now.month, -offset)] = [
            Decimal(0),
            Decimal(0),
        ]

    for sale in sales:
        local_ts = sale.timestamp.astimezone(tz)
        bucket = buckets.get((local_ts.year, local_ts.month))
        if bucket is None:
            continue
        bucket[0] += sale.profit
        bucket[1] += sale.sold_price

    return [
        MonthlyTotals(
            year=year,
            month=month,
            label=calendar.month_abbr[month] or str(month),
            profit=profit,
            revenue=revenue,
        )
        for (year, month), (profit, revenue) in buckets.items()
    ]


def partner_cuts(sale: Sale, partners: Iterable[Partner]) -> dict[UUID, Decimal]:
    """Each partner's cut of one sale, zero where they are not assigned."""
    return {
        partner.id: (
            partner_share(sale.profit, partner.percentage)
            if sale.has_partner(partner.id)
            else Decimal(0)
        )
        for partner in partners
    }


def partner_standings(
    partners: Iterable[Partner],
    balances: Mapping[UUID, Decimal],
) -> list[PartnerStanding]:
    """Pair every partner with their owed balance, in partner order."""
    standings = []
    for partner in partners:
        owed = balances.get(partner.id, Decimal(0))
        suggested = owed.quantize(CENT, rounding=ROUND_DOWN) if owed > 0 else Decimal("0.00")
        standings.append(
            PartnerStanding(partner=partner, owed=owed, suggested_settlement=suggested)
        )
    return standings


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
