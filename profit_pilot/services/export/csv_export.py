"""
Sales CSV export.

One row per sale, followed by one "cut" column per partner showing
that partner's share of the sale (0.00 where they are not assigned).
"""

import csv
import io
from datetime import timezone, tzinfo
from typing import Sequence

from profit_pilot.models.ledger import Partner, Sale
from profit_pilot.models.money import format_percentage, quantize_money
from profit_pilot.queries import partner_cuts

BASE_HEADERS = [
    "ID",
    "Date",
    "Name",
    "Description",
    "Purchase Price",
    "Sold Price",
    "Profit",
]


class ExportError(Exception):
    """Nothing to export, or the export could not be produced."""
    pass


def export_sales_csv(
    sales: Sequence[Sale],
    partners: Sequence[Partner],
    tz: tzinfo = timezone.utc,
) -> str:
    """
    Render sales as CSV text.

    Rows keep the order of ``sales``; filter and sort before calling.

    Raises:
        ExportError: If there are no sales
    """
    if not sales:
        raise ExportError("No data to export.")

    headers = BASE_HEADERS + [
        f"{partner.name} ({format_percentage(partner.percentage)}%) Cut"
        for partner in partners
    ]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)

    for sale in sales:
        cuts = partner_cuts(sale, partners)
        writer.writerow(
            [
                str(sale.id),
                sale.timestamp.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S"),
                sale.name,
                sale.description or "",
                f"{quantize_money(sale.purchase_price):.2f}",
                f"{quantize_money(sale.sold_price):.2f}",
                f"{quantize_money(sale.profit):.2f}",
                *(f"{quantize_money(cuts[partner.id]):.2f}" for partner in partners),
            ]
        )

    return buffer.getvalue()
