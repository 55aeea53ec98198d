"""
Settlement Engine

The only part of Profit Pilot with hard rules:
1. Partner percentages never sum past 100
2. A partner is never paid more than they are owed
3. Deleting a partner cascades across all three collections at once

DESIGN DECISION: The engine is pure. It works on immutable snapshots,
never performs I/O and never mutates its inputs. Expected failures come
back as rejected Outcomes (see models.results); nothing here raises for
bad user input.

Ids and timestamps are assigned here, never by the caller. Both factories
are injectable so tests can pin them.
"""

from datetime import datetime
from decimal import Decimal, localcontext
from typing import Callable, Iterable, Optional, Sequence
from uuid import UUID, uuid4

from profit_pilot.models.ledger import Partner, Sale, Settlement, utc_now
from profit_pilot.models.money import (
    MAX_AMOUNT,
    MAX_PERCENTAGE_PLACES,
    NumberLike,
    decimal_places,
    format_money,
    format_percentage,
    quantize_money,
    to_decimal,
)
from profit_pilot.models.results import Outcome, RejectionReason

MAX_PERCENTAGE = Decimal(100)
MAX_NAME_LENGTH = 200

# Wide enough that profit * percentage / 100 is always exact
_BALANCE_PRECISION = 60


def partner_share(profit: Decimal, percentage: Decimal) -> Decimal:
    """A partner's cut of one sale's profit, unrounded."""
    with localcontext() as ctx:
        ctx.prec = _BALANCE_PRECISION
        return profit * percentage / 100


class SettlementEngine:
    """
    Computes partner balances and validates ledger mutations.

    Usage:
        engine = SettlementEngine()
        outcome = engine.validate_new_partner(partners, "Alice", 60)
        if outcome.ok:
            partners = (*partners, outcome.value)
    """

    def __init__(
        self,
        id_factory: Callable[[], UUID] = uuid4,
        clock: Callable[[], datetime] = utc_now,
        currency_symbol: str = "$",
    ):
        self._new_id = id_factory
        self._now = clock
        self._currency_symbol = currency_symbol

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def compute_balances(
        self,
        sales: Iterable[Sale],
        partners: Iterable[Partner],
        settlements: Iterable[Settlement],
    ) -> dict[UUID, Decimal]:
        """
        Derive what each partner is currently owed.

        Every known partner appears in the result, starting from zero.
        Sale references to partners that no longer exist are skipped, and
        settlements for unknown partners are ignored.

        Arithmetic is exact, so the result does not depend on the order
        of any input sequence.
        """
        partners_by_id = {partner.id: partner for partner in partners}
        balances = {partner_id: Decimal(0) for partner_id in partners_by_id}

        with localcontext() as ctx:
            ctx.prec = _BALANCE_PRECISION

            for sale in sales:
                for partner_id in sale.partner_ids:
                    partner = partners_by_id.get(partner_id)
                    if partner is None:
                        continue
                    balances[partner_id] += partner_share(sale.profit, partner.percentage)

            for settlement in settlements:
                if settlement.partner_id in balances:
                    balances[settlement.partner_id] -= settlement.amount

        return balances

    def total_allocated(self, partners: Iterable[Partner]) -> Decimal:
        """Sum of partner percentages, exact."""
        with localcontext() as ctx:
            ctx.prec = _BALANCE_PRECISION
            return sum((partner.percentage for partner in partners), Decimal(0))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_new_partner(
        self,
        existing_partners: Sequence[Partner],
        name: Optional[str],
        percentage: Optional[NumberLike],
    ) -> Outcome[Partner]:
        """
        Check a new partner against the 100% allocation ceiling.

        On success the returned Partner has a freshly generated id.
        """
        clean_name = self._clean_name(name)
        if not clean_name:
            return Outcome[Partner].reject(
                RejectionReason.INVALID_NAME,
                "Partner name cannot be empty.",
            )
        if len(clean_name) > MAX_NAME_LENGTH:
            return Outcome[Partner].reject(
                RejectionReason.INVALID_NAME,
                f"Partner name must be at most {MAX_NAME_LENGTH} characters.",
            )

        pct = to_decimal(percentage)
        if pct is None or pct <= 0 or pct > MAX_PERCENTAGE:
            return Outcome[Partner].reject(
                RejectionReason.INVALID_PERCENTAGE,
                "Percentage must be a number greater than 0 and at most 100.",
            )
        if decimal_places(pct) > MAX_PERCENTAGE_PLACES:
            return Outcome[Partner].reject(
                RejectionReason.INVALID_PERCENTAGE,
                f"Percentage can have at most {MAX_PERCENTAGE_PLACES} decimal places.",
            )

        current_total = self.total_allocated(existing_partners)
        with localcontext() as ctx:
            ctx.prec = _BALANCE_PRECISION
            exceeded = current_total + pct > MAX_PERCENTAGE
        if exceeded:
            return Outcome[Partner].reject(
                RejectionReason.ALLOCATION_EXCEEDED,
                "Adding this partner would exceed 100%. "
                f"Current total: {format_percentage(current_total)}%",
                current_total=current_total,
            )

        return Outcome[Partner].accept(
            Partner(id=self._new_id(), name=clean_name, percentage=pct)
        )

    def validate_new_sale(
        self,
        name: Optional[str],
        purchase_price: Optional[NumberLike],
        sold_price: Optional[NumberLike],
        description: Optional[str] = None,
        partner_ids: Iterable[UUID] = (),
    ) -> Outcome[Sale]:
        """
        Check a sale and derive its profit.

        Prices are rounded to cents before the margin check, so profit is
        never negative.
        """
        clean_name = self._clean_name(name)
        if not clean_name:
            return Outcome[Sale].reject(
                RejectionReason.INVALID_NAME,
                "Sale name cannot be empty.",
            )
        if len(clean_name) > MAX_NAME_LENGTH:
            return Outcome[Sale].reject(
                RejectionReason.INVALID_NAME,
                f"Sale name must be at most {MAX_NAME_LENGTH} characters.",
            )

        purchase = to_decimal(purchase_price)
        sold = to_decimal(sold_price)
        if purchase is None or sold is None or purchase < 0 or sold < 0:
            return Outcome[Sale].reject(
                RejectionReason.INVALID_PRICE,
                "Prices must be valid non-negative numbers.",
            )
        if purchase > MAX_AMOUNT or sold > MAX_AMOUNT:
            return Outcome[Sale].reject(
                RejectionReason.INVALID_PRICE,
                f"Prices cannot exceed {format_money(MAX_AMOUNT, self._currency_symbol)}.",
                max_amount=MAX_AMOUNT,
            )

        purchase = quantize_money(purchase)
        sold = quantize_money(sold)
        if sold < purchase:
            return Outcome[Sale].reject(
                RejectionReason.INVALID_MARGIN,
                "Sold price cannot be less than purchase price.",
            )

        return Outcome[Sale].accept(
            Sale(
                id=self._new_id(),
                name=clean_name,
                description=description,
                purchase_price=purchase,
                sold_price=sold,
                profit=sold - purchase,
                timestamp=self._now(),
                partner_ids=tuple(partner_ids),
            )
        )

    def validate_settlement(
        self,
        partner: Optional[Partner],
        current_balance: Decimal,
        requested_amount: Optional[NumberLike],
    ) -> Outcome[Settlement]:
        """
        Check a payout against what the partner is owed.

        The amount is rounded to cents and must not exceed the exact
        current balance. A single payment is capped at MAX_AMOUNT.
        """
        if partner is None:
            return Outcome[Settlement].reject(
                RejectionReason.UNKNOWN_PARTNER,
                "Partner does not exist.",
            )

        amount = to_decimal(requested_amount)
        if amount is not None and amount > MAX_AMOUNT:
            return Outcome[Settlement].reject(
                RejectionReason.INVALID_AMOUNT,
                "A single payment cannot exceed "
                f"{format_money(MAX_AMOUNT, self._currency_symbol)}.",
                max_amount=MAX_AMOUNT,
            )
        if amount is not None and amount > 0:
            amount = quantize_money(amount)
        if amount is None or amount <= 0:
            return Outcome[Settlement].reject(
                RejectionReason.INVALID_AMOUNT,
                "Please enter a valid positive amount.",
            )

        if amount > current_balance:
            owed = quantize_money(current_balance)
            return Outcome[Settlement].reject(
                RejectionReason.EXCEEDS_OWED,
                "Cannot settle more than the owed amount of "
                f"{format_money(owed, self._currency_symbol)}.",
                owed=owed,
            )

        return Outcome[Settlement].accept(
            Settlement(
                id=self._new_id(),
                partner_id=partner.id,
                amount=amount,
                timestamp=self._now(),
            )
        )

    # -------------------------------------------------------------------------
    # Cascading deletion
    # -------------------------------------------------------------------------

    def apply_partner_deletion(
        self,
        sales: Sequence[Sale],
        settlements: Sequence[Settlement],
        partners: Sequence[Partner],
        partner_id: UUID,
    ) -> tuple[tuple[Sale, ...], tuple[Settlement, ...], tuple[Partner, ...]]:
        """
        Remove a partner and everything that points at it.

        - the partner itself is dropped
        - all of its settlements are dropped (irreversibly)
        - its id is stripped from every sale

        Sales that never referenced the partner are returned as the same
        objects. Deleting an unknown id returns equal collections.
        """
        remaining_partners = tuple(p for p in partners if p.id != partner_id)
        remaining_settlements = tuple(
            s for s in settlements if s.partner_id != partner_id
        )
        cleaned_sales = tuple(
            self._strip_partner(sale, partner_id) if sale.has_partner(partner_id) else sale
            for sale in sales
        )
        return cleaned_sales, remaining_settlements, remaining_partners

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _strip_partner(sale: Sale, partner_id: UUID) -> Sale:
        return sale.model_copy(
            update={
                "partner_ids": tuple(pid for pid in sale.partner_ids if pid != partner_id)
            }
        )

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        if name is None:
            return ""
        if not isinstance(name, str):
            raise TypeError(f"Expected a string name, got {type(name).__name__}")
        return name.strip()
