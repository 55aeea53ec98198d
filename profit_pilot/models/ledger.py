"""
Core Data Models for Profit Pilot

These models define the records kept in a partner ledger:
1. Sale - a resale transaction and the profit it produced
2. Partner - a revenue-share participant
3. Settlement - a payment made to a partner
4. LedgerSnapshot - one owner's three collections, as loaded and saved

DESIGN DECISION: Every model is frozen. Sales and settlements are
append-only, and a partner deletion produces NEW collections rather than
editing records in place. Unchanged records keep their identity, which
makes "what changed" a cheap identity check for callers.

Partner balances are NOT stored. They are derived on demand by the
settlement engine.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from profit_pilot.models.money import MAX_PERCENTAGE_PLACES, decimal_places


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps in stored data are taken to be UTC
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Sale(BaseModel):
    """
    A recorded resale transaction.

    CRITICAL: profit is computed once, at creation, and stored.
    It is never recomputed from the prices afterwards.

    partner_ids has set semantics: duplicates are dropped, order carries
    no meaning. It only ever shrinks (when a partner is deleted).
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique sale ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What was sold"
    )
    description: Optional[str] = Field(
        default=None,
        description="Free-text notes about the sale"
    )
    purchase_price: Decimal = Field(
        ...,
        ge=0,
        description="What the item cost"
    )
    sold_price: Decimal = Field(
        ...,
        ge=0,
        description="What the item sold for"
    )
    profit: Decimal = Field(
        ...,
        ge=0,
        description="sold_price - purchase_price, fixed at creation"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the sale was recorded (UTC)"
    )
    partner_ids: tuple[UUID, ...] = Field(
        default_factory=tuple,
        description="Partners sharing this sale's profit"
    )

    @field_validator('description')
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator('partner_ids')
    @classmethod
    def drop_duplicate_partners(cls, v: tuple[UUID, ...]) -> tuple[UUID, ...]:
        return tuple(dict.fromkeys(v))

    @field_validator('timestamp')
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def has_partner(self, partner_id: UUID) -> bool:
        return partner_id in self.partner_ids


class Partner(BaseModel):
    """
    A revenue-share participant.

    The sum of percentages across one owner's partners must never exceed
    100. That check needs the other partners, so it lives in the engine,
    not here.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique partner ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Partner name"
    )
    percentage: Decimal = Field(
        ...,
        gt=0,
        le=100,
        description="Share of profit on each assigned sale, in percent"
    )

    @field_validator('percentage')
    @classmethod
    def limit_precision(cls, v: Decimal) -> Decimal:
        if decimal_places(v) > MAX_PERCENTAGE_PLACES:
            raise ValueError(
                f"Percentage can have at most {MAX_PERCENTAGE_PLACES} decimal places"
            )
        return v


class Settlement(BaseModel):
    """A payment made to a partner, reducing what they are owed."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique settlement ID"
    )
    partner_id: UUID = Field(
        ...,
        description="Partner who was paid"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount paid out"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the payment was recorded (UTC)"
    )

    @field_validator('timestamp')
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    One owner's complete ledger.

    This is the unit of persistence: the store loads and saves all three
    collections together so a reader never sees half of a mutation.
    """
    model_config = ConfigDict(frozen=True)

    sales: tuple[Sale, ...] = Field(default_factory=tuple)
    partners: tuple[Partner, ...] = Field(default_factory=tuple)
    settlements: tuple[Settlement, ...] = Field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "LedgerSnapshot":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.sales or self.partners or self.settlements)

    def find_partner(self, partner_id: UUID) -> Optional[Partner]:
        for partner in self.partners:
            if partner.id == partner_id:
                return partner
        return None
