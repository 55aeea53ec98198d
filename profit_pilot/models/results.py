"""
Validation outcomes.

DESIGN DECISION: Expected validation failures are VALUES, not exceptions.
Every engine check returns an Outcome that is either accepted (carries the
new record) or rejected (carries a Rejection with a machine-readable reason
and a message fit to show the user).

Exceptions are reserved for programming errors and storage failures.
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RejectionReason(str, Enum):
    """Why a ledger mutation was refused."""
    INVALID_NAME = "invalid_name"
    INVALID_PERCENTAGE = "invalid_percentage"
    ALLOCATION_EXCEEDED = "allocation_exceeded"
    INVALID_PRICE = "invalid_price"
    INVALID_MARGIN = "invalid_margin"
    INVALID_AMOUNT = "invalid_amount"
    EXCEEDS_OWED = "exceeds_owed"
    UNKNOWN_PARTNER = "unknown_partner"

    @property
    def category(self) -> str:
        """'reference' for dangling partner references, else 'validation'."""
        if self is RejectionReason.UNKNOWN_PARTNER:
            return "reference"
        return "validation"


class Rejection(BaseModel):
    """A refused mutation."""
    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    message: str = Field(
        ...,
        description="Human-readable explanation"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Values the caller may want to display (current total, owed amount)"
    )


T = TypeVar("T")


class Outcome(BaseModel, Generic[T]):
    """
    Result of a validated ledger operation.

    Exactly one of ``value`` and ``rejection`` is set.
    """
    model_config = ConfigDict(frozen=True)

    value: Optional[T] = None
    rejection: Optional[Rejection] = None

    @model_validator(mode='after')
    def exactly_one_side(self) -> 'Outcome':
        if (self.value is None) == (self.rejection is None):
            raise ValueError("Outcome must carry either a value or a rejection")
        return self

    @classmethod
    def accept(cls, value: T) -> 'Outcome[T]':
        return cls(value=value)

    @classmethod
    def reject(
        cls,
        reason: RejectionReason,
        message: str,
        **details: Any,
    ) -> 'Outcome[T]':
        return cls(rejection=Rejection(reason=reason, message=message, details=details))

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @property
    def reason(self) -> Optional[RejectionReason]:
        return self.rejection.reason if self.rejection else None
