from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class QuoteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class QuoteLineItem(BaseModel):
    """One itemized component of a quote. line_order 0 is the base cost."""

    description: str
    calculation: str = Field("", description="Human-readable calculation, e.g. '400 km x 1.50 EUR/km'")
    amount: Decimal
    line_order: int = Field(0, ge=0)

    @property
    def is_surcharge(self) -> bool:
        return self.line_order > 0 and self.amount > 0


class Quote(BaseModel):
    """A priced offer to the customer for a transport request."""

    id: int | None = None
    transport_request_id: int
    status: QuoteStatus = QuoteStatus.PENDING

    base_price: Decimal = Field(ge=0)
    surcharge_total: Decimal = Field(Decimal("0.00"), ge=0)
    total_price: Decimal = Field(ge=0)
    currency: str = "EUR"

    line_items: list[QuoteLineItem] = Field(default_factory=list)

    created_at: datetime | None = None
    valid_until: datetime | None = None
    accepted_at: datetime | None = None
    declined_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.valid_until is not None and self.valid_until < now

    @property
    def formatted_total_price(self) -> str:
        return f"{self.total_price:.2f} {self.currency}"
