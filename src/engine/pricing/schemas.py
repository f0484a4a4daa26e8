"""Pricing result models."""

from pydantic import BaseModel, Field

from models.quote import Quote


class PricingResult(BaseModel):
    """Outcome of a quote calculation: a quote, or the reasons there is none."""

    transport_request_id: int
    quote: Quote | None = Field(None, description="Calculated quote (None when rejected)")
    errors: list[str] = Field(default_factory=list, description="Reasons the calculation was rejected")

    @property
    def ok(self) -> bool:
        return self.quote is not None and not self.errors

    @property
    def error(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None

    @classmethod
    def rejected(cls, transport_request_id: int, *errors: str) -> "PricingResult":
        return cls(transport_request_id=transport_request_id, errors=list(errors))
