"""
Quote calculator.

Prices a transport request against the pricing rules in a ReferenceData
snapshot:
1. Base - max(distance x rate, minimum price)
2. Surcharges - percentage of base, in the order defined in SURCHARGES
3. Total - exact sum of the rounded line items

Problems with the input are collected and returned, never raised.
"""

from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from common.config import config
from common.logging import get_logger
from engine.pricing.schemas import PricingResult
from engine.pricing.surcharges import SURCHARGES, SurchargeContext
from models.quote import Quote, QuoteLineItem, QuoteStatus
from models.reference import PricingRule, ReferenceData
from models.transport_request import TransportRequest

logger = get_logger(__name__)

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PricingCalculator:
    """Calculates quotes. Holds no state between calls."""

    def __init__(
        self,
        reference_data: ReferenceData,
        currency: str | None = None,
        express_window_hours: int | None = None,
        quote_validity_hours: int | None = None,
    ):
        self.reference_data = reference_data
        self.currency = currency or config.currency
        self.express_window = timedelta(
            hours=config.express_window_hours if express_window_hours is None else express_window_hours
        )
        self.quote_validity = timedelta(
            hours=config.quote_validity_hours if quote_validity_hours is None else quote_validity_hours
        )

    def _validate(self, request: TransportRequest) -> list[str]:
        errors: list[str] = []
        if request.distance_km is None:
            errors.append("Distance must be calculated before pricing")
        elif request.distance_km < 0:
            errors.append(f"Distance must not be negative (got {request.distance_km} km)")
        return errors

    def _base_line(self, request: TransportRequest, rule: PricingRule) -> QuoteLineItem:
        calculated = request.distance_km * rule.rate_per_km
        base_price = round_money(max(calculated, rule.minimum_price))

        calculation = f"{request.distance_km} km x {rule.rate_per_km} {self.currency}/km"
        if calculated < rule.minimum_price:
            calculation += f" (minimum price {rule.minimum_price} {self.currency})"

        return QuoteLineItem(
            description="Base transport",
            calculation=calculation,
            amount=base_price,
            line_order=0,
        )

    def _surcharge_lines(
        self, request: TransportRequest, rule: PricingRule, base_price: Decimal, as_of: datetime
    ) -> list[QuoteLineItem]:
        context = SurchargeContext(as_of=as_of, express_window=self.express_window)
        lines: list[QuoteLineItem] = []

        for surcharge in SURCHARGES:
            percent = surcharge.percent(rule)
            if percent <= 0 or not surcharge.applies(request, context):
                continue
            lines.append(
                QuoteLineItem(
                    description=surcharge.description,
                    calculation=f"{percent}% surcharge",
                    amount=round_money(base_price * percent / Decimal(100)),
                    line_order=len(lines) + 1,
                )
            )

        return lines

    def calculate(self, request: TransportRequest, now: datetime | None = None) -> PricingResult:
        """Price a request. Returns a PricingResult holding either the quote or the errors."""
        errors = self._validate(request)
        if errors:
            logger.warning(f"[Pricing] Request {request.id} rejected: {errors}")
            return PricingResult.rejected(request.id, *errors)

        rule = self.reference_data.pricing_rule_for(request)
        if rule is None:
            vehicle = request.vehicle_type.value if request.vehicle_type else "unspecified"
            error = f"No pricing rule found for vehicle type: {vehicle}"
            logger.warning(f"[Pricing] Request {request.id} rejected: {error}")
            return PricingResult.rejected(request.id, error)

        as_of = now or request.created_at or datetime.now(UTC)

        base_line = self._base_line(request, rule)
        surcharge_lines = self._surcharge_lines(request, rule, base_line.amount, as_of)

        surcharge_total = sum((line.amount for line in surcharge_lines), Decimal("0.00"))
        total_price = base_line.amount + surcharge_total

        amounts = [base_line.amount, surcharge_total, total_price]
        if any(amount < 0 for amount in amounts):
            error = f"Calculated prices must not be negative: {amounts}"
            logger.error(f"[Pricing] Request {request.id} rejected: {error}")
            return PricingResult.rejected(request.id, error)

        quote = Quote(
            transport_request_id=request.id,
            status=QuoteStatus.PENDING,
            base_price=base_line.amount,
            surcharge_total=surcharge_total,
            total_price=total_price,
            currency=self.currency,
            line_items=[base_line, *surcharge_lines],
            created_at=as_of,
            valid_until=as_of + self.quote_validity,
        )

        logger.info(
            f"[Pricing] Request {request.id} priced with rule '{rule.vehicle_type}': "
            f"base={quote.base_price} surcharges={quote.surcharge_total} total={quote.formatted_total_price}"
        )
        return PricingResult(transport_request_id=request.id, quote=quote)
