"""Percentage-of-base surcharges.

A surcharge is a predicate on the request plus a percentage taken from the
pricing rule. New surcharge types are added to SURCHARGES; their position in
the tuple is their position on the quote.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from models.reference import PricingRule
from models.transport_request import TransportRequest

WEEKEND_DAYS = (5, 6)  # Saturday, Sunday


@dataclass(frozen=True)
class SurchargeContext:
    """Inputs a surcharge predicate may look at besides the request."""

    as_of: datetime
    express_window: timedelta


@dataclass(frozen=True)
class Surcharge:
    key: str
    description: str
    applies: Callable[[TransportRequest, SurchargeContext], bool]
    percent: Callable[[PricingRule], Decimal]


def is_weekend_pickup(request: TransportRequest, context: SurchargeContext) -> bool:
    if request.pickup_date_from is None:
        return False
    return request.pickup_date_from.weekday() in WEEKEND_DAYS


def is_express_pickup(request: TransportRequest, context: SurchargeContext) -> bool:
    """Pickup requested less than the express window after the reference time."""
    if request.pickup_date_from is None:
        return False
    return _naive_utc(request.pickup_date_from) - _naive_utc(context.as_of) < context.express_window


def _naive_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC already
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


SURCHARGES: tuple[Surcharge, ...] = (
    Surcharge(
        key="weekend",
        description="Weekend surcharge",
        applies=is_weekend_pickup,
        percent=lambda rule: rule.weekend_surcharge_percent,
    ),
    Surcharge(
        key="express",
        description="Express surcharge",
        applies=is_express_pickup,
        percent=lambda rule: rule.express_surcharge_percent,
    ),
)
