"""Tests for quote calculation."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from engine.pricing.calculator import PricingCalculator, round_money
from models.quote import QuoteStatus
from models.reference import PricingRule, ReferenceData
from models.transport_request import TransportRequest, VehicleBookingCargo, VehicleRequirement

# Friday evening; the next day is a Saturday
NOW = datetime(2026, 10, 16, 20, 0, tzinfo=UTC)
SATURDAY_MORNING = datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
NEXT_WEDNESDAY = datetime(2026, 10, 21, 8, 0, tzinfo=UTC)


def make_rule(vehicle_type: str = "transporter", **overrides) -> PricingRule:
    fields = {
        "vehicle_type": vehicle_type,
        "rate_per_km": Decimal("1.50"),
        "minimum_price": Decimal("50.00"),
        "weekend_surcharge_percent": Decimal("20"),
        "express_surcharge_percent": Decimal("30"),
    }
    fields.update(overrides)
    return PricingRule(**fields)


def make_request(**overrides) -> TransportRequest:
    fields = {
        "id": 1,
        "vehicle_type": VehicleRequirement.TRANSPORTER,
        "distance_km": Decimal("400"),
        "pickup_date_from": NEXT_WEDNESDAY,
    }
    fields.update(overrides)
    return TransportRequest(**fields)


def calculator(*rules: PricingRule) -> PricingCalculator:
    return PricingCalculator(ReferenceData(pricing_rules=rules or (make_rule(),)))


# --- Scenario ---


def test_weekend_and_express_scenario():
    request = make_request(pickup_date_from=SATURDAY_MORNING)
    result = calculator().calculate(request, now=NOW)

    assert result.ok
    quote = result.quote
    assert quote.status == QuoteStatus.PENDING
    assert quote.base_price == Decimal("600.00")
    assert quote.surcharge_total == Decimal("300.00")
    assert quote.total_price == Decimal("900.00")
    assert [(li.description, li.amount, li.line_order) for li in quote.line_items] == [
        ("Base transport", Decimal("600.00"), 0),
        ("Weekend surcharge", Decimal("120.00"), 1),
        ("Express surcharge", Decimal("180.00"), 2),
    ]


def test_total_equals_sum_of_line_items():
    rule = make_rule(rate_per_km=Decimal("1.37"), weekend_surcharge_percent=Decimal("17.5"))
    request = make_request(distance_km=Decimal("333.3"), pickup_date_from=SATURDAY_MORNING)
    quote = calculator(rule).calculate(request, now=NOW).quote

    assert quote.total_price == sum(li.amount for li in quote.line_items)
    assert quote.surcharge_total == sum(li.amount for li in quote.line_items if li.line_order > 0)
    assert all(li.amount == li.amount.quantize(Decimal("0.01")) for li in quote.line_items)


def test_weekday_pickup_far_ahead_has_base_line_only():
    quote = calculator().calculate(make_request(), now=NOW).quote

    assert len(quote.line_items) == 1
    assert quote.surcharge_total == Decimal("0")
    assert quote.total_price == Decimal("600.00")


# --- Base price ---


def test_minimum_price_applies_to_short_trips():
    quote = calculator().calculate(make_request(distance_km=Decimal("10")), now=NOW).quote

    assert quote.base_price == Decimal("50.00")
    assert "minimum price" in quote.line_items[0].calculation


def test_zero_distance_charges_minimum_price():
    result = calculator().calculate(make_request(distance_km=Decimal("0")), now=NOW)

    assert result.ok
    assert result.quote.base_price == Decimal("50.00")


def test_round_money_rounds_half_up():
    assert round_money(Decimal("100.005")) == Decimal("100.01")
    assert round_money(Decimal("100.004")) == Decimal("100.00")


# --- Surcharges ---


def test_zero_percent_surcharge_is_omitted():
    rule = make_rule(weekend_surcharge_percent=Decimal("0"), express_surcharge_percent=Decimal("0"))
    quote = calculator(rule).calculate(make_request(pickup_date_from=SATURDAY_MORNING), now=NOW).quote

    assert [li.description for li in quote.line_items] == ["Base transport"]


def test_express_window_is_exclusive():
    exactly_24h = NOW + timedelta(hours=24)
    just_under = NOW + timedelta(hours=23, minutes=59)
    rule = make_rule(weekend_surcharge_percent=Decimal("0"))

    assert len(calculator(rule).calculate(make_request(pickup_date_from=exactly_24h), now=NOW).quote.line_items) == 1
    assert len(calculator(rule).calculate(make_request(pickup_date_from=just_under), now=NOW).quote.line_items) == 2


def test_express_falls_back_to_created_at():
    created = datetime(2026, 10, 20, 12, 0, tzinfo=UTC)
    request = make_request(created_at=created, pickup_date_from=NEXT_WEDNESDAY)
    quote = calculator().calculate(request).quote

    assert [li.description for li in quote.line_items] == ["Base transport", "Express surcharge"]
    assert quote.created_at == created


def test_naive_pickup_dates_are_treated_as_utc():
    naive_saturday = datetime(2026, 10, 17, 8, 0)
    quote = calculator().calculate(make_request(pickup_date_from=naive_saturday), now=NOW).quote
    assert quote.total_price == Decimal("900.00")


# --- Validation ---


def test_missing_distance_is_rejected():
    result = calculator().calculate(make_request(distance_km=None), now=NOW)

    assert not result.ok
    assert result.quote is None
    assert result.errors == ["Distance must be calculated before pricing"]


def test_negative_distance_is_rejected():
    result = calculator().calculate(make_request(distance_km=Decimal("-5")), now=NOW)

    assert result.quote is None
    assert "negative" in result.error


def test_missing_rule_is_reported():
    result = calculator(make_rule("transporter")).calculate(
        make_request(vehicle_type=VehicleRequirement.LKW), now=NOW
    )

    assert result.quote is None
    assert result.errors == ["No pricing rule found for vehicle type: lkw"]


def test_inactive_rule_is_ignored():
    result = calculator(make_rule(active=False)).calculate(make_request(), now=NOW)
    assert result.quote is None


# --- Rule resolution ---


@pytest.mark.parametrize(
    ("vehicle_type", "expected_rule"),
    [
        (VehicleRequirement.EITHER, "transporter"),
        (VehicleRequirement.LKW, "lkw_7_5t"),
        (VehicleRequirement.TRANSPORTER, "transporter"),
    ],
)
def test_rule_fallbacks(vehicle_type, expected_rule):
    rules = (
        make_rule("transporter", rate_per_km=Decimal("1.00")),
        make_rule("lkw_7_5t", rate_per_km=Decimal("2.00")),
    )
    reference_data = ReferenceData(pricing_rules=rules)
    rule = reference_data.pricing_rule_for(make_request(vehicle_type=vehicle_type))
    assert rule.vehicle_type == expected_rule


def test_vehicle_booking_prices_by_booked_vehicle():
    rules = (make_rule("transporter"), make_rule("sprinter", rate_per_km=Decimal("1.00")))
    request = make_request(cargo=VehicleBookingCargo(vehicle_key="sprinter_xxl"))
    quote = calculator(*rules).calculate(request, now=NOW).quote

    assert quote.base_price == Decimal("400.00")


def test_any_rule_is_last_resort():
    rules = (make_rule("any", rate_per_km=Decimal("3.00")),)
    quote = calculator(*rules).calculate(make_request(vehicle_type=VehicleRequirement.LKW), now=NOW).quote
    assert quote.base_price == Decimal("1200.00")


# --- Quote metadata ---


def test_quote_validity_window():
    calc = PricingCalculator(ReferenceData(pricing_rules=(make_rule(),)), quote_validity_hours=48)
    quote = calc.calculate(make_request(), now=NOW).quote

    assert quote.created_at == NOW
    assert quote.valid_until == NOW + timedelta(hours=48)
    assert quote.currency == "EUR"
    assert quote.formatted_total_price == "600.00 EUR"


def test_zero_hour_express_window_disables_express():
    rule = make_rule(weekend_surcharge_percent=Decimal("0"))
    calc = PricingCalculator(ReferenceData(pricing_rules=(rule,)), express_window_hours=0)
    quote = calc.calculate(make_request(pickup_date_from=NOW + timedelta(hours=1)), now=NOW).quote

    assert [li.description for li in quote.line_items] == ["Base transport"]
