from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from models.reference import PackageTypePreset, PricingRule, ReferenceData
from services.notifications import LoggingNotifier
from services.store import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def queue():
    """JobQueue double that records scheduled jobs without running them."""
    mock_queue = AsyncMock()
    mock_queue.schedule = AsyncMock()
    return mock_queue


@pytest.fixture
def reference_data():
    return ReferenceData(
        pricing_rules=(
            PricingRule(
                vehicle_type="transporter",
                rate_per_km=Decimal("1.20"),
                minimum_price=Decimal("80.00"),
                weekend_surcharge_percent=Decimal("15"),
                express_surcharge_percent=Decimal("25"),
            ),
            PricingRule(
                vehicle_type="lkw_7_5t",
                rate_per_km=Decimal("1.80"),
                minimum_price=Decimal("150.00"),
                weekend_surcharge_percent=Decimal("20"),
                express_surcharge_percent=Decimal("30"),
            ),
        ),
        package_presets=(
            PackageTypePreset(name="Europalette", default_length_cm=120, default_width_cm=80, default_height_cm=144),
            PackageTypePreset(name="Cartonage", default_length_cm=60, default_width_cm=40, default_height_cm=40),
        ),
    )
