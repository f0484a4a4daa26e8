from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class CarrierRequestStatus(str, Enum):
    """Lifecycle of a carrier request (match record / offer)."""

    NEW = "new"  # Created by matching, invitation not yet sent
    SENT = "sent"  # Invitation dispatched
    OFFERED = "offered"  # Carrier submitted price and terms
    WON = "won"  # Selected by the requester
    REJECTED = "rejected"  # Not selected


class Offer(BaseModel):
    """Terms a carrier submits in response to an invitation."""

    offered_price: Decimal = Field(ge=0)
    offered_delivery_date: datetime | None = None
    transport_type: str | None = None
    vehicle_type: str | None = None
    driver_language: str | None = None
    notes: str | None = None


class CarrierRequest(BaseModel):
    """One matched carrier for one transport request."""

    id: int | None = None
    transport_request_id: int
    carrier_id: int
    status: CarrierRequestStatus = CarrierRequestStatus.NEW

    distance_to_pickup_km: Decimal | None = None
    distance_to_delivery_km: Decimal | None = None
    in_radius: bool = False

    email_sent_at: datetime | None = None
    response_date: datetime | None = None

    # Offer (filled when the carrier responds)
    offered_price: Decimal | None = None
    offered_delivery_date: datetime | None = None
    transport_type: str | None = None
    vehicle_type: str | None = None
    driver_language: str | None = None
    notes: str | None = None

    created_at: datetime | None = None
