from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator


class TransportRequestStatus(str, Enum):
    """Lifecycle of a transport request."""

    NEW = "new"
    MATCHING = "matching"
    MATCHED = "matched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class VehicleRequirement(str, Enum):
    """Vehicle class the customer asked for."""

    TRANSPORTER = "transporter"
    LKW = "lkw"
    EITHER = "either"


class Location(BaseModel):
    """A geocoded pickup or delivery point."""

    country: str | None = Field(None, description="ISO 3166-1 alpha-2 code")
    city: str | None = None
    postal_code: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class EquipmentRequirements(BaseModel):
    """Equipment the carrier must bring."""

    liftgate: bool = False
    pallet_jack: bool = False
    gps_tracking: bool = False
    side_loading: bool = False
    tarp: bool = False


class CargoDimensions(BaseModel):
    """Outer dimensions of the cargo in centimetres. Unknown axes are None."""

    length_cm: int | None = None
    width_cm: int | None = None
    height_cm: int | None = None

    @property
    def is_specified(self) -> bool:
        return any(v is not None for v in (self.length_cm, self.width_cm, self.height_cm))


# ============================================================================
# Cargo variants (one per shipping mode)
# ============================================================================


class PackageItem(BaseModel):
    """A line of identical packages, e.g. 4 x Europalette."""

    package_type: str
    quantity: int = Field(gt=0)
    weight_kg: Decimal = Field(gt=0, description="Weight of a single package")
    length_cm: int | None = Field(None, gt=0)
    width_cm: int | None = Field(None, gt=0)
    height_cm: int | None = Field(None, gt=0)

    @property
    def total_weight_kg(self) -> Decimal:
        return self.weight_kg * self.quantity


class PackagesCargo(BaseModel):
    mode: Literal["packages"] = "packages"
    packages: list[PackageItem] = Field(default_factory=list)

    @property
    def total_weight_kg(self) -> Decimal:
        return sum((p.total_weight_kg for p in self.packages), Decimal("0"))

    @property
    def total_package_count(self) -> int:
        return sum(p.quantity for p in self.packages)


class LoadingMetersCargo(BaseModel):
    mode: Literal["loading_meters"] = "loading_meters"
    loading_meters: Decimal = Field(gt=0, le=Decimal("13.6"))
    total_height_cm: int | None = Field(None, gt=0)
    total_weight_kg: Decimal | None = Field(None, gt=0)


class BookableVehicle(BaseModel):
    """An entry in the vehicle booking catalogue."""

    name: str
    max_weight_kg: int
    pricing_key: str


VEHICLE_BOOKING_CATALOGUE: dict[str, BookableVehicle] = {
    "sprinter": BookableVehicle(name="Planen-Sprinter", max_weight_kg=1000, pricing_key="sprinter"),
    "sprinter_xxl": BookableVehicle(name="Planensprinter XXL", max_weight_kg=1100, pricing_key="sprinter"),
    "lkw_7_5": BookableVehicle(name="LKW 7,5 to.", max_weight_kg=2500, pricing_key="lkw_7_5t"),
    "lkw_12": BookableVehicle(name="LKW 12 to.", max_weight_kg=5000, pricing_key="lkw_12t"),
    "lkw_40": BookableVehicle(name="LKW 40 to.", max_weight_kg=24000, pricing_key="lkw_24t"),
}


class VehicleBookingCargo(BaseModel):
    mode: Literal["vehicle_booking"] = "vehicle_booking"
    vehicle_key: Literal["sprinter", "sprinter_xxl", "lkw_7_5", "lkw_12", "lkw_40"]

    @property
    def vehicle(self) -> BookableVehicle:
        return VEHICLE_BOOKING_CATALOGUE[self.vehicle_key]


Cargo = Annotated[PackagesCargo | LoadingMetersCargo | VehicleBookingCargo, Field(discriminator="mode")]


# ============================================================================
# Transport request
# ============================================================================


class TransportRequest(BaseModel):
    """A customer's request to move cargo from pickup to delivery."""

    id: int
    status: TransportRequestStatus = TransportRequestStatus.NEW
    created_at: datetime | None = None

    pickup: Location = Field(default_factory=Location)
    delivery: Location = Field(default_factory=Location)

    vehicle_type: VehicleRequirement | None = None
    cargo: Cargo = Field(default_factory=PackagesCargo)
    equipment: EquipmentRequirements = Field(default_factory=EquipmentRequirements)

    distance_km: Decimal | None = Field(None, description="Billing distance, supplied upstream")
    pickup_date_from: datetime | None = None
    pickup_date_to: datetime | None = None
    delivery_date_from: datetime | None = None
    delivery_date_to: datetime | None = None

    matched_carrier_id: int | None = None

    @model_validator(mode="after")
    def _delivery_after_pickup(self) -> "TransportRequest":
        if self.pickup_date_from and self.delivery_date_from and self.delivery_date_from < self.pickup_date_from:
            raise ValueError("delivery_date_from must be after pickup_date_from")
        return self
