"""Carrier filters for the matching pipeline.

Each filter takes the survivors of the previous stage and returns a subset,
preserving order. Missing data on the request side turns a filter into a
no-op. Missing capacity data on the carrier side counts as adequate;
missing equipment does not.
"""

from engine.matching.distance import haversine
from models.carrier import Carrier
from models.transport_request import CargoDimensions, TransportRequest, VehicleRequirement

# (requirement flag on the request, capability flag on the carrier)
EQUIPMENT_CHECKS: tuple[tuple[str, str], ...] = (
    ("liftgate", "has_liftgate"),
    ("pallet_jack", "has_pallet_jack"),
    ("gps_tracking", "has_gps_tracking"),
    ("side_loading", "has_side_loading"),
    ("tarp", "has_tarp"),
)


def filter_by_vehicle_type(request: TransportRequest, carriers: list[Carrier]) -> list[Carrier]:
    """Keep carriers whose fleet includes the requested vehicle class."""
    if request.vehicle_type == VehicleRequirement.TRANSPORTER:
        return [c for c in carriers if c.has_transporter]
    if request.vehicle_type == VehicleRequirement.LKW:
        return [c for c in carriers if c.has_lkw]
    return list(carriers)


def filter_by_coverage(request: TransportRequest, carriers: list[Carrier]) -> list[Carrier]:
    """Keep carriers serving both the pickup and the delivery country."""
    pickup_country = request.pickup.country
    delivery_country = request.delivery.country
    if not pickup_country or not delivery_country:
        return list(carriers)

    pickup_country = pickup_country.upper()
    delivery_country = delivery_country.upper()
    return [
        c for c in carriers if pickup_country in c.pickup_countries and delivery_country in c.delivery_countries
    ]


def distance_to_pickup(request: TransportRequest, carrier: Carrier) -> float | None:
    return haversine(carrier.latitude, carrier.longitude, request.pickup.latitude, request.pickup.longitude)


def is_within_radius(request: TransportRequest, carrier: Carrier) -> bool:
    if carrier.ignore_radius:
        return True
    if not carrier.has_coordinates or carrier.pickup_radius_km is None:
        return False
    distance = distance_to_pickup(request, carrier)
    return distance is not None and distance <= carrier.pickup_radius_km


def filter_by_radius(request: TransportRequest, carriers: list[Carrier]) -> list[Carrier]:
    """Keep carriers whose pickup radius reaches the pickup point."""
    if not request.pickup.has_coordinates:
        return list(carriers)
    return [c for c in carriers if is_within_radius(request, c)]


def _axis_fits(required: int | None, available: int | None) -> bool:
    return required is None or available is None or available >= required


def filter_by_capacity(
    request: TransportRequest,
    carriers: list[Carrier],
    dimensions: CargoDimensions,
) -> list[Carrier]:
    """Keep LKW carriers whose cargo box fits the cargo.

    Only active for LKW requests with at least one known cargo dimension.
    """
    if request.vehicle_type != VehicleRequirement.LKW or not dimensions.is_specified:
        return list(carriers)

    return [
        c
        for c in carriers
        if c.has_lkw
        and _axis_fits(dimensions.length_cm, c.lkw_length_cm)
        and _axis_fits(dimensions.width_cm, c.lkw_width_cm)
        and _axis_fits(dimensions.height_cm, c.lkw_height_cm)
    ]


def has_required_equipment(request: TransportRequest, carrier: Carrier) -> bool:
    return all(
        getattr(carrier, capability) for requirement, capability in EQUIPMENT_CHECKS if getattr(request.equipment, requirement)
    )


def filter_by_equipment(request: TransportRequest, carriers: list[Carrier]) -> list[Carrier]:
    """Keep carriers that have every piece of equipment the request requires."""
    return [c for c in carriers if has_required_equipment(request, c)]
