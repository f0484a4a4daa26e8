"""
Carrier matching pipeline.

Narrows the active carrier pool for one transport request:
1. Vehicle type - transporter / LKW fleet
2. Coverage - pickup and delivery countries
3. Radius - carrier's pickup radius around its base
4. Capacity - LKW cargo box against cargo dimensions
5. Equipment - liftgate, pallet jack, GPS tracking, side loading, tarp

Cheapest filters run first. Each stage only sees the previous stage's
survivors, and the final set does not depend on the order.
"""

from engine.matching.distance import haversine, round_km
from engine.matching.filters import (
    filter_by_capacity,
    filter_by_coverage,
    filter_by_equipment,
    filter_by_radius,
    filter_by_vehicle_type,
    is_within_radius,
)
from engine.matching.schemas import MatchingResult, StageCount
from models.carrier import Carrier
from models.carrier_request import CarrierRequest, CarrierRequestStatus
from models.reference import ReferenceData
from models.transport_request import TransportRequest


class MatchingPipeline:
    """Sequential carrier filter pipeline. Pure: nothing is persisted here."""

    def __init__(self, reference_data: ReferenceData | None = None):
        self.reference_data = reference_data or ReferenceData()

    def match(self, request: TransportRequest, carriers: list[Carrier]) -> MatchingResult:
        """Run all filters and build a carrier request for every survivor."""
        pool = [c for c in carriers if c.is_available]
        dimensions = self.reference_data.cargo_dimensions(request)

        stages = [
            ("vehicle_type", lambda cs: filter_by_vehicle_type(request, cs)),
            ("coverage", lambda cs: filter_by_coverage(request, cs)),
            ("radius", lambda cs: filter_by_radius(request, cs)),
            ("capacity", lambda cs: filter_by_capacity(request, cs, dimensions)),
            ("equipment", lambda cs: filter_by_equipment(request, cs)),
        ]

        survivors = pool
        counts: list[StageCount] = []
        for name, apply_filter in stages:
            survivors = apply_filter(survivors)
            counts.append(StageCount(stage=name, survivors=len(survivors)))

        return MatchingResult(
            transport_request_id=request.id,
            pool_size=len(pool),
            stages=counts,
            matches=[self.build_match(request, carrier) for carrier in survivors],
        )

    def run(self, request: TransportRequest, carriers: list[Carrier]) -> list[CarrierRequest]:
        return self.match(request, carriers).matches

    @staticmethod
    def build_match(request: TransportRequest, carrier: Carrier) -> CarrierRequest:
        to_pickup = haversine(carrier.latitude, carrier.longitude, request.pickup.latitude, request.pickup.longitude)
        to_delivery = haversine(
            carrier.latitude, carrier.longitude, request.delivery.latitude, request.delivery.longitude
        )

        # Distances are stored as a pair: both known or both unknown
        if to_pickup is None or to_delivery is None:
            stored_pickup, stored_delivery = None, None
        else:
            stored_pickup, stored_delivery = round_km(to_pickup), round_km(to_delivery)

        return CarrierRequest(
            transport_request_id=request.id,
            carrier_id=carrier.id,
            status=CarrierRequestStatus.NEW,
            distance_to_pickup_km=stored_pickup,
            distance_to_delivery_km=stored_delivery,
            in_radius=is_within_radius(request, carrier),
        )
