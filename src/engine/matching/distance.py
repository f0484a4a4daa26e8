"""Great-circle distance between two coordinates.

Straight-line proximity only: no road network, spherical Earth. Used for
matching, never for billing.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

EARTH_RADIUS_KM = 6371


def haversine(
    lat1: float | None,
    lon1: float | None,
    lat2: float | None,
    lon2: float | None,
) -> float | None:
    """Distance in kilometres, or None if any coordinate is missing (unknown, not zero)."""
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    # Rounding can push a just past 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def round_km(distance: float | None) -> Decimal | None:
    """Round a distance half-up to 2 decimal places for storage."""
    if distance is None:
        return None
    return Decimal(repr(distance)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
