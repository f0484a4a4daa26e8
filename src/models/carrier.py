import pycountry
from pydantic import BaseModel, Field, field_validator


def normalize_country_codes(codes: set[str] | list[str] | None) -> set[str]:
    """Upper-case a coverage set and reject anything that is not an ISO alpha-2 code."""
    normalized: set[str] = set()
    for code in codes or []:
        code_upper = str(code).strip().upper()
        if len(code_upper) != 2 or pycountry.countries.get(alpha_2=code_upper) is None:
            raise ValueError(f"'{code}' is not an ISO 3166-1 alpha-2 country code")
        normalized.add(code_upper)
    return normalized


class Carrier(BaseModel):
    """A transport provider with its location, fleet, equipment and coverage."""

    id: int
    company_name: str
    contact_email: str | None = None
    language: str | None = None

    # Location
    latitude: float | None = None
    longitude: float | None = None
    pickup_radius_km: int | None = Field(None, ge=0)
    ignore_radius: bool = False

    # Fleet
    has_transporter: bool = False
    has_lkw: bool = False
    lkw_length_cm: int | None = None
    lkw_width_cm: int | None = None
    lkw_height_cm: int | None = None

    # Equipment
    has_liftgate: bool = False
    has_pallet_jack: bool = False
    has_gps_tracking: bool = False
    has_side_loading: bool = False
    has_tarp: bool = False

    # Coverage
    pickup_countries: set[str] = Field(default_factory=set)
    delivery_countries: set[str] = Field(default_factory=set)

    active: bool = True
    blacklisted: bool = False

    @field_validator("pickup_countries", "delivery_countries", mode="before")
    @classmethod
    def _validate_countries(cls, value):
        return normalize_country_codes(value)

    @property
    def is_available(self) -> bool:
        return self.active and not self.blacklisted

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
