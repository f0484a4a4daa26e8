"""Reference data consulted by the engine: pricing rules and package presets.

Both are read-only for the duration of a calculation. They are bundled into a
ReferenceData snapshot which callers pass in explicitly.
"""

from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from models.transport_request import (
    CargoDimensions,
    PackageItem,
    PackagesCargo,
    TransportRequest,
    VehicleBookingCargo,
    VehicleRequirement,
)

PricingVehicleType = Literal["transporter", "sprinter", "lkw_7_5t", "lkw_12t", "lkw_18t", "lkw_24t", "any"]

# Used when no rule exists for the requested vehicle class itself
PRICING_FALLBACKS: dict[str, str] = {
    VehicleRequirement.EITHER.value: "transporter",
    VehicleRequirement.LKW.value: "lkw_7_5t",
}


class PricingRule(BaseModel):
    """Per-vehicle-type rate, minimum charge and surcharge percentages."""

    model_config = ConfigDict(frozen=True)

    vehicle_type: PricingVehicleType
    rate_per_km: Decimal = Field(ge=0)
    minimum_price: Decimal = Field(ge=0)
    weekend_surcharge_percent: Decimal = Field(Decimal("0"), ge=0)
    express_surcharge_percent: Decimal = Field(Decimal("0"), ge=0)
    active: bool = True


class PackageCategory(str, Enum):
    PALLET = "pallet"
    BOX = "box"
    CUSTOM = "custom"


class PackageTypePreset(BaseModel):
    """Default dimensions for a named package type (Europalette, Cartonage, ...)."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: PackageCategory | None = None
    default_length_cm: int | None = None
    default_width_cm: int | None = None
    default_height_cm: int | None = None
    default_weight_kg: Decimal | None = None


class ReferenceData(BaseModel):
    """Immutable snapshot of pricing rules and package presets."""

    model_config = ConfigDict(frozen=True)

    pricing_rules: tuple[PricingRule, ...] = ()
    package_presets: tuple[PackageTypePreset, ...] = ()

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def find_pricing_rule(self, vehicle_type: str) -> PricingRule | None:
        for rule in self.pricing_rules:
            if rule.active and rule.vehicle_type == vehicle_type:
                return rule
        return None

    def pricing_keys_for(self, request: TransportRequest) -> list[str]:
        """Candidate pricing keys for a request, most specific first."""
        keys: list[str] = []
        if isinstance(request.cargo, VehicleBookingCargo):
            keys.append(request.cargo.vehicle.pricing_key)
        if request.vehicle_type is not None:
            keys.append(request.vehicle_type.value)
            fallback = PRICING_FALLBACKS.get(request.vehicle_type.value)
            if fallback:
                keys.append(fallback)
        keys.append("any")
        return list(dict.fromkeys(keys))

    def pricing_rule_for(self, request: TransportRequest) -> PricingRule | None:
        for key in self.pricing_keys_for(request):
            rule = self.find_pricing_rule(key)
            if rule is not None:
                return rule
        return None

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    def find_preset(self, package_type: str) -> PackageTypePreset | None:
        wanted = package_type.strip().lower()
        for preset in self.package_presets:
            if preset.name.lower() == wanted:
                return preset
        return None

    def package_dimensions(self, item: PackageItem) -> CargoDimensions:
        """Item dimensions, falling back to the preset defaults for unspecified axes."""
        preset = self.find_preset(item.package_type)
        return CargoDimensions(
            length_cm=item.length_cm or (preset.default_length_cm if preset else None),
            width_cm=item.width_cm or (preset.default_width_cm if preset else None),
            height_cm=item.height_cm or (preset.default_height_cm if preset else None),
        )

    def cargo_dimensions(self, request: TransportRequest) -> CargoDimensions:
        """Largest extent per axis over all packages. Other shipping modes have none."""
        if not isinstance(request.cargo, PackagesCargo):
            return CargoDimensions()

        dims = [self.package_dimensions(item) for item in request.cargo.packages]

        def _largest(values: list[int | None]) -> int | None:
            known = [v for v in values if v is not None]
            return max(known) if known else None

        return CargoDimensions(
            length_cm=_largest([d.length_cm for d in dims]),
            width_cm=_largest([d.width_cm for d in dims]),
            height_cm=_largest([d.height_cm for d in dims]),
        )
