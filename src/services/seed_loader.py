"""
Seed data for development.

Loads carriers, pricing rules, package presets and transport requests from a
JSON file into a store. Every record is validated through its model, so a
malformed coverage code or a negative rate fails the load.
"""

import json
from pathlib import Path

from common.logging import get_logger
from models.carrier import Carrier
from models.reference import PackageTypePreset, PricingRule, ReferenceData
from models.transport_request import TransportRequest
from services.store import Store

logger = get_logger(__name__)


async def load_seed_data(store: Store, data: dict) -> dict[str, int]:
    """Validate and store seed records. Returns how many of each kind were loaded."""
    carriers = [Carrier.model_validate(c) for c in data.get("carriers", [])]
    reference_data = ReferenceData(
        pricing_rules=tuple(PricingRule.model_validate(r) for r in data.get("pricing_rules", [])),
        package_presets=tuple(PackageTypePreset.model_validate(p) for p in data.get("package_presets", [])),
    )
    requests = [TransportRequest.model_validate(r) for r in data.get("transport_requests", [])]

    async with store.transaction():
        for carrier in carriers:
            await store.put_carrier(carrier)
        await store.set_reference_data(reference_data)
        for request in requests:
            await store.put_transport_request(request)

    counts = {
        "carriers": len(carriers),
        "pricing_rules": len(reference_data.pricing_rules),
        "package_presets": len(reference_data.package_presets),
        "transport_requests": len(requests),
    }
    logger.info(f"Seed data loaded: {counts}")
    return counts


async def load_seed_file(store: Store, path: str | Path) -> dict[str, int]:
    seed_path = Path(path)
    if not seed_path.exists():
        logger.warning(f"Seed file not found at {seed_path}; starting with an empty store")
        return {}

    with open(seed_path, encoding="utf-8") as f:
        data = json.load(f)
    return await load_seed_data(store, data)
