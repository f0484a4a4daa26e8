"""Matching pipeline result models."""

from pydantic import BaseModel, Field

from models.carrier_request import CarrierRequest


class StageCount(BaseModel):
    """How many carriers survived one filter stage."""

    stage: str = Field(description="Filter name, e.g. 'vehicle_type'")
    survivors: int = Field(ge=0)


class MatchingResult(BaseModel):
    """Carrier requests built for the survivors, plus a per-stage trace."""

    transport_request_id: int
    pool_size: int = Field(0, description="Active carriers the run started from")
    stages: list[StageCount] = Field(default_factory=list)
    matches: list[CarrierRequest] = Field(default_factory=list)

    def summary(self) -> str:
        trail = " -> ".join(f"{s.stage}={s.survivors}" for s in self.stages)
        return f"pool={self.pool_size} -> {trail}" if trail else f"pool={self.pool_size}"
