from typing import Literal

from pydantic import BaseModel, Field


class MatchingOutcome(BaseModel):
    """Result of a matching job run."""

    transport_request_id: int
    status: Literal["matches_found", "no_match", "skipped"]
    match_count: int = 0
    summary: str | None = Field(None, description="Per-stage survivor counts")
    reason: str | None = Field(None, description="Why the run was skipped")


class InvitationOutcome(BaseModel):
    """Result of an invitation job run."""

    transport_request_id: int
    claimed: int = Field(0, description="Carrier requests moved from new to sent by this run")
    sent: int = 0
    failed: list[int] = Field(default_factory=list, description="Carrier request ids released for retry")
