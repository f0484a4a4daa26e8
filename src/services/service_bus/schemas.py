"""Job and notification messages exchanged over the job transport."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

SOURCE_SYSTEM = "matching-engine"


class JobType(str, Enum):
    """Jobs the engine consumes."""

    MATCH_CARRIERS = "transport_request.match_carriers"
    SEND_INVITATIONS = "transport_request.send_invitations"

    @classmethod
    def from_string(cls, value: str | None) -> "JobType | None":
        try:
            return cls(value)
        except ValueError:
            return None


class NotificationType(str, Enum):
    """Events the engine publishes for the mailer."""

    INVITATION = "carrier_request.invitation"
    OFFER_ACCEPTED = "carrier_request.offer_accepted"
    OFFER_REJECTED = "carrier_request.offer_rejected"

    @classmethod
    def values(cls) -> set[str]:
        return {member.value for member in cls}


class JobMessage(BaseModel):
    """A unit of work for one transport request."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_type: JobType
    transport_request_id: int
    attempt: int = Field(1, ge=1, description="Delivery attempt, starting at 1")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_event(self) -> dict:
        return {
            "eventId": self.event_id,
            "eventType": self.job_type.value,
            "eventVersion": "1.0",
            "eventTimestamp": self.created_at.isoformat(),
            "sourceSystem": SOURCE_SYSTEM,
            "data": {"transportRequestId": self.transport_request_id},
        }

    @classmethod
    def from_event(cls, event_body: dict, attempt: int = 1) -> "JobMessage":
        """Build a job from a Service Bus event body. Raises ValueError for anything malformed."""
        job_type = JobType.from_string(event_body.get("eventType"))
        if job_type is None:
            raise ValueError(f"Event type '{event_body.get('eventType')}' is not a job")

        data = event_body.get("data") or {}
        transport_request_id = data.get("transportRequestId")
        if transport_request_id is None:
            raise ValueError("Job event is missing data.transportRequestId")

        return cls(
            event_id=event_body.get("eventId") or str(uuid.uuid4()),
            job_type=job_type,
            transport_request_id=int(transport_request_id),
            attempt=attempt,
        )


class JobQueue(Protocol):
    """Schedules jobs for asynchronous, at-least-once execution."""

    async def schedule(self, job_type: JobType, transport_request_id: int) -> JobMessage: ...
