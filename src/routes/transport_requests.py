"""Engine entry points for a transport request: pricing, matching, invitations."""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Request, status

from common.errors import LifecycleError, NotFoundError
from common.logging import get_logger
from engine.pricing.schemas import PricingResult
from jobs.orchestrator import Orchestrator
from jobs.schemas import InvitationOutcome
from services.service_bus.schemas import JobMessage, JobType

logger = get_logger(__name__)
router = APIRouter(prefix="/api/transport-requests", tags=["transport-requests"])


def _orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


@router.post("/{transport_request_id}/quote", response_model=PricingResult)
async def calculate_quote(transport_request_id: int, request: Request, now: datetime | None = None):
    """Price a transport request and store the quote."""
    try:
        return await _orchestrator(request).calculate_quote(transport_request_id, now=now)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post(
    "/{transport_request_id}/matching",
    response_model=JobMessage,
    status_code=status.HTTP_202_ACCEPTED,
)
async def schedule_matching(transport_request_id: int, request: Request):
    """Queue a matching job. The invitation job follows automatically when carriers match."""
    orchestrator = _orchestrator(request)
    try:
        await orchestrator.store.get_transport_request(transport_request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    job = await orchestrator.queue.schedule(JobType.MATCH_CARRIERS, transport_request_id)
    logger.info(f"Matching scheduled for transport request {transport_request_id} (job {job.event_id})")
    return job


@router.post("/{transport_request_id}/invitations", response_model=InvitationOutcome)
async def send_invitations(transport_request_id: int, request: Request):
    """Send invitations for every carrier request not yet invited."""
    try:
        return await _orchestrator(request).dispatch_invitations(transport_request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except LifecycleError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
