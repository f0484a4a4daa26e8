"""
Job orchestrator.

Entry points for the engine's asynchronous work:
- run_matching: filter carriers and persist carrier requests, then chain
  the invitation job by scheduling it (never by calling it)
- dispatch_invitations: claim new carrier requests and notify the carriers
- calculate_quote: price a transport request and persist the quote

Job bodies assume at-least-once delivery and may be re-executed.
"""

import asyncio
from datetime import UTC, datetime

from common.errors import InvitationDispatchError
from common.logging import get_logger
from engine.lifecycle.transitions import ensure_transition
from engine.matching.pipeline import MatchingPipeline
from engine.pricing.calculator import PricingCalculator
from engine.pricing.schemas import PricingResult
from jobs.schemas import InvitationOutcome, MatchingOutcome
from models.carrier_request import CarrierRequest, CarrierRequestStatus
from models.quote import QuoteStatus
from models.transport_request import TransportRequestStatus
from services.notifications import NotificationDispatcher
from services.service_bus.schemas import JobMessage, JobQueue, JobType
from services.store import Store

logger = get_logger(__name__)


class Orchestrator:
    """Runs matching, invitation and pricing against a store."""

    def __init__(self, store: Store, queue: JobQueue, notifier: NotificationDispatcher):
        self.store = store
        self.queue = queue
        self.notifier = notifier

    # ============================================================================
    # MATCHING
    # ============================================================================

    async def run_matching(self, transport_request_id: int) -> MatchingOutcome:
        """Match carriers for a request in status new."""
        async with self.store.transaction():
            request = await self.store.get_transport_request(transport_request_id)
            if request.status != TransportRequestStatus.NEW:
                reason = f"status is '{request.status.value}', matching requires 'new'"
                logger.warning(f"[Matching] Skipping transport request {transport_request_id}: {reason}")
                return MatchingOutcome(transport_request_id=transport_request_id, status="skipped", reason=reason)
            request = request.model_copy(update={"status": TransportRequestStatus.MATCHING})
            await self.store.put_transport_request(request)

        logger.info(f"[Matching] Starting for transport request {transport_request_id}")

        try:
            carriers = await self.store.list_carriers()
            reference_data = await self.store.get_reference_data()

            previous = await self.store.list_carrier_requests(transport_request_id)
            if previous:
                logger.warning(
                    f"[Matching] Transport request {transport_request_id} already has {len(previous)} carrier "
                    f"request(s); this run adds new ones without de-duplication"
                )

            result = MatchingPipeline(reference_data).match(request, carriers)
            logger.info(f"[Matching] Transport request {transport_request_id}: {result.summary()}")

            async with self.store.transaction():
                current = await self.store.get_transport_request(transport_request_id)
                if current.status != TransportRequestStatus.MATCHING:
                    reason = f"status changed to '{current.status.value}' while matching"
                    logger.warning(
                        f"[Matching] Discarding results for transport request {transport_request_id}: {reason}"
                    )
                    return MatchingOutcome(
                        transport_request_id=transport_request_id,
                        status="skipped",
                        reason=reason,
                        summary=result.summary(),
                    )
                for match in result.matches:
                    await self.store.add_carrier_request(match)
                if not result.matches:
                    ensure_transition(current.status, TransportRequestStatus.NEW)
                    await self.store.put_transport_request(
                        current.model_copy(update={"status": TransportRequestStatus.NEW})
                    )
        except Exception:
            await self._release_matching(transport_request_id)
            raise

        match_count = len(result.matches)
        logger.info(f"[Matching] Matched {match_count} carriers for transport request {transport_request_id}")

        if match_count == 0:
            return MatchingOutcome(
                transport_request_id=transport_request_id, status="no_match", summary=result.summary()
            )

        await self.queue.schedule(JobType.SEND_INVITATIONS, transport_request_id)
        return MatchingOutcome(
            transport_request_id=transport_request_id,
            status="matches_found",
            match_count=match_count,
            summary=result.summary(),
        )

    async def _release_matching(self, transport_request_id: int) -> None:
        """Put a request claimed by a failed run back to new so a retry can claim it."""
        async with self.store.transaction():
            request = await self.store.get_transport_request(transport_request_id)
            if request.status == TransportRequestStatus.MATCHING:
                await self.store.put_transport_request(
                    request.model_copy(update={"status": TransportRequestStatus.NEW})
                )
                logger.warning(f"[Matching] Released transport request {transport_request_id} back to new")

    # ============================================================================
    # INVITATIONS
    # ============================================================================

    async def dispatch_invitations(self, transport_request_id: int) -> InvitationOutcome:
        """Claim every new carrier request (new -> sent) and send its invitation."""
        async with self.store.transaction():
            await self.store.get_transport_request(transport_request_id)
            claimed: list[CarrierRequest] = []
            for carrier_request in await self.store.list_carrier_requests(
                transport_request_id, status=CarrierRequestStatus.NEW
            ):
                ensure_transition(carrier_request.status, CarrierRequestStatus.SENT)
                carrier_request = carrier_request.model_copy(update={"status": CarrierRequestStatus.SENT})
                await self.store.put_carrier_request(carrier_request)
                claimed.append(carrier_request)

        results = await asyncio.gather(*(self._deliver_invitation(cr) for cr in claimed))
        failed = [cr.id for cr, ok in zip(claimed, results) if not ok]

        logger.info(
            f"[Invitations] Sent {len(claimed) - len(failed)} invitations for transport request "
            f"{transport_request_id} ({len(failed)} failed)"
        )
        return InvitationOutcome(
            transport_request_id=transport_request_id,
            claimed=len(claimed),
            sent=len(claimed) - len(failed),
            failed=failed,
        )

    async def _deliver_invitation(self, carrier_request: CarrierRequest) -> bool:
        try:
            await self.notifier.send_invitation(carrier_request)
        except Exception as e:
            logger.error(f"[Invitations] Invitation for carrier request {carrier_request.id} failed: {e!r}")
            async with self.store.transaction():
                current = await self.store.get_carrier_request(carrier_request.id)
                if current.status == CarrierRequestStatus.SENT:
                    ensure_transition(current.status, CarrierRequestStatus.NEW)
                    await self.store.put_carrier_request(
                        current.model_copy(update={"status": CarrierRequestStatus.NEW})
                    )
            return False

        async with self.store.transaction():
            current = await self.store.get_carrier_request(carrier_request.id)
            await self.store.put_carrier_request(current.model_copy(update={"email_sent_at": datetime.now(UTC)}))
        return True

    # ============================================================================
    # PRICING
    # ============================================================================

    async def calculate_quote(self, transport_request_id: int, now: datetime | None = None) -> PricingResult:
        """Price a request and persist the quote with its line items as one unit."""
        request = await self.store.get_transport_request(transport_request_id)
        reference_data = await self.store.get_reference_data()

        result = PricingCalculator(reference_data).calculate(request, now=now)
        if not result.ok:
            return result

        async with self.store.transaction():
            existing = await self.store.find_quote(transport_request_id)
            if existing is not None and existing.status != QuoteStatus.PENDING:
                error = f"Quote already {existing.status.value}"
                logger.warning(f"[Pricing] Transport request {transport_request_id} not re-quoted: {error}")
                return PricingResult.rejected(transport_request_id, error)

            quote = result.quote
            if existing is not None:
                quote = quote.model_copy(update={"id": existing.id})
            saved = await self.store.save_quote(quote)

        return PricingResult(transport_request_id=transport_request_id, quote=saved)

    # ============================================================================
    # JOB DISPATCH
    # ============================================================================

    async def handle_job(self, job: JobMessage) -> MatchingOutcome | InvitationOutcome:
        """Run the job a message asks for. Exceptions propagate to the transport for retry."""
        if job.job_type == JobType.MATCH_CARRIERS:
            return await self.run_matching(job.transport_request_id)

        if job.job_type == JobType.SEND_INVITATIONS:
            outcome = await self.dispatch_invitations(job.transport_request_id)
            if outcome.failed:
                raise InvitationDispatchError(
                    f"{len(outcome.failed)} invitation(s) failed for transport request {job.transport_request_id}"
                )
            return outcome

        raise ValueError(f"Unsupported job type: {job.job_type}")
