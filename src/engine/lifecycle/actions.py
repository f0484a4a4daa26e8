"""
Lifecycle actions.

State changes triggered by the customer, the carrier or an operator. Each
action validates against the transition tables and writes inside a single
store transaction, so a rejected action leaves no trace. Notifications go
out only after the transaction has committed.
"""

import asyncio
from datetime import UTC, datetime

from pydantic import BaseModel

from common.errors import QuoteExpiredError
from common.logging import get_logger
from engine.lifecycle.transitions import ensure_transition
from models.carrier_request import CarrierRequest, CarrierRequestStatus, Offer
from models.quote import Quote, QuoteStatus
from models.transport_request import TransportRequest, TransportRequestStatus
from services.notifications import NotificationDispatcher
from services.service_bus.schemas import JobQueue, JobType
from services.store import Store

logger = get_logger(__name__)


class OfferAcceptance(BaseModel):
    """Result of accepting an offer: the winner, the siblings it displaced, the updated request."""

    won: CarrierRequest
    rejected: list[CarrierRequest]
    transport_request: TransportRequest


# ============================================================================
# Quotes
# ============================================================================


async def accept_quote(store: Store, queue: JobQueue, quote_id: int, now: datetime | None = None) -> Quote:
    """Accept a pending quote and schedule carrier matching for its request."""
    now = now or datetime.now(UTC)
    expired = False

    async with store.transaction():
        quote = await store.get_quote(quote_id)
        if quote.status == QuoteStatus.PENDING and quote.is_expired(now):
            quote = quote.model_copy(update={"status": QuoteStatus.EXPIRED})
            await store.save_quote(quote)
            expired = True
        else:
            ensure_transition(quote.status, QuoteStatus.ACCEPTED)
            quote = quote.model_copy(update={"status": QuoteStatus.ACCEPTED, "accepted_at": now})
            await store.save_quote(quote)

    if expired:
        logger.warning(f"[Lifecycle] Quote {quote_id} expired at {quote.valid_until} before acceptance")
        raise QuoteExpiredError(quote_id)

    logger.info(f"[Lifecycle] Quote {quote_id} accepted for transport request {quote.transport_request_id}")
    try:
        await queue.schedule(JobType.MATCH_CARRIERS, quote.transport_request_id)
    except Exception:
        logger.exception(
            f"[Lifecycle] Quote {quote_id} is accepted but matching could not be scheduled; "
            f"re-trigger it with POST /api/transport-requests/{quote.transport_request_id}/matching"
        )
        raise
    return quote


async def decline_quote(store: Store, quote_id: int, now: datetime | None = None) -> Quote:
    now = now or datetime.now(UTC)
    async with store.transaction():
        quote = await store.get_quote(quote_id)
        ensure_transition(quote.status, QuoteStatus.DECLINED)
        quote = quote.model_copy(update={"status": QuoteStatus.DECLINED, "declined_at": now})
        await store.save_quote(quote)

    logger.info(f"[Lifecycle] Quote {quote_id} declined")
    return quote


async def expire_quotes(store: Store, now: datetime | None = None) -> int:
    """Move every pending quote past its validity window to expired."""
    now = now or datetime.now(UTC)
    expired = 0
    async with store.transaction():
        for quote in await store.list_quotes(status=QuoteStatus.PENDING):
            if quote.is_expired(now):
                await store.save_quote(quote.model_copy(update={"status": QuoteStatus.EXPIRED}))
                expired += 1

    if expired:
        logger.info(f"[Lifecycle] Expired {expired} pending quote(s)")
    return expired


# ============================================================================
# Offers
# ============================================================================


async def submit_offer(
    store: Store, carrier_request_id: int, offer: Offer, now: datetime | None = None
) -> CarrierRequest:
    """Record a carrier's price and terms on an invited carrier request."""
    now = now or datetime.now(UTC)
    async with store.transaction():
        carrier_request = await store.get_carrier_request(carrier_request_id)
        ensure_transition(carrier_request.status, CarrierRequestStatus.OFFERED)
        carrier_request = carrier_request.model_copy(
            update={**offer.model_dump(), "status": CarrierRequestStatus.OFFERED, "response_date": now}
        )
        await store.put_carrier_request(carrier_request)

    logger.info(
        f"[Lifecycle] Carrier {carrier_request.carrier_id} offered {carrier_request.offered_price} "
        f"on transport request {carrier_request.transport_request_id}"
    )
    return carrier_request


async def accept_offer(store: Store, notifier: NotificationDispatcher, carrier_request_id: int) -> OfferAcceptance:
    """Accept one offer.

    In one transaction: the offer becomes won, every other offered sibling is
    rejected, and the transport request becomes matched with the winning
    carrier. Any violation aborts the whole unit.
    """
    async with store.transaction():
        winner = await store.get_carrier_request(carrier_request_id)
        ensure_transition(winner.status, CarrierRequestStatus.WON)
        request = await store.get_transport_request(winner.transport_request_id)
        ensure_transition(request.status, TransportRequestStatus.MATCHED)

        winner = winner.model_copy(update={"status": CarrierRequestStatus.WON})
        await store.put_carrier_request(winner)

        rejected: list[CarrierRequest] = []
        for sibling in await store.list_carrier_requests(request.id, status=CarrierRequestStatus.OFFERED):
            if sibling.id == winner.id:
                continue
            sibling = sibling.model_copy(update={"status": CarrierRequestStatus.REJECTED})
            await store.put_carrier_request(sibling)
            rejected.append(sibling)

        request = request.model_copy(
            update={"status": TransportRequestStatus.MATCHED, "matched_carrier_id": winner.carrier_id}
        )
        await store.put_transport_request(request)

    logger.info(
        f"[Lifecycle] Transport request {request.id} matched to carrier {winner.carrier_id} "
        f"({len(rejected)} competing offer(s) rejected)"
    )

    await _notify_all(
        [notifier.send_offer_accepted(winner), *(notifier.send_offer_rejected(cr) for cr in rejected)],
        context=f"offer acceptance on transport request {request.id}",
    )
    return OfferAcceptance(won=winner, rejected=rejected, transport_request=request)


async def reject_offer(store: Store, notifier: NotificationDispatcher, carrier_request_id: int) -> CarrierRequest:
    async with store.transaction():
        carrier_request = await store.get_carrier_request(carrier_request_id)
        ensure_transition(carrier_request.status, CarrierRequestStatus.REJECTED)
        carrier_request = carrier_request.model_copy(update={"status": CarrierRequestStatus.REJECTED})
        await store.put_carrier_request(carrier_request)

    logger.info(f"[Lifecycle] Offer {carrier_request_id} rejected")
    await _notify_all([notifier.send_offer_rejected(carrier_request)], context=f"offer rejection {carrier_request_id}")
    return carrier_request


async def _notify_all(sends: list, context: str) -> None:
    """Send notifications concurrently. A failed send is logged; the committed state stands."""
    results = await asyncio.gather(*sends, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.warning(f"[Lifecycle] Notification failed after {context}: {result!r}")


# ============================================================================
# Transport requests
# ============================================================================


async def transition_transport_request(
    store: Store, transport_request_id: int, target: TransportRequestStatus
) -> TransportRequest:
    async with store.transaction():
        request = await store.get_transport_request(transport_request_id)
        ensure_transition(request.status, target)
        request = request.model_copy(update={"status": target})
        await store.put_transport_request(request)

    logger.info(f"[Lifecycle] Transport request {transport_request_id} -> {target.value}")
    return request


async def cancel_transport_request(store: Store, transport_request_id: int) -> TransportRequest:
    return await transition_transport_request(store, transport_request_id, TransportRequestStatus.CANCELLED)


async def mark_in_transit(store: Store, transport_request_id: int) -> TransportRequest:
    return await transition_transport_request(store, transport_request_id, TransportRequestStatus.IN_TRANSIT)


async def mark_delivered(store: Store, transport_request_id: int) -> TransportRequest:
    return await transition_transport_request(store, transport_request_id, TransportRequestStatus.DELIVERED)
