"""Tests for the matching, invitation and pricing jobs."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from common.errors import InvitationDispatchError, NotFoundError
from engine.lifecycle.actions import cancel_transport_request
from jobs.orchestrator import Orchestrator
from models.carrier import Carrier
from models.carrier_request import CarrierRequest, CarrierRequestStatus
from models.quote import QuoteStatus
from models.transport_request import Location, TransportRequest, TransportRequestStatus, VehicleRequirement
from services.notifications import LoggingNotifier
from services.service_bus.local_queue import LocalJobQueue
from services.service_bus.schemas import JobMessage, JobType, NotificationType

NOW = datetime(2026, 10, 16, 20, 0, tzinfo=UTC)


class FlakyNotifier(LoggingNotifier):
    """Fails invitations for the given carriers."""

    def __init__(self, failing_carriers: set[int]):
        super().__init__()
        self.failing_carriers = failing_carriers

    async def send_invitation(self, carrier_request: CarrierRequest) -> None:
        if carrier_request.carrier_id in self.failing_carriers:
            raise ConnectionError("SMTP relay unavailable")
        await super().send_invitation(carrier_request)


def make_carrier(carrier_id: int, **overrides) -> Carrier:
    fields = {
        "id": carrier_id,
        "company_name": f"Carrier {carrier_id}",
        "latitude": 52.52,
        "longitude": 13.405,
        "pickup_radius_km": 200,
        "has_transporter": True,
        "has_lkw": True,
        "pickup_countries": {"DE"},
        "delivery_countries": {"DE", "AT"},
    }
    fields.update(overrides)
    return Carrier(**fields)


async def seed(store, carriers: list[Carrier], **request_fields) -> TransportRequest:
    fields = {
        "id": 1,
        "pickup": Location(country="DE", latitude=52.3906, longitude=13.0645),
        "delivery": Location(country="AT", latitude=48.2082, longitude=16.3738),
        "vehicle_type": VehicleRequirement.TRANSPORTER,
        "distance_km": Decimal("400"),
        "pickup_date_from": datetime(2026, 10, 21, 8, 0, tzinfo=UTC),
    }
    fields.update(request_fields)
    request = TransportRequest(**fields)
    await store.put_transport_request(request)
    for carrier in carriers:
        await store.put_carrier(carrier)
    return request


async def seed_new_carrier_requests(store, carrier_ids: list[int]) -> list[CarrierRequest]:
    return [
        await store.add_carrier_request(CarrierRequest(transport_request_id=1, carrier_id=carrier_id))
        for carrier_id in carrier_ids
    ]


# --- Matching ---


@pytest.mark.asyncio
async def test_matching_persists_records_and_schedules_invitations(store, queue, notifier):
    await seed(store, [make_carrier(1), make_carrier(2), make_carrier(3, has_transporter=False)])
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await orchestrator.run_matching(1)

    assert outcome.status == "matches_found"
    assert outcome.match_count == 2
    records = await store.list_carrier_requests(1)
    assert sorted(cr.carrier_id for cr in records) == [1, 2]
    assert all(cr.status == CarrierRequestStatus.NEW and cr.id is not None for cr in records)
    assert (await store.get_transport_request(1)).status == TransportRequestStatus.MATCHING
    queue.schedule.assert_awaited_once_with(JobType.SEND_INVITATIONS, 1)
    # Chained by message, not by direct call
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_matching_without_survivors_resets_request(store, queue, notifier):
    await seed(store, [make_carrier(1, has_transporter=False)])
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await orchestrator.run_matching(1)

    assert outcome.status == "no_match"
    assert await store.list_carrier_requests(1) == []
    assert (await store.get_transport_request(1)).status == TransportRequestStatus.NEW
    queue.schedule.assert_not_awaited()


@pytest.mark.asyncio
async def test_matching_skips_requests_not_in_new(store, queue, notifier):
    await seed(store, [make_carrier(1)], status=TransportRequestStatus.MATCHED)
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await orchestrator.run_matching(1)

    assert outcome.status == "skipped"
    assert "matched" in outcome.reason
    assert await store.list_carrier_requests(1) == []


@pytest.mark.asyncio
async def test_failed_matching_releases_claim(store, queue, notifier):
    await seed(store, [make_carrier(1), make_carrier(2)])
    orchestrator = Orchestrator(store, queue, notifier)

    real_add = store.add_carrier_request
    calls = 0

    async def add_then_fail(carrier_request):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise RuntimeError("connection reset")
        return await real_add(carrier_request)

    with patch.object(store, "add_carrier_request", side_effect=add_then_fail):
        with pytest.raises(RuntimeError):
            await orchestrator.run_matching(1)

    assert await store.list_carrier_requests(1) == []
    assert (await store.get_transport_request(1)).status == TransportRequestStatus.NEW
    queue.schedule.assert_not_awaited()

    # A retry can claim the request again
    outcome = await orchestrator.run_matching(1)
    assert outcome.match_count == 2


async def cancel_while_loading_carriers(store, orchestrator):
    """Run matching, cancelling the request while the carrier pool is being loaded."""
    reached = asyncio.Event()
    release = asyncio.Event()
    real_list = store.list_carriers

    async def gated_list():
        reached.set()
        await release.wait()
        return await real_list()

    with patch.object(store, "list_carriers", side_effect=gated_list):
        task = asyncio.create_task(orchestrator.run_matching(1))
        await reached.wait()
        await cancel_transport_request(store, 1)
        release.set()
        return await task


@pytest.mark.asyncio
async def test_cancellation_during_matching_discards_matches(store, queue, notifier):
    await seed(store, [make_carrier(1), make_carrier(2)])
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await cancel_while_loading_carriers(store, orchestrator)

    assert outcome.status == "skipped"
    assert "cancelled" in outcome.reason
    assert await store.list_carrier_requests(1) == []
    assert (await store.get_transport_request(1)).status == TransportRequestStatus.CANCELLED
    queue.schedule.assert_not_awaited()


@pytest.mark.asyncio
async def test_cancellation_during_matching_without_survivors_stays_cancelled(store, queue, notifier):
    await seed(store, [make_carrier(1, has_transporter=False)])
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await cancel_while_loading_carriers(store, orchestrator)

    assert outcome.status == "skipped"
    assert (await store.get_transport_request(1)).status == TransportRequestStatus.CANCELLED


@pytest.mark.asyncio
async def test_rerun_after_reset_adds_new_records(store, queue, notifier):
    await seed(store, [make_carrier(1)])
    orchestrator = Orchestrator(store, queue, notifier)

    await orchestrator.run_matching(1)
    request = await store.get_transport_request(1)
    await store.put_transport_request(request.model_copy(update={"status": TransportRequestStatus.NEW}))
    await orchestrator.run_matching(1)

    assert len(await store.list_carrier_requests(1)) == 2


@pytest.mark.asyncio
async def test_matching_unknown_request(store, queue, notifier):
    with pytest.raises(NotFoundError):
        await Orchestrator(store, queue, notifier).run_matching(404)


# --- Invitations ---


@pytest.mark.asyncio
async def test_invitations_claim_and_send(store, queue, notifier):
    await seed(store, [])
    records = await seed_new_carrier_requests(store, [1, 2])
    orchestrator = Orchestrator(store, queue, notifier)

    outcome = await orchestrator.dispatch_invitations(1)

    assert outcome.claimed == 2
    assert outcome.sent == 2
    assert outcome.failed == []
    for cr in await store.list_carrier_requests(1):
        assert cr.status == CarrierRequestStatus.SENT
        assert cr.email_sent_at is not None
    assert sorted(notifier.sent) == sorted((NotificationType.INVITATION, cr.id) for cr in records)


@pytest.mark.asyncio
async def test_invitations_are_idempotent(store, queue, notifier):
    await seed(store, [])
    await seed_new_carrier_requests(store, [1, 2])
    orchestrator = Orchestrator(store, queue, notifier)

    await orchestrator.dispatch_invitations(1)
    second = await orchestrator.dispatch_invitations(1)

    assert second.claimed == 0
    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_concurrent_invitation_runs_send_each_once(store, queue, notifier):
    await seed(store, [])
    await seed_new_carrier_requests(store, [1, 2, 3])
    orchestrator = Orchestrator(store, queue, notifier)

    first, second = await asyncio.gather(orchestrator.dispatch_invitations(1), orchestrator.dispatch_invitations(1))

    assert first.claimed + second.claimed == 3
    assert len(notifier.sent) == 3
    assert len({cr_id for _, cr_id in notifier.sent}) == 3


@pytest.mark.asyncio
async def test_failed_invitation_is_released_for_retry(store, queue):
    await seed(store, [])
    ok, failing = await seed_new_carrier_requests(store, [1, 2])
    flaky = FlakyNotifier(failing_carriers={2})
    orchestrator = Orchestrator(store, queue, flaky)

    outcome = await orchestrator.dispatch_invitations(1)

    assert outcome.sent == 1
    assert outcome.failed == [failing.id]
    assert (await store.get_carrier_request(ok.id)).status == CarrierRequestStatus.SENT
    released = await store.get_carrier_request(failing.id)
    assert released.status == CarrierRequestStatus.NEW
    assert released.email_sent_at is None

    flaky.failing_carriers.clear()
    retry = await orchestrator.dispatch_invitations(1)
    assert retry.claimed == 1
    assert flaky.sent == [(NotificationType.INVITATION, ok.id), (NotificationType.INVITATION, failing.id)]


# --- Job dispatch ---


@pytest.mark.asyncio
async def test_handle_job_raises_when_invitations_fail(store, queue):
    await seed(store, [])
    await seed_new_carrier_requests(store, [1])
    orchestrator = Orchestrator(store, queue, FlakyNotifier(failing_carriers={1}))

    with pytest.raises(InvitationDispatchError):
        await orchestrator.handle_job(JobMessage(job_type=JobType.SEND_INVITATIONS, transport_request_id=1))


@pytest.mark.asyncio
async def test_handle_job_routes_matching(store, queue, notifier):
    orchestrator = Orchestrator(store, queue, notifier)
    orchestrator.run_matching = AsyncMock(return_value="matched")

    result = await orchestrator.handle_job(JobMessage(job_type=JobType.MATCH_CARRIERS, transport_request_id=5))

    assert result == "matched"
    orchestrator.run_matching.assert_awaited_once_with(5)


@pytest.mark.asyncio
async def test_matching_chains_into_invitations_through_the_queue(store, notifier):
    await seed(store, [make_carrier(1), make_carrier(2)])
    queue = LocalJobQueue(max_attempts=2, retry_delay=0)
    orchestrator = Orchestrator(store, queue, notifier)
    queue.start(orchestrator.handle_job)

    await queue.schedule(JobType.MATCH_CARRIERS, 1)
    await queue.join()
    await queue.shutdown()

    records = await store.list_carrier_requests(1)
    assert [cr.status for cr in records] == [CarrierRequestStatus.SENT, CarrierRequestStatus.SENT]
    assert len(notifier.sent) == 2
    assert queue.dead_letters == []


# --- Pricing ---


@pytest.mark.asyncio
async def test_calculate_quote_persists_quote(store, queue, notifier, reference_data):
    await seed(store, [])
    await store.set_reference_data(reference_data)
    orchestrator = Orchestrator(store, queue, notifier)

    result = await orchestrator.calculate_quote(1, now=NOW)

    assert result.ok
    stored = await store.find_quote(1)
    assert stored.id == result.quote.id
    assert stored.total_price == Decimal("480.00")
    assert len(stored.line_items) == 1


@pytest.mark.asyncio
async def test_recalculating_replaces_pending_quote(store, queue, notifier, reference_data):
    await seed(store, [])
    await store.set_reference_data(reference_data)
    orchestrator = Orchestrator(store, queue, notifier)

    first = await orchestrator.calculate_quote(1, now=NOW)
    request = await store.get_transport_request(1)
    await store.put_transport_request(request.model_copy(update={"distance_km": Decimal("500")}))
    second = await orchestrator.calculate_quote(1, now=NOW)

    assert second.quote.id == first.quote.id
    assert len(await store.list_quotes()) == 1
    assert (await store.get_quote(first.quote.id)).total_price == Decimal("600.00")


@pytest.mark.asyncio
async def test_settled_quote_is_not_recalculated(store, queue, notifier, reference_data):
    await seed(store, [])
    await store.set_reference_data(reference_data)
    orchestrator = Orchestrator(store, queue, notifier)

    first = await orchestrator.calculate_quote(1, now=NOW)
    await store.save_quote(first.quote.model_copy(update={"status": QuoteStatus.ACCEPTED}))
    second = await orchestrator.calculate_quote(1, now=NOW)

    assert not second.ok
    assert second.errors == ["Quote already accepted"]
    assert (await store.get_quote(first.quote.id)).status == QuoteStatus.ACCEPTED


@pytest.mark.asyncio
async def test_calculate_quote_returns_errors_without_storing(store, queue, notifier, reference_data):
    await seed(store, [], distance_km=None)
    await store.set_reference_data(reference_data)

    result = await Orchestrator(store, queue, notifier).calculate_quote(1, now=NOW)

    assert result.errors == ["Distance must be calculated before pricing"]
    assert await store.list_quotes() == []
