"""
Persistence for the engine.

The engine talks to storage through the Store protocol. Every multi-record
state change runs inside `store.transaction()`, which must be all-or-nothing
and must serialise against other transactions so read-then-claim sequences
cannot interleave.

InMemoryStore backs development, the seeded API and the tests.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import UTC, datetime
from typing import Protocol

from common.errors import NotFoundError
from common.logging import get_logger
from models.carrier import Carrier
from models.carrier_request import CarrierRequest, CarrierRequestStatus
from models.quote import Quote, QuoteStatus
from models.reference import ReferenceData
from models.transport_request import TransportRequest

logger = get_logger(__name__)


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    # Transport requests
    async def get_transport_request(self, transport_request_id: int) -> TransportRequest: ...
    async def put_transport_request(self, request: TransportRequest) -> TransportRequest: ...

    # Carriers and reference data
    async def get_carrier(self, carrier_id: int) -> Carrier: ...
    async def list_carriers(self) -> list[Carrier]: ...
    async def put_carrier(self, carrier: Carrier) -> Carrier: ...
    async def get_reference_data(self) -> ReferenceData: ...
    async def set_reference_data(self, reference_data: ReferenceData) -> None: ...

    # Carrier requests
    async def get_carrier_request(self, carrier_request_id: int) -> CarrierRequest: ...
    async def list_carrier_requests(
        self, transport_request_id: int, status: CarrierRequestStatus | None = None
    ) -> list[CarrierRequest]: ...
    async def add_carrier_request(self, carrier_request: CarrierRequest) -> CarrierRequest: ...
    async def put_carrier_request(self, carrier_request: CarrierRequest) -> CarrierRequest: ...

    # Quotes
    async def get_quote(self, quote_id: int) -> Quote: ...
    async def find_quote(self, transport_request_id: int) -> Quote | None: ...
    async def list_quotes(self, status: QuoteStatus | None = None) -> list[Quote]: ...
    async def save_quote(self, quote: Quote) -> Quote: ...


class InMemoryStore:
    """Dict-backed Store. Records are copied on the way in and out."""

    def __init__(self):
        self._transport_requests: dict[int, TransportRequest] = {}
        self._carriers: dict[int, Carrier] = {}
        self._carrier_requests: dict[int, CarrierRequest] = {}
        self._quotes: dict[int, Quote] = {}
        self._reference_data = ReferenceData()

        self._next_carrier_request_id = 1
        self._next_quote_id = 1
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Serialise against other transactions and roll back every table on error."""
        async with self._lock:
            snapshot = (
                dict(self._transport_requests),
                dict(self._carriers),
                dict(self._carrier_requests),
                dict(self._quotes),
                self._reference_data,
                self._next_carrier_request_id,
                self._next_quote_id,
            )
            try:
                yield
            except BaseException:
                (
                    self._transport_requests,
                    self._carriers,
                    self._carrier_requests,
                    self._quotes,
                    self._reference_data,
                    self._next_carrier_request_id,
                    self._next_quote_id,
                ) = snapshot
                logger.debug("Transaction rolled back")
                raise

    # ------------------------------------------------------------------
    # Transport requests
    # ------------------------------------------------------------------

    async def get_transport_request(self, transport_request_id: int) -> TransportRequest:
        request = self._transport_requests.get(transport_request_id)
        if request is None:
            raise NotFoundError("TransportRequest", transport_request_id)
        return request.model_copy(deep=True)

    async def put_transport_request(self, request: TransportRequest) -> TransportRequest:
        self._transport_requests[request.id] = request.model_copy(deep=True)
        return request

    # ------------------------------------------------------------------
    # Carriers and reference data
    # ------------------------------------------------------------------

    async def get_carrier(self, carrier_id: int) -> Carrier:
        carrier = self._carriers.get(carrier_id)
        if carrier is None:
            raise NotFoundError("Carrier", carrier_id)
        return carrier.model_copy(deep=True)

    async def list_carriers(self) -> list[Carrier]:
        return [c.model_copy(deep=True) for c in self._carriers.values()]

    async def put_carrier(self, carrier: Carrier) -> Carrier:
        self._carriers[carrier.id] = carrier.model_copy(deep=True)
        return carrier

    async def get_reference_data(self) -> ReferenceData:
        return self._reference_data

    async def set_reference_data(self, reference_data: ReferenceData) -> None:
        self._reference_data = reference_data

    # ------------------------------------------------------------------
    # Carrier requests
    # ------------------------------------------------------------------

    async def get_carrier_request(self, carrier_request_id: int) -> CarrierRequest:
        carrier_request = self._carrier_requests.get(carrier_request_id)
        if carrier_request is None:
            raise NotFoundError("CarrierRequest", carrier_request_id)
        return carrier_request.model_copy(deep=True)

    async def list_carrier_requests(
        self, transport_request_id: int, status: CarrierRequestStatus | None = None
    ) -> list[CarrierRequest]:
        return [
            cr.model_copy(deep=True)
            for cr in self._carrier_requests.values()
            if cr.transport_request_id == transport_request_id and (status is None or cr.status == status)
        ]

    async def add_carrier_request(self, carrier_request: CarrierRequest) -> CarrierRequest:
        created = carrier_request.model_copy(
            update={
                "id": self._next_carrier_request_id,
                "created_at": carrier_request.created_at or datetime.now(UTC),
            },
            deep=True,
        )
        self._next_carrier_request_id += 1
        self._carrier_requests[created.id] = created
        return created.model_copy(deep=True)

    async def put_carrier_request(self, carrier_request: CarrierRequest) -> CarrierRequest:
        if carrier_request.id not in self._carrier_requests:
            raise NotFoundError("CarrierRequest", carrier_request.id)
        self._carrier_requests[carrier_request.id] = carrier_request.model_copy(deep=True)
        return carrier_request

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def get_quote(self, quote_id: int) -> Quote:
        quote = self._quotes.get(quote_id)
        if quote is None:
            raise NotFoundError("Quote", quote_id)
        return quote.model_copy(deep=True)

    async def find_quote(self, transport_request_id: int) -> Quote | None:
        for quote in self._quotes.values():
            if quote.transport_request_id == transport_request_id:
                return quote.model_copy(deep=True)
        return None

    async def list_quotes(self, status: QuoteStatus | None = None) -> list[Quote]:
        return [q.model_copy(deep=True) for q in self._quotes.values() if status is None or q.status == status]

    async def save_quote(self, quote: Quote) -> Quote:
        """Insert or replace a quote together with its line items."""
        if quote.id is None:
            quote = quote.model_copy(update={"id": self._next_quote_id})
            self._next_quote_id += 1
        self._quotes[quote.id] = quote.model_copy(deep=True)
        return quote.model_copy(deep=True)
