"""
Carrier notifications.

The engine decides *when* a carrier is notified; rendering and delivering the
email is the mailer's job. Dispatchers either log the notification
(development) or publish it as an event for the mailer service.
"""

import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Protocol

from common.logging import get_logger
from models.carrier_request import CarrierRequest
from services.service_bus.schemas import SOURCE_SYSTEM, NotificationType

logger = get_logger(__name__)


class NotificationDispatcher(Protocol):
    async def send_invitation(self, carrier_request: CarrierRequest) -> None: ...
    async def send_offer_accepted(self, carrier_request: CarrierRequest) -> None: ...
    async def send_offer_rejected(self, carrier_request: CarrierRequest) -> None: ...


class LoggingNotifier:
    """Logs notifications instead of sending them. Keeps a record for inspection."""

    def __init__(self):
        self.sent: list[tuple[NotificationType, int]] = []

    async def _send(self, notification: NotificationType, carrier_request: CarrierRequest) -> None:
        self.sent.append((notification, carrier_request.id))
        logger.info(
            f"[Notify] {notification.value} -> carrier {carrier_request.carrier_id} "
            f"(carrier request {carrier_request.id}, transport request {carrier_request.transport_request_id})"
        )

    async def send_invitation(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.INVITATION, carrier_request)

    async def send_offer_accepted(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.OFFER_ACCEPTED, carrier_request)

    async def send_offer_rejected(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.OFFER_REJECTED, carrier_request)


class EventNotifier:
    """Publishes notifications as events (e.g. ServiceBusJobQueue.publish)."""

    def __init__(self, publish: Callable[..., Awaitable[None]]):
        self.publish = publish

    async def _send(self, notification: NotificationType, carrier_request: CarrierRequest) -> None:
        event = {
            "eventId": str(uuid.uuid4()),
            "eventType": notification.value,
            "eventVersion": "1.0",
            "eventTimestamp": datetime.now(UTC).isoformat(),
            "sourceSystem": SOURCE_SYSTEM,
            "data": {
                "carrierRequestId": carrier_request.id,
                "carrierId": carrier_request.carrier_id,
                "transportRequestId": carrier_request.transport_request_id,
            },
        }
        await self.publish(event, correlation_id=str(carrier_request.transport_request_id))

    async def send_invitation(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.INVITATION, carrier_request)

    async def send_offer_accepted(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.OFFER_ACCEPTED, carrier_request)

    async def send_offer_rejected(self, carrier_request: CarrierRequest) -> None:
        await self._send(NotificationType.OFFER_REJECTED, carrier_request)
