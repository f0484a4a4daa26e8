import asyncio
import json

from azure.identity.aio import ClientSecretCredential
from azure.servicebus import ServiceBusMessage, TransportType
from azure.servicebus.aio import ServiceBusClient as AzureServiceBusClient
from azure.servicebus.aio import ServiceBusReceiver

from common.config import config
from common.logging import get_logger
from services.service_bus.local_queue import JobHandler
from services.service_bus.schemas import JobMessage, JobType, NotificationType

logger = get_logger(__name__)


class ServiceBusJobQueue:
    """Job transport on an Azure Service Bus topic.

    Jobs are published to the topic and consumed from the engine's
    subscription. A message is completed only after its job succeeded;
    failures leave it unsettled so Service Bus redelivers it and eventually
    dead-letters it once the subscription's max delivery count is reached.
    """

    def __init__(self):
        # Azure Service Bus
        self.topic_name = config.SERVICE_BUS_TOPIC_NAME
        self.subscription_name = config.SERVICE_BUS_SUBSCRIPTION_NAME
        self.client = self._create_service_bus_client()

        # Config
        self.max_concurrent = config.SERVICE_BUS_MAX_CONCURRENT

        # Background task tracking
        self._active_tasks: set[asyncio.Task] = set()

    def _create_service_bus_client(self) -> AzureServiceBusClient:
        credential = ClientSecretCredential(
            tenant_id=config.AZURE_TENANT_ID,
            client_id=config.AZURE_CLIENT_ID,
            client_secret=config.AZURE_CLIENT_SECRET.get_secret_value(),
        )

        client_kwargs = {
            "fully_qualified_namespace": config.SERVICE_BUS_NAMESPACE,
            "credential": credential,
        }

        if config.SERVICE_BUS_USE_WEBSOCKET:
            client_kwargs["transport_type"] = TransportType.AmqpOverWebsocket
            logger.info("Using WebSocket transport (VPN-compatible, port 443)")
        else:
            logger.info("Using AMQP transport (standard, port 5671)")

        return AzureServiceBusClient(**client_kwargs)

    # ============================================================================
    # PUBLISH
    # ============================================================================

    async def publish(self, event: dict, correlation_id: str | None = None) -> None:
        """Publish an event to the topic."""
        event_type = event.get("eventType")
        sender = self.client.get_topic_sender(topic_name=self.topic_name)
        async with sender:
            msg = ServiceBusMessage(json.dumps(event), subject=event_type, correlation_id=correlation_id)
            await sender.send_messages(msg)
            logger.info(f"Published event: {event_type}")

    async def schedule(self, job_type: JobType, transport_request_id: int) -> JobMessage:
        """Schedule a job by publishing it. Execution happens in whichever worker receives it."""
        job = JobMessage(job_type=job_type, transport_request_id=transport_request_id)
        await self.publish(job.to_event(), correlation_id=str(transport_request_id))
        return job

    # ============================================================================
    # LISTEN & PROCESS
    # ============================================================================

    async def listen(self, handler: JobHandler) -> None:
        """Start the listener loop."""
        semaphore = asyncio.Semaphore(self.max_concurrent)

        try:
            async with self.client:
                receiver = self.client.get_subscription_receiver(
                    topic_name=self.topic_name,
                    subscription_name=self.subscription_name,
                    max_lock_renewal_duration=300,  # 5 minutes
                    prefetch_count=self.max_concurrent,
                )
                async with receiver:
                    logger.info(
                        f"Listening on {self.topic_name}/{self.subscription_name} "
                        f"(max_concurrent={self.max_concurrent})"
                    )
                    async for msg in receiver:
                        # Clean up completed tasks
                        self._active_tasks = {t for t in self._active_tasks if not t.done()}

                        task = asyncio.create_task(
                            self._handle_message_with_semaphore(msg, receiver, handler, semaphore)
                        )
                        self._active_tasks.add(task)

        except asyncio.CancelledError:
            logger.info("Listener cancelled, waiting for active tasks...")
            if self._active_tasks:
                await asyncio.gather(*self._active_tasks, return_exceptions=True)
            logger.info("All tasks completed. Shutting down...")
            raise
        except Exception as e:
            logger.error(f"Listener error: {e}")
            raise

    async def _handle_message_with_semaphore(
        self,
        message: ServiceBusMessage,
        receiver: ServiceBusReceiver,
        handler: JobHandler,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            await self._handle_message(message, receiver, handler)

    async def _handle_message(self, message: ServiceBusMessage, receiver: ServiceBusReceiver, handler: JobHandler) -> None:
        """Process a single message: parse -> run job -> ACK."""
        try:
            event_body = json.loads(str(message))
            event_type = event_body.get("eventType")
            event_id = event_body.get("eventId", "unknown")
            logger.info(f"Event received: {event_type} | id={event_id} | Processing...")

            # Our own notifications travel on the same topic
            if event_type in NotificationType.values():
                logger.debug(f"Skipping notification event: {event_type}")
                await receiver.complete_message(message)
                return

            try:
                job = JobMessage.from_event(event_body, attempt=getattr(message, "delivery_count", 0) + 1)
            except ValueError as e:
                logger.warning(f"Event '{event_type}' not accepted ({e}). Dead-lettering.")
                await receiver.dead_letter_message(
                    message,
                    reason="UnknownEventType",
                    error_description=str(e),
                )
                return

            result = await handler(job)
            logger.info(f"Job completed: {job.job_type.value} | id={job.event_id} | result={result}")

            await receiver.complete_message(message)
            logger.info(f"Message {message.message_id} completed")

        except Exception as e:
            logger.exception(f"Processing failed for message {message.message_id}: {e}")
            # Don't complete message - let Service Bus retry or dead-letter after max attempts

    async def shutdown(self) -> None:
        """Graceful shutdown: wait for in-flight jobs."""
        logger.info("Shutting down ServiceBusJobQueue...")
        if self._active_tasks:
            logger.info(f"Waiting for {len(self._active_tasks)} active tasks to complete...")
            await asyncio.gather(*self._active_tasks, return_exceptions=True)
            logger.info("All active tasks completed")
        await self.client.close()
