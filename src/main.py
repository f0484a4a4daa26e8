#!/usr/bin/env python3
"""
FastAPI server for the freight matching engine.
Runs the job worker (in-process or Azure Service Bus) alongside the API.
"""

# Load environment variables first
import asyncio
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI  # noqa: E402

from common.config import config  # noqa: E402
from common.logging import get_logger  # noqa: E402
from jobs.orchestrator import Orchestrator  # noqa: E402
from routes import health, transport_requests  # noqa: E402
from services.notifications import EventNotifier, LoggingNotifier  # noqa: E402
from services.seed_loader import load_seed_file  # noqa: E402
from services.service_bus.local_queue import LocalJobQueue  # noqa: E402
from services.store import InMemoryStore  # noqa: E402

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = InMemoryStore()
    await load_seed_file(store, config.seed_file)

    if config.job_backend == "service_bus":
        from services.service_bus.client import ServiceBusJobQueue

        queue = ServiceBusJobQueue()
        notifier = EventNotifier(queue.publish) if config.notifications_enabled else LoggingNotifier()
        orchestrator = Orchestrator(store, queue, notifier)
        app.state.worker_task = asyncio.create_task(queue.listen(orchestrator.handle_job))
    else:
        queue = LocalJobQueue()
        notifier = LoggingNotifier()
        orchestrator = Orchestrator(store, queue, notifier)
        queue.start(orchestrator.handle_job)
        app.state.worker_task = None

    app.state.store = store
    app.state.queue = queue
    app.state.orchestrator = orchestrator
    logger.info(f"Matching engine started (job_backend={config.job_backend})")

    yield

    worker_task = app.state.worker_task
    if worker_task is not None:
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)
    await queue.shutdown()


# Initialize
app = FastAPI(
    title="Freight Matching Engine API",
    description="Carrier matching, quote pricing and invitation workflow for transport requests",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(transport_requests.router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8080))

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info",
    )
