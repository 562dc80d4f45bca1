"""ScholarWorker - queue-driven publication harvester.

Consumes harvest jobs from RabbitMQ, stores the harvested papers in
PostgreSQL and notifies the downstream calculation queue.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from .broker import RabbitBroker
from .config import WorkerConfig, get_config
from .dispatcher import JobDispatcher
from .harvester import Harvester, HttpPageFetcher
from .storage import PaperStore

logger = logging.getLogger(__name__)


async def run_worker(
    config: Optional[WorkerConfig] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the worker until SIGINT/SIGTERM (or ``stop_event`` is set)."""
    config = config or get_config()
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    signals = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            signals.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Cannot install handler for {sig.name}")

    store = PaperStore(config.database_url)
    broker = RabbitBroker(config.broker)
    fetcher = HttpPageFetcher(config.harvest)

    try:
        await store.ensure_schema()
        await broker.connect()

        dispatcher = JobDispatcher(
            harvester=Harvester(fetcher, config=config.harvest),
            store=store,
            publisher=broker,
            config=config,
        )
        await broker.consume(config.broker.inbound_queue, dispatcher.on_message)

        logger.info(f"--- {config.service_name} started ---")
        await stop_event.wait()
        logger.info("Shutting down...")
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        await broker.close()
        await fetcher.aclose()
        await store.close()
