"""
ScholarWorker - queue-driven publication harvester.

Provides:
- Harvester: paginated, bounded-concurrency, deadline-bounded harvest
- JobDispatcher: inbound message -> harvest -> store -> notify
- run_worker: RabbitMQ/PostgreSQL process wiring

Usage:
    from scholarworker import Harvester, HttpPageFetcher

    async with HttpPageFetcher() as fetcher:
        result = await Harvester(fetcher).run("MNj1Dw4AAAAJ")
"""

__version__ = "0.1.0"

from .config import BrokerConfig, HarvestConfig, WorkerConfig, get_config
from .dispatcher import JobDispatcher, JobReport
from .harvester import (
    ExtractError,
    FetchError,
    Harvester,
    HttpPageFetcher,
    RecordExtractor,
)
from .types import HarvestResult, Job, JobDecodeError, Record
from .worker import run_worker

__all__ = [
    "__version__",
    # Config
    "BrokerConfig",
    "HarvestConfig",
    "WorkerConfig",
    "get_config",
    # Harvest
    "ExtractError",
    "FetchError",
    "Harvester",
    "HttpPageFetcher",
    "RecordExtractor",
    # Jobs
    "HarvestResult",
    "Job",
    "JobDecodeError",
    "JobDispatcher",
    "JobReport",
    "Record",
    "run_worker",
]
