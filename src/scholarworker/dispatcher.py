"""
Job dispatcher: one inbound message -> one harvest -> one notification.

Steps per message:
1. Decode the message into a Job (undecodable messages are dropped)
2. Harvest the researcher's profile with pagination on
3. Upsert every record independently, then the citation metrics
4. Publish ``{researcher_id, admin_id}`` to the outbound queue

Nothing is retried. A listing failure aborts the job before anything is
stored or published.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from .config import WorkerConfig
from .harvester import Harvester, HarvestError, compute_metrics
from .storage import PaperStore
from .types import HarvestResult, Job, JobDecodeError

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, queue_name: str, body: bytes) -> None:
        ...


@dataclass(frozen=True)
class JobReport:
    """What happened to one job."""

    job: Job
    result: Optional[HarvestResult] = None
    persisted: int = 0
    persist_failures: int = 0
    published: bool = False
    error: Optional[str] = None


class JobDispatcher:
    """Turns inbound queue messages into harvest runs."""

    def __init__(
        self,
        harvester: Harvester,
        store: PaperStore,
        publisher: Publisher,
        config: Optional[WorkerConfig] = None,
    ):
        self.harvester = harvester
        self.store = store
        self.publisher = publisher
        self.config = config or WorkerConfig()

    async def on_message(self, raw: bytes) -> Optional[JobReport]:
        """Process one inbound message.

        Returns:
            JobReport, or None if the message could not be decoded
        """
        try:
            job = Job.from_message(raw)
        except JobDecodeError as e:
            logger.warning(f"Dropping undecodable message: {e}")
            return None

        logger.info(f"Fetching papers for scholar_id: {job.scholar_id} ({job.name})")

        try:
            result = await self.harvester.run(
                job.scholar_id,
                follow_pagination=True,
                time_budget=self.config.harvest.time_budget,
            )
        except HarvestError as e:
            logger.exception(f"Harvest aborted for {job.scholar_id}")
            return JobReport(job=job, error=str(e))

        fetched_at = datetime.now(timezone.utc)
        persisted, persist_failures = await self._persist(job, result, fetched_at)
        published = await self._notify(job)

        report = JobReport(
            job=job,
            result=result,
            persisted=persisted,
            persist_failures=persist_failures,
            published=published,
        )
        logger.info(
            f"Job done for researcher {job.researcher_id}: "
            f"{persisted} papers stored, {persist_failures} store failures, "
            f"{result.failures} fetch failures, partial={result.partial}"
        )
        return report

    async def _persist(
        self, job: Job, result: HarvestResult, fetched_at: datetime
    ) -> tuple[int, int]:
        logger.info(f"Inserting {len(result.records)} papers for {job.name}")

        persisted = 0
        failed = 0
        for record in result.records:
            try:
                await self.store.upsert_paper(record, job, fetched_at)
                persisted += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Failed to store {record.link}: {e}")

        try:
            await self.store.upsert_metrics(job, compute_metrics(result.records), fetched_at)
        except Exception as e:
            logger.warning(f"Failed to store metrics for {job.researcher_id}: {e}")

        return persisted, failed

    async def _notify(self, job: Job) -> bool:
        body = job.notification().model_dump_json().encode()
        try:
            await self.publisher.publish(self.config.broker.outbound_queue, body)
        except Exception as e:
            logger.error(f"Failed to publish completion for {job.researcher_id}: {e}")
            return False
        return True
