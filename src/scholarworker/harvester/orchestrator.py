"""
Harvest Orchestrator.

Orchestrates the Paginate -> Fetch -> Extract -> Collect flow for one
profile:

- A discovery task walks listing pages in steps of ``page_size`` until one
  comes back empty (or after the first page when pagination is off).
- Every discovered detail link becomes one task; a semaphore caps how many
  fetch at once. Parsing runs in a worker thread so it never stalls the
  loop or the deadline.
- Discovery and detail tasks only talk to the collector through one queue.
  The collector is the sole owner of the task set, the record list and the
  failure counter.
- The whole run is bounded by the time budget. When it expires the result
  is marked partial and every outstanding task is cancelled.

Links are not deduplicated: a link discovered twice yields two records.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Set, Tuple, Union

from ..config import HarvestConfig
from ..types import HarvestResult, Record
from .extractor import RecordExtractor, extract_listing_links
from .fetcher import FetchError, PageFetcher, listing_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingPage:
    links: Tuple[str, ...]


@dataclass(frozen=True)
class ListingEnd:
    """Pagination finished, or failed with ``error``."""

    error: Optional[BaseException] = None


@dataclass(frozen=True)
class TaskFailure:
    """Outcome of a detail task that produced no record."""

    link: str
    error: BaseException


Outcome = Union[ListingPage, ListingEnd, Record, TaskFailure]


class Harvester:
    """Harvests every publication of a profile under a time budget."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: Optional[RecordExtractor] = None,
        config: Optional[HarvestConfig] = None,
    ):
        self.fetcher = fetcher
        self.extractor = extractor or RecordExtractor()
        self.config = config or HarvestConfig()

    async def run(
        self,
        root_id: str,
        follow_pagination: bool = True,
        time_budget: Optional[float] = None,
    ) -> HarvestResult:
        """Run a harvest for a profile.

        Args:
            root_id: Profile identifier seeding pagination
            follow_pagination: Walk every listing page (False = first page only)
            time_budget: Seconds before the run is cut short (default from config)

        Returns:
            HarvestResult, partial if the budget expired

        Raises:
            FetchError, ExtractError: If a listing page fails
        """
        budget = self.config.time_budget if time_budget is None else time_budget
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        outcomes: asyncio.Queue[Outcome] = asyncio.Queue()
        tasks: Set[asyncio.Task] = set()

        records: List[Record] = []
        failures = 0
        pages = 0
        partial = False

        logger.info(f"Starting harvest for {root_id} (budget={budget}s)")

        discovery = asyncio.create_task(
            self._discover(root_id, follow_pagination, outcomes)
        )
        try:
            async with asyncio.timeout(budget):
                paginating = True
                while paginating or len(records) + failures < len(tasks):
                    outcome = await outcomes.get()

                    if isinstance(outcome, ListingPage):
                        pages += 1
                        for link in outcome.links:
                            tasks.add(
                                asyncio.create_task(
                                    self._harvest_one(link, semaphore, outcomes)
                                )
                            )
                    elif isinstance(outcome, ListingEnd):
                        paginating = False
                        if outcome.error is not None:
                            raise outcome.error
                    elif isinstance(outcome, TaskFailure):
                        failures += 1
                        logger.warning(f"Skipping {outcome.link}: {outcome.error}")
                    else:
                        records.append(outcome)
        except TimeoutError:
            partial = True
            outstanding = len(tasks) - len(records) - failures
            logger.warning(
                f"Harvest for {root_id} hit the {budget}s budget: "
                f"{len(records)} collected, {outstanding} outstanding"
            )
        finally:
            await self._cancel_outstanding(tasks | {discovery})

        logger.info(
            f"Harvest for {root_id} {'partial' if partial else 'complete'}: "
            f"{len(records)} records, {failures} failures, {pages} pages"
        )
        return HarvestResult(
            root_id=root_id,
            records=tuple(records),
            partial=partial,
            failures=failures,
            pages_fetched=pages,
            links_discovered=len(tasks),
        )

    async def _discover(
        self, root_id: str, follow_pagination: bool, outcomes: asyncio.Queue
    ) -> None:
        """Report every listing page to the collector, then ListingEnd."""
        try:
            async with aclosing(self._listing_pages(root_id, follow_pagination)) as pages:
                async for links in pages:
                    outcomes.put_nowait(ListingPage(tuple(links)))
        except Exception as e:
            outcomes.put_nowait(ListingEnd(error=e))
        else:
            outcomes.put_nowait(ListingEnd())

    async def _listing_pages(
        self, root_id: str, follow_pagination: bool
    ) -> AsyncIterator[List[str]]:
        """Yield the detail links of each listing page, up to the first empty one."""
        offset = 0
        while True:
            url = listing_url(self.config.base_url, root_id, offset, self.config.page_size)
            logger.info(f"Visiting: {url}")

            content = await self._fetch(url)
            links = extract_listing_links(content, self.config.base_url)
            yield links

            if not links or not follow_pagination:
                return
            offset += self.config.page_size

    async def _fetch(self, url: str) -> str:
        """Fetch a page, bounded by the per-fetch timeout."""
        try:
            return await asyncio.wait_for(
                self.fetcher.fetch(url), self.config.fetch_timeout
            )
        except TimeoutError as e:
            raise FetchError(url, f"timed out after {self.config.fetch_timeout}s") from e

    async def _harvest_one(
        self,
        link: str,
        semaphore: asyncio.Semaphore,
        outcomes: asyncio.Queue,
    ) -> None:
        """Fetch and extract one detail page, reporting through ``outcomes``."""
        async with semaphore:
            try:
                content = await self._fetch(link)
                outcome: Outcome = await asyncio.to_thread(
                    self.extractor.extract, content, link
                )
            except Exception as e:
                outcome = TaskFailure(link=link, error=e)
        outcomes.put_nowait(outcome)

    @staticmethod
    async def _cancel_outstanding(tasks: Set[asyncio.Task]) -> None:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(f"Cancelled {len(pending)} outstanding tasks")
