"""
Paper store on PostgreSQL.

One row per harvested record, keyed by ``(link, researcher_id, admin_id)``.
Writes are upserts so a redelivered job rewrites the same rows instead of
duplicating them. The connection runs in autocommit mode: a failed
statement never aborts the statements after it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import psycopg
from psycopg.rows import dict_row

from .harvester.metrics import CitationMetrics
from .types import Job, Record

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS papers (
    id BIGSERIAL PRIMARY KEY,
    link TEXT NOT NULL,
    researcher_id TEXT NOT NULL,
    admin_id TEXT NOT NULL,
    researcher_name TEXT NOT NULL DEFAULT '',
    scholar_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    authors TEXT[] NOT NULL DEFAULT '{}',
    publication_date TEXT NOT NULL DEFAULT '',
    journal TEXT NOT NULL DEFAULT '',
    volume TEXT NOT NULL DEFAULT '',
    issue TEXT NOT NULL DEFAULT '',
    pages TEXT NOT NULL DEFAULT '',
    publisher TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    total_citations INTEGER NOT NULL DEFAULT 0,
    publication_link TEXT,
    pdf_link TEXT,
    tags TEXT[] NOT NULL DEFAULT '{}',
    last_fetch TIMESTAMPTZ NOT NULL,
    UNIQUE (link, researcher_id, admin_id)
);

CREATE TABLE IF NOT EXISTS researcher_metrics (
    researcher_id TEXT PRIMARY KEY,
    admin_id TEXT NOT NULL,
    total_papers INTEGER NOT NULL DEFAULT 0,
    total_citations INTEGER NOT NULL DEFAULT 0,
    h_index INTEGER NOT NULL DEFAULT 0,
    i10_index INTEGER NOT NULL DEFAULT 0,
    last_fetch TIMESTAMPTZ NOT NULL
);
"""

UPSERT_PAPER = """
INSERT INTO papers (
    link, researcher_id, admin_id, researcher_name, scholar_id,
    title, authors, publication_date, journal, volume, issue, pages,
    publisher, description, total_citations, publication_link, pdf_link,
    last_fetch
) VALUES (
    %(link)s, %(researcher_id)s, %(admin_id)s, %(researcher_name)s, %(scholar_id)s,
    %(title)s, %(authors)s, %(publication_date)s, %(journal)s, %(volume)s,
    %(issue)s, %(pages)s, %(publisher)s, %(description)s, %(total_citations)s,
    %(publication_link)s, %(pdf_link)s, %(last_fetch)s
)
ON CONFLICT (link, researcher_id, admin_id) DO UPDATE SET
    researcher_name = EXCLUDED.researcher_name,
    scholar_id = EXCLUDED.scholar_id,
    title = EXCLUDED.title,
    authors = EXCLUDED.authors,
    publication_date = EXCLUDED.publication_date,
    journal = EXCLUDED.journal,
    volume = EXCLUDED.volume,
    issue = EXCLUDED.issue,
    pages = EXCLUDED.pages,
    publisher = EXCLUDED.publisher,
    description = EXCLUDED.description,
    total_citations = EXCLUDED.total_citations,
    publication_link = EXCLUDED.publication_link,
    pdf_link = EXCLUDED.pdf_link,
    last_fetch = EXCLUDED.last_fetch
"""

UPSERT_METRICS = """
INSERT INTO researcher_metrics (
    researcher_id, admin_id, total_papers, total_citations,
    h_index, i10_index, last_fetch
) VALUES (
    %(researcher_id)s, %(admin_id)s, %(total_papers)s, %(total_citations)s,
    %(h_index)s, %(i10_index)s, %(last_fetch)s
)
ON CONFLICT (researcher_id) DO UPDATE SET
    admin_id = EXCLUDED.admin_id,
    total_papers = EXCLUDED.total_papers,
    total_citations = EXCLUDED.total_citations,
    h_index = EXCLUDED.h_index,
    i10_index = EXCLUDED.i10_index,
    last_fetch = EXCLUDED.last_fetch
"""


def paper_row(record: Record, job: Job, fetched_at: datetime) -> Dict[str, Any]:
    """Build the parameters of one paper upsert."""
    row = record.to_dict()
    row.update(
        researcher_id=job.researcher_id,
        admin_id=job.admin_id,
        researcher_name=job.name,
        scholar_id=job.scholar_id,
        last_fetch=fetched_at,
    )
    return row


class PaperStore:
    """Persists harvested papers and per-researcher metrics."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._conn: Optional[psycopg.AsyncConnection] = None

    async def _get_conn(self) -> psycopg.AsyncConnection:
        """Lazy autocommit connection."""
        if self._conn is None or self._conn.closed:
            if not self.database_url:
                raise ValueError("DATABASE_URL not configured")
            self._conn = await psycopg.AsyncConnection.connect(
                self.database_url, autocommit=True, row_factory=dict_row
            )
        return self._conn

    async def ensure_schema(self) -> None:
        conn = await self._get_conn()
        async with conn.cursor() as cur:
            await cur.execute(SCHEMA)
        logger.info("Paper store schema ready")

    async def upsert_paper(self, record: Record, job: Job, fetched_at: datetime) -> None:
        conn = await self._get_conn()
        async with conn.cursor() as cur:
            await cur.execute(UPSERT_PAPER, paper_row(record, job, fetched_at))

    async def upsert_metrics(
        self, job: Job, metrics: CitationMetrics, fetched_at: datetime
    ) -> None:
        conn = await self._get_conn()
        async with conn.cursor() as cur:
            await cur.execute(
                UPSERT_METRICS,
                {
                    "researcher_id": job.researcher_id,
                    "admin_id": job.admin_id,
                    "total_papers": metrics.total_papers,
                    "total_citations": metrics.total_citations,
                    "h_index": metrics.h_index,
                    "i10_index": metrics.i10_index,
                    "last_fetch": fetched_at,
                },
            )

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
