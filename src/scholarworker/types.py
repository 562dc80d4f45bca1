"""Shared data types: publication records, harvest results and jobs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError


@dataclass(frozen=True)
class Record:
    """One publication extracted from a detail page.

    Every field except ``link`` may be empty. ``link`` is always the URL the
    record was extracted from. ``publication_link`` and ``pdf_link`` are
    ``None`` when the page carries no such anchor.
    """

    link: str
    title: str = ""
    authors: Tuple[str, ...] = ()
    publication_date: str = ""
    journal: str = ""
    volume: str = ""
    issue: str = ""
    pages: str = ""
    publisher: str = ""
    description: str = ""
    total_citations: int = 0
    publication_link: Optional[str] = None
    pdf_link: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        data = asdict(self)
        data["authors"] = list(self.authors)
        return data


@dataclass(frozen=True)
class HarvestResult:
    """Aggregate of one harvest run.

    ``records`` is unordered and may hold duplicates when the same link was
    discovered twice. ``partial`` is set when the time budget expired before
    every detail page reported.
    """

    root_id: str
    records: Tuple[Record, ...] = ()
    partial: bool = False
    failures: int = 0
    pages_fetched: int = 0
    links_discovered: int = 0

    @property
    def complete(self) -> bool:
        return not self.partial


class JobDecodeError(ValueError):
    """Inbound message could not be decoded into a Job."""


class ResearcherRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    researcher_id: str
    name: str
    scholar_id: str


class InboundMessage(BaseModel):
    """Harvest request as published on the inbound queue."""

    model_config = ConfigDict(extra="allow")

    admin_id: str
    researcher: ResearcherRef


class OutboundMessage(BaseModel):
    """Completion notice published on the outbound queue."""

    researcher_id: str
    admin_id: str


@dataclass(frozen=True)
class Job:
    """One unit of inbound work."""

    scholar_id: str
    researcher_id: str
    admin_id: str
    name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, raw: bytes) -> "Job":
        """Decode a raw queue message.

        Raises:
            JobDecodeError: If the body is not valid JSON or misses fields.
        """
        try:
            message = InboundMessage.model_validate_json(raw)
        except ValidationError as e:
            raise JobDecodeError(f"Invalid job message: {e}") from e

        metadata = dict(message.model_extra or {})
        if message.researcher.model_extra:
            metadata["researcher"] = dict(message.researcher.model_extra)

        return cls(
            scholar_id=message.researcher.scholar_id,
            researcher_id=message.researcher.researcher_id,
            admin_id=message.admin_id,
            name=message.researcher.name,
            metadata=metadata,
        )

    def notification(self) -> OutboundMessage:
        """Build the outbound message for this job."""
        return OutboundMessage(researcher_id=self.researcher_id, admin_id=self.admin_id)
