"""Citation metrics over a set of harvested records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..types import Record


@dataclass(frozen=True)
class CitationMetrics:
    total_papers: int = 0
    total_citations: int = 0
    h_index: int = 0
    i10_index: int = 0


def compute_metrics(records: Iterable[Record]) -> CitationMetrics:
    """Compute h-index, i10-index and citation totals.

    h-index is the largest h such that h records have at least h citations.
    """
    citations = sorted((r.total_citations for r in records), reverse=True)

    h_index = 0
    for rank, count in enumerate(citations, start=1):
        if count < rank:
            break
        h_index = rank

    return CitationMetrics(
        total_papers=len(citations),
        total_citations=sum(citations),
        h_index=h_index,
        i10_index=sum(1 for count in citations if count >= 10),
    )
