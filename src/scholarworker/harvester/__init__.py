"""
Harvester module for profile publication import.

Components:
- fetcher: PageFetcher protocol and the httpx implementation
- extractor: detail page -> Record, listing page -> detail links
- orchestrator: pagination, bounded fan-out and deadline fan-in
- metrics: h-index / i10-index over harvested records
"""

from .extractor import ExtractError, RecordExtractor, extract_listing_links
from .fetcher import FetchError, HarvestError, HttpPageFetcher, PageFetcher, listing_url
from .metrics import CitationMetrics, compute_metrics
from .orchestrator import Harvester

__all__ = [
    "CitationMetrics",
    "ExtractError",
    "FetchError",
    "HarvestError",
    "Harvester",
    "HttpPageFetcher",
    "PageFetcher",
    "RecordExtractor",
    "compute_metrics",
    "extract_listing_links",
    "listing_url",
]
