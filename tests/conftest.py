"""
Shared fakes and page builders for ScholarWorker tests.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import pytest

from scholarworker.config import HarvestConfig
from scholarworker.harvester import FetchError

BASE_URL = "https://scholar.test"


def listing_page(hrefs: List[str]) -> str:
    rows = "".join(
        f'<tr class="gsc_a_tr"><td class="gsc_a_t">'
        f'<a href="{href}" class="gsc_a_at">Paper</a></td></tr>'
        for href in hrefs
    )
    return f'<html><body><table><tbody id="gsc_a_b">{rows}</tbody></table></body></html>'


def detail_page(
    title: str = "",
    fields: Optional[Dict[str, str]] = None,
    description: str = "",
    pdf_href: Optional[str] = None,
    title_href: Optional[str] = None,
) -> str:
    href = f' href="{title_href}"' if title_href else ""
    blocks = "".join(
        f'<div class="gs_scl"><div class="gsc_oci_field">{label}</div>'
        f'<div class="gsc_oci_value">{value}</div></div>'
        for label, value in (fields or {}).items()
    )
    pdf = (
        f'<div id="gsc_vcpb"><div class="gsc_oci_title_ggi"><a href="{pdf_href}">[PDF]</a></div></div>'
        if pdf_href
        else ""
    )
    return (
        "<html><body>"
        f'<div id="gsc_oci_title"><a class="gsc_oci_title_link"{href}>{title}</a></div>'
        f"{pdf}"
        f'<div id="gsc_oci_table">{blocks}'
        f'<div class="gs_scl"><div class="gsc_oci_field">Description</div>'
        f'<div class="gsc_oci_value" id="gsc_oci_descr">{description}</div></div>'
        "</div></body></html>"
    )


Response = Union[str, Exception, float]


class FakeFetcher:
    """In-memory PageFetcher.

    ``listings`` maps a listing offset to page content; ``details`` maps a
    detail URL to content, an exception to raise, or a delay in seconds
    (followed by a generic detail page).
    """

    def __init__(
        self,
        listings: Dict[int, Union[str, Exception]],
        details: Optional[Dict[str, Response]] = None,
    ):
        self.listings = listings
        self.details = details or {}
        self.fetched: List[str] = []
        self.listing_offsets: List[int] = []
        self.cancelled: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str) -> str:
        self.fetched.append(url)
        parsed = urlparse(url)
        if parsed.path == "/citations" and "cstart" in parsed.query:
            offset = int(parse_qs(parsed.query)["cstart"][0])
            self.listing_offsets.append(offset)
            page = self.listings.get(offset, listing_page([]))
            if isinstance(page, Exception):
                raise page
            return page

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            response = self.details.get(url, detail_page(title=url))
            await asyncio.sleep(0)
            if isinstance(response, Exception):
                raise response
            if isinstance(response, float):
                try:
                    await asyncio.sleep(response)
                except asyncio.CancelledError:
                    self.cancelled.append(url)
                    raise
                return detail_page(title=url)
            return response
        finally:
            self.in_flight -= 1


def detail_url(n: int) -> str:
    return f"{BASE_URL}/citations?view_op=view_citation&citation_for_view=S1:{n}"


def detail_href(n: int) -> str:
    return f"/citations?view_op=view_citation&citation_for_view=S1:{n}"


@pytest.fixture
def harvest_config() -> HarvestConfig:
    return HarvestConfig(
        base_url=BASE_URL,
        page_size=100,
        max_concurrency=4,
        time_budget=5.0,
        fetch_timeout=2.0,
    )


@pytest.fixture
def fetch_error() -> FetchError:
    return FetchError("https://scholar.test/x", "HTTP 503")
