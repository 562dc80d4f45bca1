"""
Record extraction from rendered profile pages.

Detail pages lay out their metadata as repeated field blocks::

    <div class="gs_scl">
      <div class="gsc_oci_field">Journal</div>
      <div class="gsc_oci_value">Nature</div>
    </div>

Each block is matched by its exact label against ``FIELD_RULES``. A label
that never appears leaves the field empty; only content that is not a
document at all is an error.

Known limitation: author lists are split on ", ", so a single author name
containing ", " is split into two entries.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..types import Record
from .fetcher import HarvestError

TITLE_SELECTOR = "#gsc_oci_title"
DESCRIPTION_SELECTOR = "#gsc_oci_descr"
PUBLICATION_LINK_SELECTOR = "#gsc_oci_title a"
PDF_LINK_SELECTOR = "#gsc_vcpb .gsc_oci_title_ggi a"
FIELD_BLOCK_SELECTOR = ".gs_scl"
FIELD_LABEL_SELECTOR = ".gsc_oci_field"
FIELD_VALUE_SELECTOR = ".gsc_oci_value"
LISTING_LINK_SELECTOR = "#gsc_a_b .gsc_a_t a"

AUTHOR_SEPARATOR = ", "
_DIGITS = re.compile(r"\d+")


class ExtractError(HarvestError):
    """Page content could not be parsed as a document."""


def split_authors(value: str) -> Tuple[str, ...]:
    return tuple(name.strip() for name in value.split(AUTHOR_SEPARATOR) if name.strip())


def parse_citations(value: str) -> int:
    """Return the first run of digits in ``value``, or 0 if there is none."""
    match = _DIGITS.search(value)
    return int(match.group(0)) if match else 0


def _value_text(node: Tag) -> str:
    return node.get_text().strip()


def _authors(node: Tag) -> Tuple[str, ...]:
    return split_authors(_value_text(node))


def _citations(node: Tag) -> int:
    # the value also holds a per-year graph; its years and counts are
    # adjacent text nodes, so only the "Cited by N" anchor is read
    anchor = node.select_one("a")
    return parse_citations(anchor.get_text(" ") if anchor is not None else node.get_text(" "))


# label -> (Record attribute, value converter)
FIELD_RULES: Dict[str, Tuple[str, Callable[[Tag], Any]]] = {
    "Authors": ("authors", _authors),
    "Publication date": ("publication_date", _value_text),
    "Journal": ("journal", _value_text),
    "Volume": ("volume", _value_text),
    "Issue": ("issue", _value_text),
    "Pages": ("pages", _value_text),
    "Publisher": ("publisher", _value_text),
    "Total citations": ("total_citations", _citations),
}


def _parse(content: str) -> BeautifulSoup:
    if not isinstance(content, str) or not content.strip():
        raise ExtractError("Empty page content")
    try:
        soup = BeautifulSoup(content, "html.parser")
    except Exception as e:
        raise ExtractError(f"Unparseable page content: {e}") from e
    if soup.find() is None:
        raise ExtractError("Page content contains no elements")
    return soup


def _text(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return node.get_text().strip() if node is not None else ""


def _href(soup: BeautifulSoup, selector: str, base: str) -> Optional[str]:
    node = soup.select_one(selector)
    if node is None:
        return None
    href = (node.get("href") or "").strip()
    return urljoin(base, href) if href else None


class RecordExtractor:
    """Turns one rendered detail page into a Record."""

    def extract(self, content: str, source_link: str) -> Record:
        """Extract a Record from detail page content.

        Raises:
            ExtractError: If ``content`` is not a parseable document.
        """
        soup = _parse(content)

        fields: Dict[str, Any] = {}
        for block in soup.select(FIELD_BLOCK_SELECTOR):
            label = block.select_one(FIELD_LABEL_SELECTOR)
            if label is None:
                continue
            rule = FIELD_RULES.get(label.get_text().strip())
            if rule is None:
                continue
            attr, convert = rule
            if attr in fields:
                continue
            value = block.select_one(FIELD_VALUE_SELECTOR)
            if value is None:
                continue
            fields[attr] = convert(value)

        return Record(
            link=source_link,
            title=_text(soup, TITLE_SELECTOR),
            description=_text(soup, DESCRIPTION_SELECTOR),
            publication_link=_href(soup, PUBLICATION_LINK_SELECTOR, source_link),
            pdf_link=_href(soup, PDF_LINK_SELECTOR, source_link),
            **fields,
        )


def extract_listing_links(content: str, base_url: str) -> List[str]:
    """Return the detail-page URLs of one listing page, in page order.

    Raises:
        ExtractError: If ``content`` is not a parseable document.
    """
    soup = _parse(content)
    links = []
    for anchor in soup.select(LISTING_LINK_SELECTOR):
        href = (anchor.get("href") or "").strip()
        if href:
            links.append(urljoin(base_url, href))
    return links
