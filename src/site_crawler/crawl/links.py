"""Link extraction from fetched HTML documents."""

from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

# tag -> attribute carrying a URL
LINK_ATTRIBUTES: Dict[str, str] = {
    "a": "href",
    "link": "href",
    "img": "src",
    "script": "src",
    "iframe": "src",
    "frame": "src",
}


def _resolve(page_url: str, value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    try:
        absolute = urljoin(page_url, value)
    except ValueError:
        return None
    return absolute or None


def extract_links(html: str, page_url: str) -> List[str]:
    """Collect absolute link/resource URLs from ``html`` in document order.

    Values that cannot be resolved are dropped; a single bad attribute never
    aborts the extraction of the rest of the document.
    """

    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all(list(LINK_ATTRIBUTES)):
        absolute = _resolve(page_url, tag.get(LINK_ATTRIBUTES[tag.name]))
        if absolute is None or absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)
    return links
