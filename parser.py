"""
HTML parser for product pages.

Turns a fetched page into a ParsedPage: the soup for selector strategies,
JSON-LD blocks (each carrying its own parse outcome), Open Graph / product
meta tags, plain meta tags and the raw body for pattern searches.

No retailer-specific logic lives here.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


@dataclass
class JsonLdBlock:
    """One <script type="application/ld+json"> tag.

    ``objects`` holds the dicts found in it (arrays and @graph flattened);
    ``error`` is set when the block did not parse.
    """

    objects: list[dict] = field(default_factory=list)
    error: str | None = None


@dataclass
class ParsedPage:
    """All data sources extracted from an HTML page."""

    soup: BeautifulSoup
    html: str = ""
    url: str = ""
    json_ld: list[JsonLdBlock] = field(default_factory=list)
    og_tags: dict[str, str] = field(default_factory=dict)
    meta_tags: dict[str, str] = field(default_factory=dict)


def parse_html(html: str, url: str = "") -> ParsedPage:
    """Parse an HTML page. Never raises on malformed markup."""
    soup = BeautifulSoup(html or "", "lxml")
    page = ParsedPage(
        soup=soup,
        html=html or "",
        url=url,
        json_ld=_extract_json_ld(soup),
        og_tags=_extract_og_tags(soup),
        meta_tags=_extract_meta_tags(soup),
    )
    malformed = sum(1 for b in page.json_ld if b.error)
    logger.debug(
        f"Parsed {url or 'page'}: {len(page.json_ld)} JSON-LD ({malformed} malformed), "
        f"{len(page.og_tags)} OG tags, {len(page.meta_tags)} meta tags"
    )
    return page


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _flatten_ld(data: Any) -> list[dict]:
    if isinstance(data, list):
        out: list[dict] = []
        for item in data:
            out.extend(_flatten_ld(item))
        return out
    if isinstance(data, dict):
        out = [data]
        graph = data.get("@graph")
        if isinstance(graph, list):
            out.extend(_flatten_ld(graph))
        return out
    return []


def _extract_json_ld(soup: BeautifulSoup) -> list[JsonLdBlock]:
    """Extract all JSON-LD blocks from <script type="application/ld+json"> tags."""
    results: list[JsonLdBlock] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string
        if not text or not text.strip():
            continue
        try:
            results.append(JsonLdBlock(objects=_flatten_ld(json.loads(text))))
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug("Skipping malformed JSON-LD block")
            results.append(JsonLdBlock(error=str(e)))
    return results


# ---------------------------------------------------------------------------
# Meta tags
# ---------------------------------------------------------------------------


def _extract_og_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract Open Graph and product meta tags. Handles both property= and name= attributes."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        prop = meta.get("property", "") or meta.get("name", "")
        if not isinstance(prop, str):
            continue
        content = meta.get("content", "")
        if not content:
            continue
        if prop.startswith("og:"):
            key = prop[3:]
            tags.setdefault(key, content)
        elif prop.startswith("product:"):
            # Facebook product tags (e.g., product:price:amount -> price:amount)
            key = prop[8:]
            tags.setdefault(key, content)
    return tags


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Every other named meta tag (twitter:*, description, ...); first occurrence wins."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        name = meta.get("name") or meta.get("property")
        content = meta.get("content")
        if isinstance(name, str) and content:
            tags.setdefault(name.lower(), content)
    return tags


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def normalize_url(url: str, root: str | None = None) -> str:
    """Add https: to protocol-relative URLs and resolve root-relative ones against ``root``."""
    url = url.strip()
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/") and root:
        return root.rstrip("/") + url
    return url
