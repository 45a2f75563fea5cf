"""
Retailer classification by URL pattern matching. No network access.

Host patterns are matched against the parsed hostname (anchored on a label
boundary) and path markers against the path + query, so the two retailers'
pattern sets cannot match each other's URLs.
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from models import Classification, Retailer

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)


@dataclass(frozen=True)
class SitePatterns:
    retailer: Retailer
    hosts: tuple[re.Pattern, ...]
    shortener_hosts: frozenset[str]
    path_markers: tuple[re.Pattern, ...]


MERCADO_LIVRE_PATTERNS = SitePatterns(
    retailer=Retailer.MERCADO_LIVRE,
    hosts=(
        re.compile(r"(^|\.)mercadoli[vb]re\.com(\.[a-z]{2})?$", re.IGNORECASE),
        re.compile(r"(^|\.)meli\.la$", re.IGNORECASE),
    ),
    shortener_hosts=frozenset({"meli.la"}),
    path_markers=(
        re.compile(r"/MLB[-_]?\d{6,}", re.IGNORECASE),
        re.compile(r"/p/MLB\d+", re.IGNORECASE),
    ),
)

AMAZON_PATTERNS = SitePatterns(
    retailer=Retailer.AMAZON,
    hosts=(
        re.compile(r"(^|\.)amazon\.(com|[a-z]{2})(\.[a-z]{2})?$", re.IGNORECASE),
        re.compile(r"(^|\.)amzn\.(to|com)$", re.IGNORECASE),
        re.compile(r"^a\.co$", re.IGNORECASE),
    ),
    shortener_hosts=frozenset({"amzn.to", "a.co"}),
    path_markers=(
        re.compile(r"/dp/(?!MLB)[A-Z0-9]{10}", re.IGNORECASE),
        re.compile(r"/gp/(product|aw/d)/[A-Z0-9]{10}", re.IGNORECASE),
        re.compile(r"[?&]asin=[A-Z0-9]{10}", re.IGNORECASE),
        re.compile(r"/ASIN/[A-Z0-9]{10}", re.IGNORECASE),
    ),
)

# Priority order: the first retailer whose patterns match wins.
SITE_PATTERNS: dict[Retailer, SitePatterns] = {
    Retailer.MERCADO_LIVRE: MERCADO_LIVRE_PATTERNS,
    Retailer.AMAZON: AMAZON_PATTERNS,
}


def ensure_scheme(url: str) -> str:
    """Prefix ``https://`` when the string carries no scheme."""
    url = url.strip()
    if _SCHEME_RE.match(url):
        return url
    return "https://" + url.lstrip("/")


def host_of(url: str) -> str:
    """Lowercased hostname, or "" when the URL cannot be parsed."""
    try:
        return (urlsplit(ensure_scheme(url)).hostname or "").lower()
    except ValueError:
        return ""


def is_shortener_host(host: str, patterns: SitePatterns) -> bool:
    return any(host == d or host.endswith("." + d) for d in patterns.shortener_hosts)


def _host_matches(host: str, patterns: SitePatterns) -> bool:
    return bool(host) and any(p.search(host) for p in patterns.hosts)


def matches(url: str | None, retailer: Retailer) -> bool:
    """True when ``url`` belongs to ``retailer``. Never raises.

    Path markers only count on hosts that belong to no other retailer.
    """
    patterns = SITE_PATTERNS.get(retailer)
    if not url or patterns is None:
        return False
    try:
        parts = urlsplit(ensure_scheme(url))
        host = (parts.hostname or "").lower()
    except ValueError:
        return False

    if _host_matches(host, patterns):
        return True
    if any(_host_matches(host, other) for other in SITE_PATTERNS.values() if other is not patterns):
        return False
    tail = parts.path + ("?" + parts.query if parts.query else "")
    return any(p.search(tail) for p in patterns.path_markers)


def classify(url: str | None) -> Classification:
    for retailer in SITE_PATTERNS:
        if matches(url, retailer):
            logger.info(f"Classified {url!r} as {retailer.value}")
            return Classification(supported=True, retailer=retailer)
    return Classification(supported=False, retailer=Retailer.NONE)
