"""
URL normalization: absolute-URL coercion, shortened-link detection,
affiliate/tracking parameter stripping and MercadoLivre product-id extraction.

Pure functions. Parse failures come back as ``NormalizationResult(success=False)``,
never as exceptions.
"""

import logging
import re
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

from classifier import AMAZON_PATTERNS, MERCADO_LIVRE_PATTERNS, ensure_scheme, is_shortener_host
from models import NormalizationResult, Retailer

logger = logging.getLogger(__name__)

MERCADO_LIVRE_PRODUCT_BASE = "https://produto.mercadolivre.com.br"

# A query key is dropped when it contains any of these (case-insensitive substring).
AFFILIATE_PARAMS = (
    "matt_tool",
    "me",
    "afiliado",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "ref",
    "source",
    "afilio",
    "partner",
    "tracking",
    "matt",
    "tool",
    "campaign",
    "medium",
    "matt_source",
    "utm_content",
    "utm_term",
    "gclid",
    "fbclid",
)

# Path segments used by MercadoLivre's affiliate redirectors
AFFILIATE_PATH_MARKERS = ("/sec/", "/jump-to/", "/redirect/")

# Tried in order against the cleaned URL; the first match wins.
MERCADO_LIVRE_ID_PATTERNS = (
    re.compile(r"(MLB[-_]?\d{9,})", re.IGNORECASE),
    re.compile(r"/p/(MLB\d{9,})", re.IGNORECASE),
    re.compile(r"/produto/(MLB[-_]?\d{9,})", re.IGNORECASE),
    re.compile(r"/item/(MLB[-_]?\d{9,})", re.IGNORECASE),
    re.compile(r"/mlb/(\d{9,})", re.IGNORECASE),
    re.compile(r"[?&]id=(MLB\d{9,})", re.IGNORECASE),
    re.compile(r"[?&]id=(\d{9,})", re.IGNORECASE),
    re.compile(r"[?&]MLB=(\d{9,})", re.IGNORECASE),
    re.compile(r"/dp/(MLB[-_]?\d{9,})", re.IGNORECASE),
    re.compile(r"/(MLB[-_]?\d{9,})-", re.IGNORECASE),
    re.compile(r"-(\d{9,})-"),
)

_PREFIXED_ID_RE = re.compile(r"^MLB[-_]?(\d+)$")
_BARE_ID_RE = re.compile(r"^\d{9,}$")
_ID_HINT_RE = re.compile(r"mlb|/p/", re.IGNORECASE)


def canonicalize_mlb_id(raw: str) -> str | None:
    """Canonical MercadoLivre id.

    "mlb1234567890", "MLB-1234567890" and "MLB_1234567890" -> "MLB1234567890";
    a bare "1234567890" -> "MLB-1234567890". Anything else -> None.
    """
    value = raw.strip().upper()
    prefixed = _PREFIXED_ID_RE.match(value)
    if prefixed:
        return "MLB" + prefixed.group(1)
    if _BARE_ID_RE.match(value):
        return "MLB-" + value
    return None


def extract_mlb_id(url: str) -> str | None:
    """Canonical product id found in ``url`` by the ordered pattern list."""
    if not _ID_HINT_RE.search(url):
        return None
    for pattern in MERCADO_LIVRE_ID_PATTERNS:
        match = pattern.search(url)
        if not match:
            continue
        product_id = canonicalize_mlb_id(match.group(1))
        if product_id:
            return product_id
    return None


def _parse_absolute(url: str) -> SplitResult:
    """Split an absolute http(s) URL, raising ValueError when it is not one."""
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https"):
        raise ValueError(f"esquema não suportado: {parts.scheme!r}")
    if not parts.hostname:
        raise ValueError("host ausente")
    # Accessing .port validates the port component
    _ = parts.port
    return parts


def _is_tracking_key(key: str) -> bool:
    key = key.lower()
    return any(param in key for param in AFFILIATE_PARAMS)


def strip_tracking_params(parts: SplitResult) -> tuple[str, bool]:
    """Rebuild the URL without denylisted query keys. Returns (url, removed_any)."""
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(k, v) for k, v in pairs if not _is_tracking_key(k)]
    if len(kept) == len(pairs):
        return urlunsplit(parts), False
    return urlunsplit(parts._replace(query=urlencode(kept))), True


def normalize_mercadolivre(url: str) -> NormalizationResult:
    original = ensure_scheme(url)
    logger.info(f"Normalizing MercadoLivre URL: {original}")
    try:
        parts = _parse_absolute(original)
        is_shortened = is_shortener_host(parts.hostname.lower(), MERCADO_LIVRE_PATTERNS)
        clean_url, removed = strip_tracking_params(parts)
        product_id = extract_mlb_id(clean_url)
    except ValueError as e:
        logger.warning(f"Invalid MercadoLivre URL {original!r}: {e}")
        return NormalizationResult(original_url=original, success=False, error=f"URL inválida: {e}")

    # Shortened links are resolved from the exact shortener URL
    scraping_url = original if is_shortened else clean_url
    is_affiliate = removed or is_shortened or any(m in original for m in AFFILIATE_PATH_MARKERS)

    logger.info(f"  scraping URL: {scraping_url} | id: {product_id or 'not found'} | shortened: {is_shortened}")
    return NormalizationResult(
        original_url=original,
        success=True,
        scraping_url=scraping_url,
        normalized_url=f"{MERCADO_LIVRE_PRODUCT_BASE}/{product_id}" if product_id else clean_url,
        extracted_id=product_id,
        is_affiliate_link=is_affiliate,
        is_shortened=is_shortened,
    )


def normalize_amazon(url: str) -> NormalizationResult:
    """Amazon URLs are kept as-is: the ASIN is only read after the page is fetched."""
    original = ensure_scheme(url)
    logger.info(f"Normalizing Amazon URL: {original}")
    try:
        parts = _parse_absolute(original)
    except ValueError as e:
        logger.warning(f"Invalid Amazon URL {original!r}: {e}")
        return NormalizationResult(original_url=original, success=False, error=f"URL inválida: {e}")

    is_shortened = is_shortener_host(parts.hostname.lower(), AMAZON_PATTERNS)
    logger.info(f"  shortened: {is_shortened}")
    return NormalizationResult(
        original_url=original,
        success=True,
        scraping_url=original,
        normalized_url=original,
        is_affiliate_link=is_shortened,
        is_shortened=is_shortened,
    )


_NORMALIZERS = {
    Retailer.MERCADO_LIVRE: normalize_mercadolivre,
    Retailer.AMAZON: normalize_amazon,
}


def normalize(url: str, retailer: Retailer) -> NormalizationResult:
    normalizer = _NORMALIZERS.get(retailer)
    if normalizer is None:
        return NormalizationResult(original_url=url, success=False, error=f"Varejista não suportado: {retailer.value}")
    return normalizer(url)
