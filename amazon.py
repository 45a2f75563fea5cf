"""
Amazon site adapter.

Image handling leans on Amazon's CDN URL conventions (size tokens such as
``._AC_SX466_.``). The token grammar is undocumented: recognised tokens are
rewritten to a large variant, anything else passes through untouched.
"""

import re

from config import Settings
from extractor import (
    JSON_LD_CONDITION,
    JSON_LD_IMAGE,
    JSON_LD_PRICE,
    META_CONDITION,
    META_PRICE,
    OG_IMAGE,
    OG_TITLE,
    TWITTER_IMAGE,
    SiteAdapter,
    locale_price_strategy,
    select_attr,
    select_text,
    text_strategy,
    title_tag,
)
from models import ExtractionMethod, NormalizationResult, ProductRecord, Retailer
from parser import ParsedPage, normalize_url
from strategies import Found, NotFound, Strategy, found_if

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

_CDN_MARKERS = ("images-na.ssl-images-amazon.com", "m.media-amazon.com", "amazon.com/images/I/")
_IMAGE_SHAPE_MARKERS = ("._AC_SX", "._SL", ".jpg")
_HIGH_RES_MARKERS = ("CR,", "_AC_SX679", "_AC_SY879", "_AC_SL1500", "_AC_SX466", "_AC_SX569")
_IMG_ATTRS = ("data-old-hires", "src", "data-src")

# (recognised size token, large replacement); first match is rewritten
_SIZE_UPGRADES = (
    (re.compile(r"\._AC_SX\d+_\."), "._AC_SX679_."),
    (re.compile(r"\._AC_SY\d+_\."), "._AC_SY879_."),
    (re.compile(r"\._AC_SL\d+_\."), "._AC_SL1500_."),
    (re.compile(r"\._AC_(?:UL|SR)\d+(?:,\d+)?_\."), "._AC_SL1500_."),
    (re.compile(r"\._S[XYL]\d+_\."), "._SL1500_."),
)

# Raw-body fallbacks, most specific first
_BODY_IMAGE_PATTERNS = (
    re.compile(r'"hiRes"\s*:\s*"(https?:[^"]+)"'),
    re.compile(r'"large"\s*:\s*"(https?:[^"]+)"'),
    re.compile(r'"mainUrl"\s*:\s*"(https?:[^"]+)"'),
    re.compile(r'"primaryImageUrl"\s*:\s*"(https?:[^"]+)"'),
    re.compile(
        r"((?:https?:)?//(?:images-na\.ssl-images-amazon\.com|m\.media-amazon\.com)/images/I/[^\"'\s<>]+?\.(?:jpg|png|webp))",
        re.IGNORECASE,
    ),
)


def upgrade_image_url(url: str) -> str:
    """Rewrite a recognised CDN size token to its large variant; other URLs pass through."""
    for pattern, replacement in _SIZE_UPGRADES:
        if pattern.search(url):
            return pattern.sub(replacement, url, count=1)
    return url


def _is_product_image(src: str) -> bool:
    return any(m in src for m in _CDN_MARKERS) and any(m in src for m in _IMAGE_SHAPE_MARKERS)


def _scan_images(page: ParsedPage):
    """Scan every <img>; a high-resolution candidate beats the first one found."""
    first = None
    for img in page.soup.find_all("img"):
        src = next((img.get(a).strip() for a in _IMG_ATTRS if isinstance(img.get(a), str) and img.get(a).strip()), "")
        if not src or not _is_product_image(src):
            continue
        if any(m in src for m in _HIGH_RES_MARKERS):
            return Found(src)
        first = first or src
    return found_if(first)


def _body_image(page: ParsedPage):
    for pattern in _BODY_IMAGE_PATTERNS:
        match = pattern.search(page.html)
        if match:
            return Found(match.group(1).replace("\\/", "/"))
    return NotFound()


# ---------------------------------------------------------------------------
# Price / ASIN
# ---------------------------------------------------------------------------

_LEGACY_PRICE_SELECTORS = ("#priceblock_ourprice", "#priceblock_dealprice", "#priceblock_saleprice", ".a-color-price")

_ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")
_URL_ASIN_RE = re.compile(r"(?:/(?:dp|gp/product|gp/aw/d|ASIN)/|[?&]asin=)([A-Z0-9]{10})(?=[/?&#]|$)", re.IGNORECASE)
_JSON_ASIN_RE = re.compile(r'"asin"\s*:\s*"([A-Z0-9]{10})"', re.IGNORECASE)
_KV_ASIN_RE = re.compile(r"ASIN[\"']?\s*[:=]\s*[\"']([A-Z0-9]{10})[\"']", re.IGNORECASE)


def _split_price_text(page: ParsedPage) -> str:
    """.a-price-whole ("1.234,") + .a-price-fraction ("56") -> "1234,56"."""
    whole = re.sub(r"\D", "", select_text(page, ".a-price-whole"))
    if not whole:
        return ""
    fraction = re.sub(r"\D", "", select_text(page, ".a-price-fraction"))
    return f"{whole},{fraction}" if fraction else whole


def _legacy_price_text(page: ParsedPage) -> str:
    for selector in _LEGACY_PRICE_SELECTORS:
        text = select_text(page, selector)
        if text:
            return text
    return ""


def _asin_match(pattern: re.Pattern, text: str):
    match = pattern.search(text or "")
    return Found(match.group(1).upper()) if match else NotFound()


def _asin_input(page: ParsedPage):
    value = select_attr(page, "#ASIN", "value") or select_attr(page, 'input[name="ASIN"]', "value")
    value = value.upper()
    return Found(value) if _ASIN_RE.match(value) else NotFound()


def _first_text(*selectors: str):
    def _get(page: ParsedPage) -> str:
        for selector in selectors:
            text = select_text(page, selector)
            if text:
                return text
        return ""

    return _get


class AmazonAdapter(SiteAdapter):
    retailer = Retailer.AMAZON
    extraction_method = ExtractionMethod.AMAZON
    label = "Amazon"
    image_root = "https://m.media-amazon.com"
    title_patterns = (
        re.compile(r"^\s*Amazon(?:\.com)?(?:\.br)?\s*:\s*", re.IGNORECASE),
        re.compile(r"\s*[|\-:]\s*Amazon(?:\.com)?(?:\.br)?\s*$", re.IGNORECASE),
    )

    missing_url_suggestion = "Cole o link do produto da Amazon"
    unsupported_message = "Isso não parece ser um link da Amazon"
    unsupported_suggestion = "Use um link que comece com amazon.com.br, amzn.to ou a.co"
    unsupported_example = "https://www.amazon.com.br/dp/B08N5WRWNW ou https://amzn.to/4qjSzCV"
    failure_suggestion = "Não foi possível extrair os dados deste link da Amazon."

    def needs_redirects(self, normalized: NormalizationResult) -> bool:
        return True

    def max_hops(self, settings: Settings) -> int:
        return settings.amazon_max_redirect_hops

    def fetch_timeout(self, settings: Settings) -> float:
        return settings.amazon_timeout_sec

    def fetch_headers(self) -> dict[str, str]:
        headers = super().fetch_headers()
        headers.update(
            {
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
                "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7,es;q=0.6",
                "Cache-Control": "max-age=0",
                "Sec-Fetch-Dest": "document",
                "Sec-Fetch-Mode": "navigate",
                "Sec-Fetch-Site": "none",
                "Sec-Fetch-User": "?1",
            }
        )
        return headers

    def title_strategies(self) -> list[Strategy]:
        return [
            self.title("#productTitle", lambda page: select_text(page, "#productTitle")),
            self.title(OG_TITLE.name, lambda page: page.og_tags.get("title", "")),
            self.title("title", title_tag),
            self.title("alternate_selectors", _first_text("#title", "h1.a-size-large", "h1.a-size-medium")),
        ]

    def price_strategies(self) -> list[Strategy]:
        return [
            META_PRICE,
            locale_price_strategy("dom:a-price-whole", _split_price_text),
            locale_price_strategy("dom:priceblock", _legacy_price_text),
            JSON_LD_PRICE,
        ]

    def image_strategies(self) -> list[Strategy]:
        return [
            Strategy("img:high_res_scan", _scan_images),
            OG_IMAGE,
            TWITTER_IMAGE,
            JSON_LD_IMAGE,
            Strategy("body:cdn_pattern", _body_image),
        ]

    def id_strategies(self, known_id: str | None = None) -> list[Strategy]:
        return [
            Strategy("url_path", lambda page: _asin_match(_URL_ASIN_RE, page.url)),
            Strategy("body:json_asin", lambda page: _asin_match(_JSON_ASIN_RE, page.html)),
            Strategy("input:ASIN", _asin_input),
            Strategy("body:asin_kv", lambda page: _asin_match(_KV_ASIN_RE, page.html)),
        ]

    def seller_strategies(self) -> list[Strategy]:
        return [
            text_strategy("#sellerProfileTriggerId"),
            text_strategy("#merchant-info a"),
            text_strategy("#merchantInfoFeature_feature_div .offer-display-feature-text-message"),
        ]

    def condition_strategies(self) -> list[Strategy]:
        return [JSON_LD_CONDITION, META_CONDITION]

    def finalize_image(self, url: str) -> str:
        return upgrade_image_url(normalize_url(url, self.image_root))

    def extra_metadata(self, record: ProductRecord, normalized: NormalizationResult) -> dict:
        return {
            "platform": "amazon",
            "asin": record.id,
            "image_quality": "high" if record.images else "standard",
            "extraction_method": "amazon",
        }
