"""
Product field extraction shared by every site adapter.

A SiteAdapter bundles the three per-retailer capabilities (classify,
normalize, extract). Extraction runs one ordered fallback chain per field:
  title, price, image, id, seller, condition
and assembles an immutable ProductRecord. Missing fields degrade to their
defaults; markup problems never raise.
"""

import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Callable

import classifier
import normalizer
from config import Settings
from fetcher import ACCEPT_HTML, random_user_agent
from models import (
    CONDITION_UNKNOWN,
    PRICE_UNAVAILABLE,
    ExtractionMethod,
    NormalizationResult,
    ProductRecord,
    Retailer,
)
from parser import ParsedPage, normalize_url, parse_html
from strategies import ExtractedField, Found, Malformed, NotFound, Strategy, found_if, run_chain

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ["title", "price", "image", "id", "seller", "condition"]

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_DASH_RE = re.compile(r"\s*-\s*$")
_PRICE_CHARS_RE = re.compile(r"[^\d.,]")


# =====================================================================
# Text / number helpers
# =====================================================================


def collapse_whitespace(text: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def clean_title(text: str | None, patterns: tuple[re.Pattern, ...] = ()) -> str:
    """Strip retailer-name decorations, collapse whitespace, trim."""
    title = collapse_whitespace(text)
    for pattern in patterns:
        title = pattern.sub("", title)
    title = _TRAILING_DASH_RE.sub("", title)
    return collapse_whitespace(title)


def _valid_price(value: float) -> float | None:
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


def parse_locale_price(text: str | None) -> float | None:
    """Parse a pt-BR formatted amount: "1.234,56" -> 1234.56, "R$ 12,90" -> 12.9.

    Returns None for anything that does not parse.
    """
    cleaned = _PRICE_CHARS_RE.sub("", text or "")
    if not any(c.isdigit() for c in cleaned):
        return None
    cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        return _valid_price(float(cleaned))
    except ValueError:
        return None


def parse_machine_price(value: Any) -> float | None:
    """Parse a machine-readable price (meta content, JSON-LD), falling back to pt-BR format."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _valid_price(float(value))
    text = str(value).strip()
    try:
        return _valid_price(float(text))
    except ValueError:
        return parse_locale_price(text)


def format_price(price: float) -> str:
    """"R$ " + two decimals with comma separator."""
    return f"R$ {price:.2f}".replace(".", ",")


# =====================================================================
# Generic strategy builders
# =====================================================================


def select_text(page: ParsedPage, selector: str) -> str:
    el = page.soup.select_one(selector)
    return collapse_whitespace(el.get_text(" ", strip=True)) if el else ""


def select_attr(page: ParsedPage, selector: str, *attrs: str) -> str:
    el = page.soup.select_one(selector)
    if not el:
        return ""
    for attr in attrs:
        value = el.get(attr)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def text_strategy(selector: str) -> Strategy:
    return Strategy(selector, lambda page: found_if(select_text(page, selector)))


def og_value(page: ParsedPage, key: str) -> str:
    return (page.og_tags.get(key) or "").strip()


def meta_value(page: ParsedPage, name: str) -> str:
    return (page.meta_tags.get(name) or "").strip()


def title_tag(page: ParsedPage) -> str:
    return collapse_whitespace(page.soup.title.get_text()) if page.soup.title else ""


def machine_price_strategy(name: str, getter: Callable[[ParsedPage], str]) -> Strategy:
    def _run(page: ParsedPage):
        raw = getter(page)
        if not raw:
            return NotFound()
        price = parse_machine_price(raw)
        return Found(price) if price is not None else Malformed(f"unparsable price {raw!r}")

    return Strategy(name, _run)


def locale_price_strategy(name: str, getter: Callable[[ParsedPage], str]) -> Strategy:
    def _run(page: ParsedPage):
        raw = getter(page)
        if not raw:
            return NotFound()
        price = parse_locale_price(raw)
        return Found(price) if price is not None else Malformed(f"unparsable price {raw!r}")

    return Strategy(name, _run)


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _first_offer(obj: dict) -> dict | None:
    offers = obj.get("offers")
    if isinstance(offers, list):
        offers = next((o for o in offers if isinstance(o, dict)), None)
    return offers if isinstance(offers, dict) else None


def _json_ld_scan(page: ParsedPage, pick: Callable[[dict], Any]) -> Any:
    """Apply ``pick`` to every JSON-LD object in page order.

    Blocks that failed to parse, and picks that raise, are skipped; the result
    is Malformed only when nothing was found and something was skipped.
    """
    problems: list[str] = []
    for block in page.json_ld:
        if block.error:
            problems.append(block.error)
            continue
        for obj in block.objects:
            try:
                value = pick(obj)
            except (ValueError, TypeError) as e:
                problems.append(str(e))
                continue
            if value is not None:
                return Found(value)
    if problems:
        return Malformed("; ".join(problems))
    return NotFound()


def _ld_price(obj: dict) -> float | None:
    offer = _first_offer(obj)
    for raw in (offer.get("price") if offer else None, offer.get("lowPrice") if offer else None, obj.get("price")):
        if raw in (None, ""):
            continue
        price = parse_machine_price(raw)
        if price is None:
            raise ValueError(f"unparsable JSON-LD price {raw!r}")
        return price
    return None


def _ld_image(obj: dict) -> str | None:
    image = obj.get("image")
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    if isinstance(image, str) and image.strip():
        return image.strip()
    return None


_CONDITION_LABELS = {
    "new": "Novo",
    "newcondition": "Novo",
    "novo": "Novo",
    "used": "Usado",
    "usedcondition": "Usado",
    "usado": "Usado",
    "refurbished": "Recondicionado",
    "refurbishedcondition": "Recondicionado",
    "recondicionado": "Recondicionado",
    "damagedcondition": "Danificado",
}


def condition_label(raw: str | None) -> str | None:
    """Map schema.org / og condition values ("https://schema.org/NewCondition", "new") to pt-BR."""
    if not raw:
        return None
    key = str(raw).rstrip("/").rsplit("/", 1)[-1].strip().lower()
    return _CONDITION_LABELS.get(key)


def _ld_condition(obj: dict) -> str | None:
    offer = _first_offer(obj)
    raw = (offer or {}).get("itemCondition") or obj.get("itemCondition")
    return condition_label(raw) if isinstance(raw, str) else None


JSON_LD_PRICE = Strategy("json-ld:offers.price", lambda page: _json_ld_scan(page, _ld_price))
JSON_LD_IMAGE = Strategy("json-ld:image", lambda page: _json_ld_scan(page, _ld_image))
JSON_LD_CONDITION = Strategy("json-ld:itemCondition", lambda page: _json_ld_scan(page, _ld_condition))
META_CONDITION = Strategy(
    "meta:product:condition", lambda page: found_if(condition_label(og_value(page, "condition")))
)
META_PRICE = machine_price_strategy("meta:product:price:amount", lambda page: og_value(page, "price:amount"))
OG_TITLE = Strategy("og:title", lambda page: found_if(og_value(page, "title")))
OG_IMAGE = Strategy("og:image", lambda page: found_if(og_value(page, "image")))
TWITTER_IMAGE = Strategy("twitter:image", lambda page: found_if(meta_value(page, "twitter:image")))


# =====================================================================
# Site adapter
# =====================================================================


class SiteAdapter(ABC):
    """Per-retailer classify / normalize / extract capability."""

    retailer: Retailer
    extraction_method: ExtractionMethod
    label: str  # human name used in placeholders and messages
    image_root: str  # CDN host that root-relative image URLs resolve against
    title_patterns: tuple[re.Pattern, ...] = ()

    # caller-facing messages
    missing_url_suggestion: str = "Cole o link do produto"
    unsupported_message: str = "Link não suportado"
    unsupported_suggestion: str = ""
    unsupported_example: str = ""
    failure_suggestion: str = "Não foi possível extrair os dados deste link."

    # ----- classify / normalize -----

    def matches(self, url: str | None) -> bool:
        return classifier.matches(url, self.retailer)

    def normalize(self, url: str) -> NormalizationResult:
        return normalizer.normalize(url, self.retailer)

    # ----- fetch policy -----

    @abstractmethod
    def needs_redirects(self, normalized: NormalizationResult) -> bool: ...

    @abstractmethod
    def max_hops(self, settings: Settings) -> int: ...

    @abstractmethod
    def fetch_timeout(self, settings: Settings) -> float: ...

    def fetch_headers(self) -> dict[str, str]:
        return {
            "User-Agent": random_user_agent(),
            "Accept": ACCEPT_HTML,
            "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8,es;q=0.7",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
        }

    # ----- field chains -----

    @abstractmethod
    def title_strategies(self) -> list[Strategy]: ...

    @abstractmethod
    def price_strategies(self) -> list[Strategy]: ...

    @abstractmethod
    def image_strategies(self) -> list[Strategy]: ...

    @abstractmethod
    def id_strategies(self, known_id: str | None = None) -> list[Strategy]: ...

    @abstractmethod
    def seller_strategies(self) -> list[Strategy]: ...

    @abstractmethod
    def condition_strategies(self) -> list[Strategy]: ...

    def title(self, name: str, getter: Callable[[ParsedPage], str]) -> Strategy:
        """Title strategy whose result is cleaned before the non-empty check."""
        return Strategy(name, lambda page: found_if(clean_title(getter(page), self.title_patterns)))

    def finalize_image(self, url: str) -> str:
        return normalize_url(url, self.image_root)

    def extra_metadata(self, record: ProductRecord, normalized: NormalizationResult) -> dict[str, Any]:
        """Retailer-specific keys merged into the response metadata."""
        return {}

    @property
    def placeholder_title(self) -> str:
        return f"Produto {self.label}"

    # ----- extraction -----

    def extract_fields(self, page: ParsedPage, known_id: str | None = None) -> dict[str, ExtractedField]:
        return {
            "title": run_chain("title", self.title_strategies(), page),
            "price": run_chain("price", self.price_strategies(), page),
            "image": run_chain("image", self.image_strategies(), page),
            "id": run_chain("id", self.id_strategies(known_id), page),
            "seller": run_chain("seller", self.seller_strategies(), page),
            "condition": run_chain("condition", self.condition_strategies(), page),
        }

    def extract(self, html: str, source_url: str, status_code: int = 200, known_id: str | None = None) -> ProductRecord:
        logger.info(f"Extracting {self.label} product from {source_url}")
        page = parse_html(html, source_url)
        fields = self.extract_fields(page, known_id)

        price_field = fields["price"]
        image = self.finalize_image(fields["image"].value) if fields["image"].found else ""

        record = ProductRecord(
            id=fields["id"].value,
            title=fields["title"].value or self.placeholder_title,
            price=price_field.value if price_field.found else 0.0,
            formatted_price=format_price(price_field.value) if price_field.found else PRICE_UNAVAILABLE,
            price_found=price_field.found,
            images=[image] if image else [],
            seller=fields["seller"].value,
            condition=fields["condition"].value or CONDITION_UNKNOWN,
            permalink=source_url,
            extraction_method=self.extraction_method,
            status_code=status_code,
            field_sources={name: f.source for name, f in fields.items()},
        )
        logger.info(
            f"  Result: {record.title[:60]} | {record.formatted_price} | "
            f"id={record.id} | image={'yes' if record.images else 'no'}"
        )
        return record
