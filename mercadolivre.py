"""MercadoLivre site adapter."""

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
    collapse_whitespace,
    locale_price_strategy,
    machine_price_strategy,
    select_attr,
    select_text,
    text_strategy,
    title_tag,
)
from models import ExtractionMethod, NormalizationResult, ProductRecord, Retailer
from normalizer import AFFILIATE_PATH_MARKERS, canonicalize_mlb_id
from parser import ParsedPage
from strategies import NotFound, Strategy, found_if

_MLB_ID_RE = re.compile(r"MLB[-_]?\d{9,}", re.IGNORECASE)

_ALT_TITLE_SELECTORS = ("h1.ui-pdp-header__title", ".ui-pdp-header__title-container", ".item-title")
_GALLERY_SELECTORS = ("figure.ui-pdp-gallery__figure img", "img.ui-pdp-image")


def _current_price_text(page: ParsedPage) -> str:
    """Integer + cents of the first non-struck-through andes price block."""
    for fraction in page.soup.select("span.andes-money-amount__fraction, span.price-tag-fraction"):
        block = fraction.find_parent(class_=re.compile(r"andes-money-amount|price-tag"))
        classes = " ".join(block.get("class", [])) if block else ""
        if "previous" in classes or fraction.find_parent("s"):
            continue
        integer = fraction.get_text(strip=True)
        cents_el = block.select_one(".andes-money-amount__cents, .price-tag-cents") if block else None
        cents = cents_el.get_text(strip=True) if cents_el else ""
        return f"{integer},{cents}" if cents else integer
    return ""


def _alt_title(page: ParsedPage) -> str:
    for selector in _ALT_TITLE_SELECTORS:
        text = select_text(page, selector)
        if text:
            return text
    return ""


def _gallery_image(page: ParsedPage) -> str:
    for selector in _GALLERY_SELECTORS:
        src = select_attr(page, selector, "data-zoom", "src", "data-src")
        if src and not src.startswith("data:"):
            return src
    return ""


def _mlb_id_in(text: str):
    match = _MLB_ID_RE.search(text or "")
    return found_if(canonicalize_mlb_id(match.group(0))) if match else NotFound()


def _condition_from_subtitle(selector: str) -> Strategy:
    # ".ui-pdp-subtitle" reads like "Novo  |  +100 vendidos"
    def _run(page: ParsedPage):
        text = select_text(page, selector)
        return found_if(collapse_whitespace(text.split("|")[0]))

    return Strategy(selector, _run)


class MercadoLivreAdapter(SiteAdapter):
    retailer = Retailer.MERCADO_LIVRE
    extraction_method = ExtractionMethod.MERCADO_LIVRE
    label = "Mercado Livre"
    image_root = "https://http2.mlstatic.com"
    title_patterns = (re.compile(r"\s*[|\-]\s*Mercado\s*Livre\s*$", re.IGNORECASE),)

    missing_url_suggestion = "Cole o link do produto do Mercado Livre"
    unsupported_message = "Isso não parece ser um link do Mercado Livre"
    unsupported_suggestion = "Use um link que comece com mercadolivre.com.br ou meli.la"
    unsupported_example = "https://produto.mercadolivre.com.br/MLB-1234567890 ou https://meli.la/1r1BBFY"
    failure_suggestion = "Não foi possível extrair os dados deste link do Mercado Livre."

    def needs_redirects(self, normalized: NormalizationResult) -> bool:
        scraping_url = normalized.scraping_url or ""
        return (
            normalized.is_affiliate_link
            or normalized.is_shortened
            or any(marker in scraping_url for marker in AFFILIATE_PATH_MARKERS)
        )

    def max_hops(self, settings: Settings) -> int:
        return settings.max_redirect_hops

    def fetch_timeout(self, settings: Settings) -> float:
        return settings.mercadolivre_timeout_sec

    def fetch_headers(self) -> dict[str, str]:
        headers = super().fetch_headers()
        headers["Referer"] = "https://www.mercadolivre.com.br/"
        return headers

    def title_strategies(self) -> list[Strategy]:
        return [
            self.title("h1.ui-pdp-title", lambda page: select_text(page, "h1.ui-pdp-title")),
            self.title(OG_TITLE.name, lambda page: page.og_tags.get("title", "")),
            self.title("title", title_tag),
            self.title("alternate_selectors", _alt_title),
        ]

    def price_strategies(self) -> list[Strategy]:
        return [
            META_PRICE,
            machine_price_strategy("meta:itemprop=price", lambda page: select_attr(page, 'meta[itemprop="price"]', "content")),
            locale_price_strategy("dom:andes-money-amount", _current_price_text),
            JSON_LD_PRICE,
        ]

    def image_strategies(self) -> list[Strategy]:
        return [
            OG_IMAGE,
            TWITTER_IMAGE,
            Strategy("dom:gallery", lambda page: found_if(_gallery_image(page))),
            JSON_LD_IMAGE,
        ]

    def id_strategies(self, known_id: str | None = None) -> list[Strategy]:
        return [
            Strategy("normalization", lambda page: found_if(known_id)),
            Strategy("url", lambda page: _mlb_id_in(page.url)),
            Strategy("page_body", lambda page: _mlb_id_in(page.html)),
        ]

    def seller_strategies(self) -> list[Strategy]:
        return [
            text_strategy(".ui-pdp-seller__header__title"),
            text_strategy(".ui-pdp-seller__link-trigger"),
            text_strategy(".ui-pdp-seller__header__info"),
        ]

    def condition_strategies(self) -> list[Strategy]:
        return [
            _condition_from_subtitle(".ui-pdp-subtitle"),
            _condition_from_subtitle(".ui-pdp-header__subtitle"),
            JSON_LD_CONDITION,
            META_CONDITION,
        ]

    def extra_metadata(self, record: ProductRecord, normalized: NormalizationResult) -> dict:
        return {
            "product_id": normalized.extracted_id,
            "was_normalized": normalized.is_affiliate_link or normalized.is_shortened,
            "extraction_method": "mercado_livre",
        }
