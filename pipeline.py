"""
Extraction pipeline orchestrator.

Runs one URL through: classify -> normalize -> (resolve redirects) -> fetch
-> extract, then assembles the caller-facing payload. Every invocation is
independent; the redirect hops and the final fetch are the only I/O.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

from classifier import classify
from config import Settings, get_settings
from errors import InvalidInput, NetworkFailure, NormalizationFailure, UnsupportedSource
from fetcher import fetch_page
from models import (
    CURRENCY,
    ExtractResponse,
    NormalizationResult,
    Picture,
    ProductRecord,
    RedirectTrace,
    Retailer,
    SellerInfo,
)
from redirects import resolve_redirects
from sites import get_adapter

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    retailer: Retailer
    normalized: NormalizationResult
    trace: RedirectTrace | None  # None when no redirect resolution was needed
    scraping_url: str  # URL of the final fetch
    record: ProductRecord


def _isoformat(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


async def run_pipeline(
    url: str | None,
    retailer: Retailer,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PipelineResult:
    """Extract a product for ``retailer``.

    Raises InvalidInput / UnsupportedSource before any network I/O,
    NormalizationFailure on an unparsable URL and NetworkFailure when the
    final fetch fails. Redirect problems only degrade to the unexpanded URL.
    """
    settings = settings or get_settings()
    adapter = get_adapter(retailer)

    if not url or not url.strip():
        raise InvalidInput("URL do produto é obrigatória", adapter.missing_url_suggestion)
    url = url.strip()
    logger.info(f"Received {adapter.label} URL: {url}")

    if not adapter.matches(url):
        raise UnsupportedSource(
            adapter.unsupported_message,
            adapter.unsupported_suggestion,
            details={"example": adapter.unsupported_example},
        )

    normalized = adapter.normalize(url)
    if not normalized.success:
        raise NormalizationFailure("URL inválida", details={"original_url": url, "details": normalized.error})

    scraping_url = normalized.scraping_url
    trace = None
    if adapter.needs_redirects(normalized):
        trace = await resolve_redirects(
            scraping_url,
            adapter.max_hops(settings),
            timeout=settings.redirect_timeout_sec,
            transport=transport,
        )
        scraping_url = trace.final_url

    try:
        page = await fetch_page(
            scraping_url,
            adapter.fetch_headers(),
            timeout=adapter.fetch_timeout(settings),
            follow_redirects=True,
            max_redirects=settings.fetch_max_redirects,
            check_status=True,
            transport=transport,
        )
    except NetworkFailure as e:
        logger.error(f"{adapter.label} fetch failed for {scraping_url}: {e.message}")
        debug = {
            "original": normalized.original_url,
            "scraping_url": scraping_url,
            "is_affiliate": normalized.is_affiliate_link,
            "is_shortened": normalized.is_shortened,
        }
        if trace is not None:
            debug["redirect_chain"] = trace.chain
        raise NetworkFailure(e.message, adapter.failure_suggestion, details={"debug": debug}, timeout=e.timeout) from e

    record = adapter.extract(page.text, scraping_url, page.status_code, normalized.extracted_id)
    return PipelineResult(
        retailer=retailer,
        normalized=normalized,
        trace=trace,
        scraping_url=scraping_url,
        record=record,
    )


async def extract_url(
    url: str | None,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PipelineResult:
    """Classify ``url`` and run the matching retailer's pipeline."""
    if not url or not url.strip():
        raise InvalidInput("URL do produto é obrigatória")
    classification = classify(url)
    if not classification.supported:
        raise UnsupportedSource(
            "Link não suportado",
            "Use um link do Mercado Livre ou da Amazon",
            details={"example": "https://produto.mercadolivre.com.br/MLB-1234567890"},
        )
    return await run_pipeline(url, classification.retailer, settings=settings, transport=transport)


# ---------------------------------------------------------------------------
# Response assembly
# ---------------------------------------------------------------------------


def build_metadata(result: PipelineResult) -> dict:
    record = result.record
    normalized = result.normalized
    metadata = {
        "extracted_at": _isoformat(record.extracted_at),
        "method": record.extraction_method.value,
        "has_image": bool(record.images),
        "has_price": record.price_found,
        "status_code": record.status_code,
        "title_extraction_method": "multiple_strategies",
        "field_sources": record.field_sources,
        "original_url": normalized.original_url,
        "normalized_url": normalized.normalized_url,
        "scraping_url": result.scraping_url,
        "was_shortened": normalized.is_shortened,
    }
    if result.trace is not None:
        metadata["redirect_count"] = result.trace.hop_count
        metadata["redirect_chain"] = result.trace.chain
        metadata["redirect_truncated"] = result.trace.truncated
        if result.trace.error:
            metadata["redirect_error"] = result.trace.error
    metadata.update(get_adapter(result.retailer).extra_metadata(record, normalized))
    return metadata


def assemble_response(result: PipelineResult) -> ExtractResponse:
    record = result.record
    return ExtractResponse(
        id=record.id,
        title=record.title,
        price=record.price,
        currency_id=CURRENCY,
        formatted_price=record.formatted_price,
        pictures=[Picture(url=u) for u in record.images],
        thumbnail=record.thumbnail,
        seller=SellerInfo(nickname=record.seller) if record.seller else None,
        condition=record.condition,
        permalink=record.permalink,
        is_affiliate_link=False,
        date_created=_isoformat(record.extracted_at),
        metadata=build_metadata(result),
    )
