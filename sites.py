"""
Site adapter registry.

Adding a retailer means adding a SiteAdapter subclass and registering it
here; the pipeline and HTTP layer only go through this module.
"""

from amazon import AmazonAdapter
from extractor import SiteAdapter
from mercadolivre import MercadoLivreAdapter
from models import ProductRecord, Retailer

# Priority order matches classifier.SITE_PATTERNS
ADAPTERS: dict[Retailer, SiteAdapter] = {
    Retailer.MERCADO_LIVRE: MercadoLivreAdapter(),
    Retailer.AMAZON: AmazonAdapter(),
}


def get_adapter(retailer: Retailer) -> SiteAdapter:
    try:
        return ADAPTERS[retailer]
    except KeyError:
        raise ValueError(f"No site adapter for retailer {retailer!r}") from None


def extract(
    html: str,
    source_url: str,
    status_code: int,
    retailer: Retailer,
    known_id: str | None = None,
) -> ProductRecord:
    """Extract a ProductRecord from fetched HTML. Never raises for malformed markup."""
    return get_adapter(retailer).extract(html, source_url, status_code, known_id)
