from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

CURRENCY = "BRL"
PRICE_UNAVAILABLE = "Preço não disponível"
CONDITION_UNKNOWN = "Não informado"


class Retailer(str, Enum):
    MERCADO_LIVRE = "mercadolivre"
    AMAZON = "amazon"
    NONE = "none"


class ExtractionMethod(str, Enum):
    MERCADO_LIVRE = "mercado_livre_scraping"
    AMAZON = "amazon_scraping_high_quality"


class Classification(BaseModel):
    supported: bool
    retailer: Retailer = Retailer.NONE


class NormalizationResult(BaseModel):
    """Outcome of cleaning a candidate URL.

    When ``success`` is False only ``original_url`` and ``error`` carry meaning.
    """

    original_url: str
    success: bool
    scraping_url: str | None = None  # what must actually be fetched (shortener URL if shortened)
    normalized_url: str | None = None
    extracted_id: str | None = None
    is_affiliate_link: bool = False
    is_shortened: bool = False
    error: str | None = None


class StopReason(str, Enum):
    FINAL_RESPONSE = "final_response"
    NO_LOCATION = "no_location"
    LOOP = "loop"
    MAX_HOPS = "max_hops"
    NETWORK_ERROR = "network_error"


class RedirectTrace(BaseModel):
    final_url: str
    hop_count: int = 0
    chain: list[str]  # chain[0] is the start URL, chain[-1] the final URL
    truncated: bool = False  # loop detected or hop limit hit
    stop_reason: StopReason = StopReason.FINAL_RESPONSE
    error: str | None = None


class ProductRecord(BaseModel):
    """Extracted product. Built once per request, never mutated afterwards."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    title: str
    price: float = 0.0
    currency: str = CURRENCY
    formatted_price: str = PRICE_UNAVAILABLE
    images: list[str] = []  # 0 or 1 element
    seller: str | None = None
    condition: str = CONDITION_UNKNOWN
    permalink: str
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    extraction_method: ExtractionMethod
    status_code: int = 200
    price_found: bool = False
    # field name -> strategy that produced it ("not_found" when it degraded to the default)
    field_sources: dict[str, str] = {}

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be empty")
        return v

    @field_validator("price")
    @classmethod
    def price_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("price must be >= 0")
        return v

    @property
    def thumbnail(self) -> str:
        return self.images[0] if self.images else ""


# ---------------------------------------------------------------------------
# Caller-facing payloads
# ---------------------------------------------------------------------------


class ExtractRequest(BaseModel):
    url: str | None = None


class Picture(BaseModel):
    url: str


class SellerInfo(BaseModel):
    nickname: str


class ExtractResponse(BaseModel):
    """Wire shape returned by the extract endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None
    title: str
    price: float
    currency_id: str
    formatted_price: str
    pictures: list[Picture]
    thumbnail: str
    seller: SellerInfo | None
    condition: str
    permalink: str
    is_affiliate_link: bool = False
    date_created: str
    metadata: dict = Field(alias="_metadata")
