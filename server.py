"""
FastAPI server for product extraction.

- POST /api/extract         -> MercadoLivre product (supports meli.la short links)
- POST /api/extract-amazon  -> Amazon product (supports amzn.to / a.co short links)
- GET  /api/health          -> liveness / capability descriptor
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

import pipeline
from config import get_settings
from errors import InvalidInput, ScraperError
from models import ExtractRequest, ExtractResponse, Retailer
from sites import get_adapter

logger = logging.getLogger("server")

VERSION = "3.2.0"
SERVICE_NAME = "Product Scraper API"

FEATURES = [
    "mercado_livre_scraping",
    "amazon_scraping_high_quality",
    "redirect_following",
    "shortened_urls_support",
    "high_quality_images",
]

ENDPOINTS = {
    "POST /api/extract": "Extrair dados do Mercado Livre (suporta links encurtados meli.la)",
    "POST /api/extract-amazon": "Extrair dados da Amazon com imagens de alta qualidade (suporta amzn.to, a.co)",
    "GET /api/health": "Status do serviço",
}


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

settings = get_settings()

app = FastAPI(
    title=SERVICE_NAME,
    version=VERSION,
    default_response_class=ORJSONResponse,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    max_age=86400,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.exception_handler(ScraperError)
async def scraper_error_handler(request: Request, exc: ScraperError) -> ORJSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    # non-string url or unparsable JSON body
    retailer = Retailer.AMAZON if request.url.path.endswith("-amazon") else Retailer.MERCADO_LIVRE
    error = InvalidInput(
        "URL do produto é obrigatória",
        get_adapter(retailer).missing_url_suggestion,
        details={"details": [e.get("msg", "") for e in exc.errors()]},
    )
    return await scraper_error_handler(request, error)


async def _extract(body: ExtractRequest | None, retailer: Retailer):
    try:
        result = await pipeline.run_pipeline(body.url if body else None, retailer, settings=settings)
    except ScraperError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected failure extracting {retailer.value} product")
        return ORJSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Erro interno do servidor",
                "details": str(e),
                "suggestion": "Tente novamente em alguns instantes",
            },
        )
    return pipeline.assemble_response(result)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/api/extract", response_model=ExtractResponse)
async def extract_mercadolivre(body: ExtractRequest | None = None):
    """Extract a MercadoLivre product."""
    return await _extract(body, Retailer.MERCADO_LIVRE)


@app.post("/api/extract-amazon", response_model=ExtractResponse)
async def extract_amazon(body: ExtractRequest | None = None):
    """Extract an Amazon product."""
    return await _extract(body, Retailer.AMAZON)


@app.get("/api/health")
async def health():
    return {
        "status": "online",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": FEATURES,
        "endpoints": {k: v for k, v in ENDPOINTS.items() if k.startswith("POST")},
    }


@app.get("/")
async def index():
    return {
        "name": SERVICE_NAME,
        "version": VERSION,
        "description": "API para extrair dados de produtos do Mercado Livre e Amazon (com imagens em alta qualidade)",
        "endpoints": ENDPOINTS,
        "features": FEATURES,
        "examples": {
            "mercado_livre_direto": "https://produto.mercadolivre.com.br/MLB-1234567890",
            "mercado_livre_encurtado": "https://meli.la/1r1BBFY",
            "amazon_direto": "https://www.amazon.com.br/dp/B08N5WRWNW",
            "amazon_encurtado": "https://amzn.to/4qjSzCV",
        },
    }
