"""Pipeline orchestration and response assembly, end to end over httpx.MockTransport."""

import httpx
import pytest

from config import Settings
from conftest import AMAZON_PRODUCT_URL, ML_PRODUCT_URL, RecordingTransport, page, redirect
from errors import InvalidInput, NetworkFailure, NormalizationFailure, UnsupportedSource
from models import Retailer
from pipeline import assemble_response, build_metadata, extract_url, run_pipeline


@pytest.fixture
def settings():
    return Settings()


class TestRejectedBeforeNetwork:
    @pytest.mark.asyncio
    async def test_unsupported_url_makes_no_request(self, settings):
        transport = RecordingTransport({})

        with pytest.raises(UnsupportedSource) as exc:
            await run_pipeline("https://www.google.com/search?q=x", Retailer.MERCADO_LIVRE, settings=settings,
                               transport=transport)

        assert transport.requests == []
        assert exc.value.status_code == 400
        assert "example" in exc.value.to_payload()

    @pytest.mark.asyncio
    async def test_other_retailer_url_is_unsupported(self, settings):
        transport = RecordingTransport({})

        with pytest.raises(UnsupportedSource):
            await run_pipeline(AMAZON_PRODUCT_URL, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)
        with pytest.raises(UnsupportedSource):
            await run_pipeline(ML_PRODUCT_URL, Retailer.AMAZON, settings=settings, transport=transport)
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [None, "", "   "])
    async def test_missing_url(self, url, settings):
        with pytest.raises(InvalidInput) as exc:
            await run_pipeline(url, Retailer.AMAZON, settings=settings, transport=RecordingTransport({}))
        assert exc.value.message == "URL do produto é obrigatória"

    @pytest.mark.asyncio
    async def test_extract_url_unsupported(self, settings):
        transport = RecordingTransport({})
        with pytest.raises(UnsupportedSource):
            await extract_url("https://shopee.com.br/produto", settings=settings, transport=transport)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_normalization_failure(self, settings):
        with pytest.raises(NormalizationFailure) as exc:
            await run_pipeline("https://www.mercadolivre.com.br:porta/MLB-1234567890", Retailer.MERCADO_LIVRE,
                               settings=settings, transport=RecordingTransport({}))
        payload = exc.value.to_payload()
        assert payload["message"] == "URL inválida"
        assert payload["original_url"].startswith("https://www.mercadolivre.com.br:porta")


class TestMercadoLivre:
    @pytest.mark.asyncio
    async def test_direct_url(self, ml_html, settings):
        transport = RecordingTransport({ML_PRODUCT_URL: page(ml_html)})

        result = await run_pipeline(ML_PRODUCT_URL, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        assert transport.urls == [ML_PRODUCT_URL]
        assert result.trace is None
        assert result.record.title == "Console X"
        assert result.record.price == pytest.approx(2499.90)
        assert result.record.extraction_method.value == "mercado_livre_scraping"

        metadata = build_metadata(result)
        assert metadata["product_id"] == "MLB1234567890"
        assert metadata["was_normalized"] is False
        assert metadata["was_shortened"] is False
        assert metadata["normalized_url"] == "https://produto.mercadolivre.com.br/MLB1234567890"
        assert "redirect_chain" not in metadata

    @pytest.mark.asyncio
    async def test_request_headers(self, ml_html, settings):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return page(ml_html)

        transport = RecordingTransport({ML_PRODUCT_URL: handler})
        await run_pipeline(ML_PRODUCT_URL, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        assert seen["referer"] == "https://www.mercadolivre.com.br/"
        assert seen["accept-language"].startswith("pt-BR")
        assert "user-agent" in seen

    @pytest.mark.asyncio
    async def test_shortened_url_is_expanded(self, ml_html, settings):
        short = "https://meli.la/1r1BBFY"
        transport = RecordingTransport({short: redirect(ML_PRODUCT_URL), ML_PRODUCT_URL: page(ml_html)})

        result = await run_pipeline(short, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        assert result.scraping_url == ML_PRODUCT_URL
        assert result.trace.chain == [short, ML_PRODUCT_URL]
        assert result.record.id == "MLB1234567890"
        assert result.record.permalink == ML_PRODUCT_URL

        metadata = build_metadata(result)
        assert metadata["was_shortened"] is True
        assert metadata["was_normalized"] is True
        assert metadata["redirect_count"] == 1
        assert metadata["field_sources"]["id"] == "url"

    @pytest.mark.asyncio
    async def test_redirect_failure_falls_back_to_unexpanded_url(self, ml_html, settings):
        short = "https://meli.la/1r1BBFY"
        calls = []

        def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("reset by peer")
            return page(ml_html)

        transport = RecordingTransport({short: flaky})

        result = await run_pipeline(short, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        assert result.trace.error == "reset by peer"
        assert result.scraping_url == short
        assert build_metadata(result)["redirect_error"] == "reset by peer"

    @pytest.mark.asyncio
    async def test_fetch_failure(self, settings):
        transport = RecordingTransport({ML_PRODUCT_URL: httpx.Response(503)})

        with pytest.raises(NetworkFailure) as exc:
            await run_pipeline(ML_PRODUCT_URL, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        payload = exc.value.to_payload()
        assert exc.value.status_code == 500
        assert payload["error"] is True
        assert payload["message"] == "Request failed with status code 503"
        assert payload["suggestion"] == "Não foi possível extrair os dados deste link do Mercado Livre."
        assert payload["debug"]["scraping_url"] == ML_PRODUCT_URL
        assert "redirect_chain" not in payload["debug"]

    @pytest.mark.asyncio
    async def test_final_redirect_without_location(self, settings):
        transport = RecordingTransport({ML_PRODUCT_URL: httpx.Response(302)})

        with pytest.raises(NetworkFailure) as exc:
            await run_pipeline(ML_PRODUCT_URL, Retailer.MERCADO_LIVRE, settings=settings, transport=transport)

        assert exc.value.message == "Request failed with status code 302"
        assert exc.value.to_payload()["debug"]["scraping_url"] == ML_PRODUCT_URL


class TestAmazon:
    @pytest.mark.asyncio
    async def test_short_link(self, amazon_html, settings):
        short = "https://amzn.to/4qjSzCV"
        transport = RecordingTransport({short: redirect(AMAZON_PRODUCT_URL), AMAZON_PRODUCT_URL: page(amazon_html)})

        result = await extract_url(short, settings=settings, transport=transport)

        assert result.retailer == Retailer.AMAZON
        # one request per hop, then the final fetch
        assert transport.urls == [short, AMAZON_PRODUCT_URL, AMAZON_PRODUCT_URL]
        assert result.record.id == "B0CHX1W1XY"

        response = assemble_response(result)
        body = response.model_dump(by_alias=True)
        assert body["currency_id"] == "BRL"
        assert body["formatted_price"] == "R$ 1234,56"
        assert body["pictures"] == [{"url": "https://m.media-amazon.com/images/I/71main._AC_SX679_.jpg"}]
        assert body["thumbnail"] == body["pictures"][0]["url"]
        assert body["seller"] == {"nickname": "Loja Y"}
        assert body["is_affiliate_link"] is False
        assert body["date_created"].endswith("Z")

        metadata = body["_metadata"]
        assert metadata["platform"] == "amazon"
        assert metadata["asin"] == "B0CHX1W1XY"
        assert metadata["image_quality"] == "high"
        assert metadata["redirect_chain"] == [short, AMAZON_PRODUCT_URL]
        assert metadata["redirect_truncated"] is False
        assert metadata["has_price"] is True

    @pytest.mark.asyncio
    async def test_hop_limit_from_settings(self, amazon_html, monkeypatch):
        monkeypatch.setenv("AMAZON_MAX_REDIRECT_HOPS", "1")
        urls = ["https://amzn.to/a", "https://amzn.to/b", AMAZON_PRODUCT_URL]
        transport = RecordingTransport(
            {urls[0]: redirect(urls[1]), urls[1]: redirect(urls[2]), AMAZON_PRODUCT_URL: page(amazon_html)}
        )

        result = await run_pipeline(urls[0], Retailer.AMAZON, settings=Settings(), transport=transport)

        assert result.trace.truncated
        assert result.trace.hop_count == 1
        # the final fetch follows the remaining redirect itself
        assert result.record.id == "B0CHX1W1XY"

    @pytest.mark.asyncio
    async def test_page_without_price(self, settings):
        transport = RecordingTransport({AMAZON_PRODUCT_URL: page("<title>Amazon.com.br: Item</title>")})

        result = await run_pipeline(AMAZON_PRODUCT_URL, Retailer.AMAZON, settings=settings, transport=transport)
        body = assemble_response(result).model_dump(by_alias=True)

        assert body["price"] == 0
        assert body["formatted_price"] == "Preço não disponível"
        assert body["pictures"] == []
        assert body["seller"] is None
        assert body["_metadata"]["has_price"] is False
        assert body["_metadata"]["image_quality"] == "standard"
