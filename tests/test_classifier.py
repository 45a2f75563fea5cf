"""Retailer classification: pattern sets, non-overlap and malformed input."""

import pytest

from classifier import classify, ensure_scheme, host_of, matches
from models import Retailer

MERCADO_LIVRE_URLS = [
    "https://produto.mercadolivre.com.br/MLB-1234567890-console-x-_JM",
    "https://www.mercadolivre.com.br/console-x/p/MLB123456789",
    "https://meli.la/1r1BBFY",
    "mercadolivre.com.br/ofertas",
    "https://www.mercadolibre.com.ar/item",
    "HTTPS://WWW.MERCADOLIVRE.COM.BR/MLB-1234567890",
]

AMAZON_URLS = [
    "https://www.amazon.com.br/dp/B08N5WRWNW",
    "https://www.amazon.com.br/Fone-Bluetooth/dp/B0CHX1W1XY/ref=sr_1_1",
    "https://amzn.to/4qjSzCV",
    "https://a.co/d/3xYz",
    "amazon.com/gp/product/B08N5WRWNW",
    "https://www.amazon.co.uk/some-product",
]

UNSUPPORTED = [
    "https://www.google.com/search?q=console",
    "https://shopee.com.br/produto-123",
    "https://notamazon.com.br/dp/nothing",
    "https://www.mercado.com.br/algo",
    "not a url",
    "",
    None,
    "http://[::1",
    "://",
]


@pytest.mark.parametrize("url", MERCADO_LIVRE_URLS)
def test_mercadolivre_urls(url):
    assert classify(url).supported
    assert classify(url).retailer == Retailer.MERCADO_LIVRE


@pytest.mark.parametrize("url", AMAZON_URLS)
def test_amazon_urls(url):
    result = classify(url)
    assert result.supported
    assert result.retailer == Retailer.AMAZON


@pytest.mark.parametrize("url", UNSUPPORTED)
def test_unsupported_never_raises(url):
    result = classify(url)
    assert not result.supported
    assert result.retailer == Retailer.NONE


class TestNonOverlap:
    @pytest.mark.parametrize("url", MERCADO_LIVRE_URLS)
    def test_amazon_patterns_reject_mercadolivre(self, url):
        assert not matches(url, Retailer.AMAZON)

    @pytest.mark.parametrize("url", AMAZON_URLS)
    def test_mercadolivre_patterns_reject_amazon(self, url):
        assert not matches(url, Retailer.MERCADO_LIVRE)

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.amazon.com.br/MLB-1234567890/dp/B08N5WRWNW",
            "https://amzn.to/MLB-1234567890",
            "https://www.mercadolivre.com.br/dp/B08N5WRWNW",
            "https://meli.la/gp/product/B08N5WRWNW",
        ],
    )
    def test_path_marker_on_other_retailer_host(self, url):
        assert [matches(url, r) for r in (Retailer.MERCADO_LIVRE, Retailer.AMAZON)].count(True) == 1

    def test_path_marker_does_not_override_host(self):
        assert classify("https://www.amazon.com.br/MLB-1234567890/dp/B08N5WRWNW").retailer == Retailer.AMAZON
        assert classify("https://www.mercadolivre.com.br/dp/B08N5WRWNW").retailer == Retailer.MERCADO_LIVRE

    def test_mlb_id_under_dp_is_not_an_asin(self):
        assert not matches("https://example.com/dp/MLB1234567", Retailer.AMAZON)
        assert matches("https://example.com/dp/MLB1234567", Retailer.MERCADO_LIVRE)


def test_matches_none_retailer():
    assert not matches("https://www.amazon.com.br/dp/B08N5WRWNW", Retailer.NONE)


def test_ensure_scheme():
    assert ensure_scheme("meli.la/abc") == "https://meli.la/abc"
    assert ensure_scheme("  //meli.la/abc ") == "https://meli.la/abc"
    assert ensure_scheme("http://meli.la/abc") == "http://meli.la/abc"


def test_host_of():
    assert host_of("HTTPS://WWW.Amazon.com.br/dp/X") == "www.amazon.com.br"
    assert host_of("http://[::1") == ""
