# conftest.py
# Put the repository root on sys.path so the flat top-level modules
# (pipeline, extractor, ...) import the same way they do under main.py.

import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

FIXTURES = Path(__file__).parent / "fixtures"

ML_PRODUCT_URL = "https://produto.mercadolivre.com.br/MLB-1234567890-console-x-_JM"
AMAZON_PRODUCT_URL = "https://www.amazon.com.br/dp/B0CHX1W1XY"


@pytest.fixture
def ml_html() -> str:
    return (FIXTURES / "mercadolivre_console.html").read_text(encoding="utf-8")


@pytest.fixture
def amazon_html() -> str:
    return (FIXTURES / "amazon_fone.html").read_text(encoding="utf-8")


class RecordingTransport(httpx.MockTransport):
    """MockTransport that serves a fixed URL -> response table and records every request.

    Each route value is either an httpx.Response, a callable taking the
    request, or an exception instance to raise. Unknown URLs answer 404.
    """

    def __init__(self, routes: dict):
        self.routes = routes
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # fresh copy per request; a route may be hit more than once
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


def redirect(location: str, status: int = 301) -> httpx.Response:
    return httpx.Response(status, headers={"Location": location})


def page(html: str) -> httpx.Response:
    return httpx.Response(200, text=html, headers={"Content-Type": "text/html; charset=utf-8"})


@pytest.fixture
def transport_factory():
    return RecordingTransport
