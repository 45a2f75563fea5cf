"""
Outbound HTTP: client identity rotation, per-retailer header sets and a
single-GET page fetch with timeout enforcement.

Each call opens its own httpx.AsyncClient; nothing is pooled or shared
across requests.
"""

import logging
import random
from dataclasses import dataclass

import httpx

from errors import NetworkFailure

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (iPad; CPU OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 10; SM-G973F) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
)

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def hop_headers() -> dict[str, str]:
    """Minimal header set for redirect hops."""
    return {
        "User-Agent": random_user_agent(),
        "Accept": ACCEPT_HTML,
        "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8,es;q=0.7",
    }


@dataclass
class FetchResult:
    url: str  # URL of the response, after any automatic redirects
    status_code: int
    headers: httpx.Headers
    text: str

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400


async def fetch_page(
    url: str,
    headers: dict[str, str],
    *,
    timeout: float,
    follow_redirects: bool = False,
    max_redirects: int = 0,
    check_status: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchResult:
    """Issue one GET. Raises NetworkFailure on timeout, transport error or,
    when ``check_status`` is set, any status outside 2xx."""
    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            follow_redirects=follow_redirects,
            max_redirects=max_redirects,
        ) as client:
            resp = await client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        logger.warning(f"Timeout after {timeout}s fetching {url}")
        raise NetworkFailure(f"timeout of {timeout:g}s exceeded", timeout=True) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Request to {url} failed: {e!r}")
        raise NetworkFailure(str(e) or e.__class__.__name__) from e

    if check_status and not 200 <= resp.status_code < 300:
        logger.warning(f"{url} answered HTTP {resp.status_code}")
        raise NetworkFailure(f"Request failed with status code {resp.status_code}")

    return FetchResult(url=str(resp.url), status_code=resp.status_code, headers=resp.headers, text=resp.text)
