"""
Hop-by-hop redirect resolution for shortened and affiliate links.

Each hop is a single GET with automatic redirects disabled. The visited chain
is local to one call and doubles as the cycle check.
"""

import logging
from urllib.parse import urljoin

import httpx

from errors import NetworkFailure
from fetcher import fetch_page, hop_headers
from models import RedirectTrace, StopReason

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 5
AMAZON_MAX_HOPS = 3
DEFAULT_HOP_TIMEOUT = 10.0


async def resolve_redirects(
    url: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    *,
    timeout: float = DEFAULT_HOP_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RedirectTrace:
    """Follow ``url`` through at most ``max_hops`` redirects.

    Stops at the first non-redirect response, a redirect without Location,
    a URL already in the chain, or the hop limit. A network failure anywhere
    in the chain returns the *original* URL with hop_count 0 and the error,
    so the caller can still fetch the unexpanded link.
    """
    logger.info(f"Following redirects from {url} (max {max_hops})")
    chain = [url]
    current = url
    stop = StopReason.FINAL_RESPONSE

    try:
        while True:
            if len(chain) - 1 >= max_hops:
                stop = StopReason.MAX_HOPS
                break

            logger.info(f"  hop {len(chain)}: {current}")
            result = await fetch_page(
                current, hop_headers(), timeout=timeout, follow_redirects=False, transport=transport
            )
            if result.status_code >= 400:
                raise NetworkFailure(f"Request failed with status code {result.status_code}")
            if not result.is_redirect:
                break

            location = result.headers.get("location")
            if not location:
                stop = StopReason.NO_LOCATION
                break

            next_url = urljoin(current, location.strip())
            if next_url in chain:
                logger.warning(f"  redirect loop detected at {next_url}, stopping")
                stop = StopReason.LOOP
                break

            logger.info(f"  -> {next_url}")
            chain.append(next_url)
            current = next_url
    except NetworkFailure as e:
        logger.error(f"Redirect resolution failed for {url}: {e.message}")
        return RedirectTrace(
            final_url=url,
            hop_count=0,
            chain=[url],
            stop_reason=StopReason.NETWORK_ERROR,
            error=e.message,
        )

    logger.info(f"Final URL after {len(chain) - 1} redirect(s): {current}")
    return RedirectTrace(
        final_url=current,
        hop_count=len(chain) - 1,
        chain=chain,
        truncated=stop in (StopReason.LOOP, StopReason.MAX_HOPS),
        stop_reason=stop,
    )
