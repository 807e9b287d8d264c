"""Outbound HTTP for the triage service (today: the Anthropic Messages API).

One pooled httpx.AsyncClient per process, closed from the app lifespan.
Redirects are not followed. Callers pass `timeout=` per request when the
default does not fit (vision calls take longer).
"""

import httpx
from loguru import logger

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=DEFAULT_TIMEOUT,
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        follow_redirects=False,
        headers={"User-Agent": "incident-triage"},
    )


http = _build_client()


async def close_clients() -> None:
    if http.is_closed:
        return
    try:
        await http.aclose()
    except RuntimeError as e:
        # Loop already gone at interpreter shutdown
        logger.debug("HTTP client close skipped: {}", e)
