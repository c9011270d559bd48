"""Manual redirect resolution for short links (youtu.be, t.co, ...).

Each hop is a HEAD request with redirects disabled so that every Location is
seen and counted. Any failure stops the walk and returns the URL reached so
far; only caller cancellation propagates.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx
import structlog

from linkdeco.errors import FetchCancelledError, is_cross_origin_error

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from linkdeco.cancellation import CancellationToken

log = structlog.get_logger()


async def resolve_redirects(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_redirects: int = 5,
    timeout: float = 10.0,
    user_agent: str | None = None,
    cancellation: CancellationToken | None = None,
    logger: FilteringBoundLogger | None = None,
) -> str:
    """Follow up to ``max_redirects`` redirects from ``url`` and return the final URL."""
    logger = logger or log
    headers = {"User-Agent": user_agent} if user_agent else {}
    current_url = url
    redirects = 0

    while redirects < max_redirects:
        request = client.head(current_url, headers=headers, follow_redirects=False)
        try:
            if cancellation is None:
                response = await asyncio.wait_for(request, timeout)
            else:
                response = await asyncio.wait_for(cancellation.run(request), timeout)
        except FetchCancelledError:
            raise
        except Exception as exc:
            if is_cross_origin_error(exc):
                logger.debug("redirect_resolution_blocked", url=current_url)
            else:
                logger.warning("redirect_resolution_failed", url=current_url, error=repr(exc))
            return current_url

        location = response.headers.get("location")
        if not (300 <= response.status_code < 400 and location):
            break
        current_url = urljoin(current_url, location)
        redirects += 1

    if max_redirects and redirects >= max_redirects:
        logger.warning("redirect_limit_reached", url=url, max_redirects=max_redirects)

    return current_url
