from __future__ import annotations

import asyncio
from typing import List, Optional

import feedparser
import httpx
import structlog

from .exceptions import BadStatus, FetchTimeout, MalformedDocument, TransportError
from .models import RawEntry
from .parser import parse_entry

log = structlog.get_logger(__name__)

USER_AGENT = "rss-relay/0.1"
DEFAULT_TIMEOUT = 10.0

_HEADER_WARNINGS = (feedparser.CharacterEncodingOverride, feedparser.NonXMLContentType)


async def _get(client: httpx.AsyncClient, url: str) -> httpx.Response:
    # The body is read inside the same awaitable so the deadline covers it.
    response = await client.get(url, headers={"User-Agent": USER_AGENT}, follow_redirects=True)
    await response.aread()
    return response


def parse_document(body: bytes, *, url: str, content_type: Optional[str] = None) -> List[RawEntry]:
    """
    Parse an RSS/Atom document body into RawEntry values in document order.

    Raises MalformedDocument when feedparser flags the body as not well formed
    or when it does not look like a feed at all.
    """
    headers = {"content-type": content_type} if content_type else None
    feed = feedparser.parse(
        body, response_headers=headers, resolve_relative_uris=False, sanitize_html=False
    )

    if getattr(feed, "bozo", 0):
        exc = getattr(feed, "bozo_exception", None)
        # Header-only complaints (charset mismatch, non-XML Content-Type) are
        # harmless; the body itself still parsed
        if not isinstance(exc, _HEADER_WARNINGS):
            msg = f"Invalid RSS/Atom feed: {url}"
            if exc:
                msg += f" ({exc})"
            raise MalformedDocument(msg, url=url)

    if not getattr(feed, "version", ""):
        raise MalformedDocument(f"Not an RSS/Atom feed: {url}", url=url)

    entries = getattr(feed, "entries", None)
    if not isinstance(entries, list):
        raise MalformedDocument(f"Feed has no entries list: {url}", url=url)
    return [parse_entry(e) for e in entries]


async def fetch_feed_entries(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> List[RawEntry]:
    """
    Fetch a single feed URL and return its entries.

    One GET, no retries. The whole exchange (headers and body) must finish
    within ``timeout`` seconds. Cancelling the awaiting task cancels the request.
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        close_client = True

    try:
        response = await asyncio.wait_for(_get(client, url), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeout(f"Timed out after {timeout}s: {url}", url=url) from e
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to fetch feed: {url} ({e})", url=url) from e
    finally:
        if close_client:
            await client.aclose()

    if not response.is_success:
        raise BadStatus(response.status_code, url=url)

    entries = parse_document(
        response.content, url=url, content_type=response.headers.get("content-type")
    )
    log.debug("feed_fetched", url=url, entries=len(entries))
    return entries
