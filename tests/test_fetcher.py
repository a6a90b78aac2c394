import asyncio

import httpx
import pytest

from rss_relay.exceptions import BadStatus, FetchTimeout, MalformedDocument, TransportError
from rss_relay.fetcher import fetch_feed_entries, parse_document

from conftest import feed_at, pub_date, rss_document, rss_item

URL = "https://example.com/rss"


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_document_keeps_order_and_fields():
    """Entries come back raw, in document order"""
    body = rss_document([
        rss_item(
            "First",
            pub_date(2),
            guid="guid-1",
            link="https://example.com/1",
            description="<p>cap</p><p>Body one</p>",
            categories=["#Bitcoin", "DeFi & NFTs"],
        ),
        rss_item("Second", pub_date(1), guid="guid-2"),
    ])
    entries = parse_document(body, url=URL)

    assert [e.title for e in entries] == ["First", "Second"]
    first = entries[0]
    assert first.guid == "guid-1"
    assert first.link == "https://example.com/1"
    assert first.pub_date == pub_date(2)
    assert first.categories == ("#Bitcoin", "DeFi & NFTs")
    assert "Body one" in first.description


def test_parse_document_empty_channel():
    """A valid feed without items is not an error"""
    assert parse_document(rss_document([]), url=URL) == []


def test_parse_document_truncated():
    """Truncated markup is a malformed document"""
    body = feed_at(2, 1)[:-40]
    with pytest.raises(MalformedDocument):
        parse_document(body, url=URL)


def test_parse_document_not_a_feed():
    """Plain text is rejected"""
    with pytest.raises(MalformedDocument):
        parse_document(b"hello, this is not xml", url=URL)


@pytest.mark.asyncio
async def test_fetch_success():
    """Successful GET returns the entries"""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=feed_at(3, 2), headers={"content-type": "application/rss+xml"})

    async with client_for(handler) as client:
        entries = await fetch_feed_entries(URL, client=client)

    assert [e.guid for e in entries] == ["https://example.com/news/3", "https://example.com/news/2"]
    assert seen[0].method == "GET"
    assert "rss-relay" in seen[0].headers["user-agent"]


@pytest.mark.asyncio
async def test_fetch_bad_status():
    """Non-2xx responses raise BadStatus with the code"""
    async with client_for(lambda request: httpx.Response(503)) as client:
        with pytest.raises(BadStatus) as exc_info:
            await fetch_feed_entries(URL, client=client)
    assert exc_info.value.code == 503
    assert exc_info.value.url == URL


@pytest.mark.asyncio
async def test_fetch_deadline():
    """A response slower than the deadline raises FetchTimeout"""
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, content=feed_at(1))

    async with client_for(handler) as client:
        with pytest.raises(FetchTimeout):
            await fetch_feed_entries(URL, timeout=0.05, client=client)


@pytest.mark.asyncio
async def test_fetch_httpx_timeout():
    """httpx timeouts map to FetchTimeout"""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    async with client_for(handler) as client:
        with pytest.raises(FetchTimeout):
            await fetch_feed_entries(URL, client=client)


@pytest.mark.asyncio
async def test_fetch_transport_error():
    """Connection failures map to TransportError"""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(TransportError):
            await fetch_feed_entries(URL, client=client)


@pytest.mark.asyncio
async def test_fetch_malformed_body():
    """A 200 with a broken body raises MalformedDocument"""
    async with client_for(lambda request: httpx.Response(200, content=b"<rss><channel><item>")) as client:
        with pytest.raises(MalformedDocument):
            await fetch_feed_entries(URL, client=client)


@pytest.mark.parametrize("content_type", ["text/html; charset=utf-8", "text/plain", "application/octet-stream"])
def test_parse_document_ignores_content_type(content_type):
    """A well-formed feed parses whatever Content-Type it is served with"""
    entries = parse_document(feed_at(2, 1), url=URL, content_type=content_type)
    assert [e.guid for e in entries] == ["https://example.com/news/2", "https://example.com/news/1"]


@pytest.mark.asyncio
async def test_fetch_feed_served_as_html():
    """Servers that label the feed text/html still deliver entries"""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=feed_at(3), headers={"content-type": "text/html; charset=utf-8"})

    async with client_for(handler) as client:
        entries = await fetch_feed_entries(URL, client=client)

    assert [e.title for e in entries] == ["News 3"]
