"""Tests for the async Google Books client."""
import asyncio

import httpx
import pytest

from bookshelf.async_client import AsyncGoogleBooksClient
from bookshelf.errors import TransportError, UpstreamError
from bookshelf.models import Query


def _client(handler):
    transport = httpx.MockTransport(handler)
    return AsyncGoogleBooksClient(api_key="k", client=httpx.AsyncClient(transport=transport))


def _run(client, *args):
    async def go():
        async with client:
            return await client.fetch_page(*args)
    return asyncio.run(go())


def test_fetch_page_success():
    """Test a normal async fetch and the request it sends."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "totalItems": 41,
            "items": [{"id": "v1", "volumeInfo": {"title": "The Hobbit", "publishedDate": "1937"}}]
        })

    result = _run(_client(handler), Query(author="Tolkien", title="Hobbit"), 40, 1)

    assert result.total_results == 41
    assert result.items[0].published_year == 1937
    request = seen[0]
    assert request.url.params["startIndex"] == "40"
    assert request.url.params["maxResults"] == "1"
    assert request.url.params["key"] == "k"
    assert "q=inauthor:Tolkien+intitle:Hobbit" in str(request.url)


def test_fetch_page_error_status():
    """Test that a non-2xx status raises TransportError."""
    client = _client(lambda request: httpx.Response(429, json={"error": {"message": "slow down"}}))

    with pytest.raises(TransportError, match="429"):
        _run(client, Query(title="Dune"))


def test_fetch_page_embedded_error():
    """Test that an error object in a 200 body raises UpstreamError."""
    client = _client(lambda request: httpx.Response(200, json={"error": {"message": "bad key"}}))

    with pytest.raises(UpstreamError, match="bad key"):
        _run(client, Query(title="Dune"))


def test_fetch_page_invalid_json():
    """Test that a non-JSON body raises TransportError."""
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(TransportError):
        _run(client, Query(title="Dune"))


def test_fetch_page_network_failure():
    """Test that transport exceptions become TransportError."""
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="refused"):
        _run(_client(handler), Query(title="Dune"))


def test_fetch_page_timeout():
    """Test that an httpx timeout becomes TransportError."""
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(TransportError, match="timed out"):
        _run(_client(handler), Query(title="Dune"))
