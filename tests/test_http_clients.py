"""Tests for HTTP-based adapters."""

import asyncio

import httpx
import pytest

from virtual_tourist.adapters.flickr_client import HttpxFlickrClient
from virtual_tourist.domain.errors import EmptyResult, NetworkError
from virtual_tourist.domain.models import Coordinate


def _client(handler) -> HttpxFlickrClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxFlickrClient(
        api_key="key",
        base_url="https://api.test/services/rest/",
        http_client=httpx.AsyncClient(transport=transport),
        per_page=2,
    )


def test_flickr_search_parses_album_page() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "stat": "ok",
                "photos": {
                    "page": 3,
                    "pages": 40,
                    "perpage": 2,
                    "total": "80",
                    "photo": [
                        {
                            "id": "101",
                            "secret": "s1",
                            "server": "65535",
                            "farm": 66,
                            "url_m": "https://live.staticflickr.com/65535/101_s1.jpg",
                        },
                        {"id": "102", "secret": "s2", "server": "65535", "farm": 66},
                        {"id": "103"},
                    ],
                },
            },
        )

    client = _client(handler)
    album = asyncio.run(client.search(Coordinate(10.0, 20.0), page=3))

    params = seen[0].url.params
    assert params["method"] == "flickr.photos.search"
    assert params["page"] == "3"
    assert params["per_page"] == "2"
    assert params["lat"] == "10.0"
    assert (album.page, album.pages, album.per_page) == (3, 40, 2)
    assert [photo.external_id for photo in album.photos] == ["101", "102"]
    assert album.photos[1].remote_url == (
        "https://farm66.staticflickr.com/65535/102_s2.jpg"
    )


def test_flickr_search_without_photos_is_empty_result() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "stat": "ok",
                "photos": {"page": 1, "pages": 0, "perpage": 2, "photo": []},
            },
        )

    client = _client(handler)

    with pytest.raises(EmptyResult):
        asyncio.run(client.search(Coordinate(0.0, 0.0)))


def test_flickr_search_malformed_payload_is_empty_result() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"jsonFlickrApi({})")

    client = _client(handler)

    with pytest.raises(EmptyResult):
        asyncio.run(client.search(Coordinate(0.0, 0.0)))


def test_flickr_search_failure_stat_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"stat": "fail", "code": 100, "message": "Invalid API Key"}
        )

    client = _client(handler)

    with pytest.raises(NetworkError):
        asyncio.run(client.search(Coordinate(0.0, 0.0)))


def test_flickr_search_http_error_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = _client(handler)

    with pytest.raises(NetworkError):
        asyncio.run(client.search(Coordinate(0.0, 0.0)))


def test_flickr_search_rejects_page_zero() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ValueError):
        asyncio.run(client.search(Coordinate(0.0, 0.0), page=0))


def test_fetch_binary_returns_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/65535/101_s1.jpg"
        return httpx.Response(200, content=b"image-bytes")

    client = _client(handler)

    data = asyncio.run(
        client.fetch_binary("https://live.staticflickr.com/65535/101_s1.jpg")
    )

    assert data == b"image-bytes"


def test_fetch_binary_transport_failure_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler)

    with pytest.raises(NetworkError):
        asyncio.run(client.fetch_binary("https://live.staticflickr.com/x.jpg"))


def test_fetch_binary_invalid_url_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"image-bytes")

    client = _client(handler)

    with pytest.raises(NetworkError):
        asyncio.run(client.fetch_binary("https://img.test:bad/b.jpg"))
