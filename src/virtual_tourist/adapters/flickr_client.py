"""Flickr photo search client."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import ValidationError

from virtual_tourist.domain.errors import EmptyResult, NetworkError
from virtual_tourist.domain.flickr import FlickrSearchResponse
from virtual_tourist.domain.models import AlbumPage, Coordinate, PhotoDescriptor

_logger = logging.getLogger(__name__)


class RemoteAlbumClient(Protocol):
    """Interface for the remote photo search service."""

    async def search(self, coordinate: Coordinate, page: int = 1) -> AlbumPage:
        """Return one page of photos taken near ``coordinate``."""

    async def fetch_binary(self, url: str) -> bytes:
        """Download the raw image bytes at ``url``."""


@dataclass
class HttpxFlickrClient(RemoteAlbumClient):
    """Flickr REST client using httpx."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    radius_km: float = 5.0
    per_page: int = 21
    timeout: float = 15.0

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        api_key: str,
        base_url: str,
        radius_km: float = 5.0,
        per_page: int = 21,
        timeout: float = 15.0,
    ) -> "HttpxFlickrClient":
        """Create a Flickr client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            radius_km=radius_km,
            per_page=per_page,
            timeout=timeout,
        )

    async def search(self, coordinate: Coordinate, page: int = 1) -> AlbumPage:
        """Search photos around a coordinate via ``flickr.photos.search``."""
        if page < 1:
            raise ValueError("page must be >= 1")
        params: dict[str, str | int | float] = {
            "method": "flickr.photos.search",
            "api_key": self.api_key,
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "radius": self.radius_km,
            "per_page": self.per_page,
            "page": page,
            "extras": "url_m",
            "safe_search": 1,
            "format": "json",
            "nojsoncallback": 1,
        }
        try:
            response = await self.http_client.get(
                self.base_url, params=params, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(f"Flickr search failed: {exc}") from exc
        except ValueError as exc:
            raise EmptyResult("Flickr search returned malformed JSON") from exc

        try:
            parsed = FlickrSearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise EmptyResult("Flickr search returned a malformed payload") from exc
        if parsed.stat != "ok":
            raise NetworkError(
                f"Flickr search failed (code={parsed.code}): {parsed.message}"
            )
        if parsed.photos is None:
            raise EmptyResult("Flickr search returned no photo block")

        descriptors = []
        for photo in parsed.photos.photo:
            url = photo.remote_url()
            if url is None:
                _logger.debug("Skipping Flickr photo without URL: id=%s", photo.id)
                continue
            descriptors.append(PhotoDescriptor(external_id=photo.id, remote_url=url))
        if not descriptors:
            raise EmptyResult(f"No photos found near {coordinate} on page {page}")
        return AlbumPage(
            page=parsed.photos.page,
            pages=parsed.photos.pages,
            per_page=parsed.photos.perpage,
            photos=descriptors,
        )

    async def fetch_binary(self, url: str) -> bytes:
        """Download image bytes."""
        try:
            response = await self.http_client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(f"Photo download failed: {exc}") from exc
        if not response.content:
            raise NetworkError(f"Photo download returned no data: {url}")
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
