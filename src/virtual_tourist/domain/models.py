"""Domain models for locations and their photo albums."""

from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_KEY_PRECISION = 6


@dataclass(frozen=True)
class Coordinate:
    """Geographic coordinate in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


def location_key(
    coordinate: Coordinate, precision: int = DEFAULT_KEY_PRECISION
) -> str:
    """Derive the identity key of a location from its coordinate.

    Both components are rounded to ``precision`` decimal places and rendered
    with fixed-point formatting, so the key does not depend on float repr or
    locale. Negative zero is folded into zero.
    """
    latitude = round(coordinate.latitude, precision) + 0.0
    longitude = round(coordinate.longitude, precision) + 0.0
    return f"{latitude:.{precision}f}&{longitude:.{precision}f}"


@dataclass(frozen=True)
class Location:
    """A persisted geographic marker placed by the user."""

    key: str
    latitude: float
    longitude: float
    created_at: datetime

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(frozen=True)
class PhotoDescriptor:
    """Photo reference returned by the remote search service."""

    external_id: str
    remote_url: str


@dataclass(frozen=True)
class Photo:
    """A persisted photo belonging to one location."""

    id: str
    external_id: str
    location_key: str
    remote_url: str | None
    created_at: datetime
    data: bytes | None = None

    @property
    def is_pending(self) -> bool:
        return self.data is None


def photo_id(location_key: str, external_id: str) -> str:
    """Return the identity of a photo within a location's album."""
    return f"{location_key}/{external_id}"


@dataclass(frozen=True)
class AlbumPage:
    """One page of search results plus its pagination metadata."""

    page: int
    pages: int
    per_page: int
    photos: list[PhotoDescriptor] = field(default_factory=list)
