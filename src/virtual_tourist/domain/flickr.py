"""Pydantic models for Flickr search payloads."""

from pydantic import BaseModel, Field


class FlickrPhoto(BaseModel):
    """Single photo entry of a search result."""

    id: str
    secret: str | None = None
    server: str | None = None
    farm: int | None = None
    title: str | None = None
    url_m: str | None = None

    def remote_url(self) -> str | None:
        """Return the medium-size image URL for this photo, if derivable."""
        if self.url_m:
            return self.url_m
        if self.farm is None or not self.server or not self.secret:
            return None
        return (
            f"https://farm{self.farm}.staticflickr.com/"
            f"{self.server}/{self.id}_{self.secret}.jpg"
        )


class FlickrPhotos(BaseModel):
    """Paginated photo block of a search result."""

    page: int = Field(ge=1)
    pages: int = Field(ge=0)
    perpage: int = Field(ge=1)
    photo: list[FlickrPhoto] = Field(default_factory=list)


class FlickrSearchResponse(BaseModel):
    """Top-level ``flickr.photos.search`` response."""

    stat: str
    photos: FlickrPhotos | None = None
    code: int | None = None
    message: str | None = None
