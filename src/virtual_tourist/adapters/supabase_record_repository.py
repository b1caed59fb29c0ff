"""Supabase-backed repository for locations and photos."""

import base64
from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from virtual_tourist.domain.models import Location, Photo
from virtual_tourist.services.store import RecordRepository


@dataclass
class SupabaseRecordRepository(RecordRepository):
    """Supabase implementation of location and photo persistence.

    Photos are written with a single multi-row insert, which PostgREST runs
    as one statement, so a batch either lands completely or not at all.
    Image bytes are stored base64-encoded in the ``data`` column.
    """

    client: Client

    def get_location(self, key: str) -> Location | None:
        """Return a location by key, if present."""
        response = (
            self.client.table("locations")
            .select("*")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_location(response.data[0])

    def insert_location(self, location: Location) -> Location:
        """Insert a location row and return it."""
        response = (
            self.client.table("locations")
            .insert(
                {
                    "key": location.key,
                    "latitude": location.latitude,
                    "longitude": location.longitude,
                    "created_at": location.created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create location")
        return _parse_location(response.data[0])

    def delete_location(self, key: str) -> Location | None:
        """Delete a location row."""
        response = self.client.table("locations").delete().eq("key", key).execute()
        if not response.data:
            return None
        return _parse_location(response.data[0])

    def list_locations(self) -> list[Location]:
        """Return all locations, oldest first."""
        response = (
            self.client.table("locations").select("*").order("created_at").execute()
        )
        return [_parse_location(row) for row in response.data or []]

    def has_photos(self, location_key: str) -> bool:
        """Return whether the location has any photo rows."""
        response = (
            self.client.table("photos")
            .select("id")
            .eq("location_key", location_key)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def insert_photos(self, photos: list[Photo]) -> None:
        """Insert all photos in a single request."""
        if not photos:
            return
        response = (
            self.client.table("photos")
            .insert([_photo_row(photo) for photo in photos])
            .execute()
        )
        if not response.data or len(response.data) != len(photos):
            raise RuntimeError("Failed to create photos")

    def list_photos(self, location_key: str) -> list[Photo]:
        """Return the photos of a location, newest first."""
        response = (
            self.client.table("photos")
            .select("*")
            .eq("location_key", location_key)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_photo(row) for row in response.data or []]

    def update_photo_data(self, photo_id: str, data: bytes) -> Photo | None:
        """Store image bytes on a photo row."""
        response = (
            self.client.table("photos")
            .update({"data": base64.b64encode(data).decode("ascii")})
            .eq("id", photo_id)
            .execute()
        )
        if not response.data:
            return None
        return _parse_photo(response.data[0])

    def delete_photo(self, photo_id: str) -> Photo | None:
        """Delete a photo row."""
        response = self.client.table("photos").delete().eq("id", photo_id).execute()
        if not response.data:
            return None
        return _parse_photo(response.data[0])


def _photo_row(photo: Photo) -> dict[str, object]:
    return {
        "id": photo.id,
        "external_id": photo.external_id,
        "location_key": photo.location_key,
        "remote_url": photo.remote_url,
        "created_at": photo.created_at.isoformat(),
        "data": None,
    }


def _parse_location(row: dict[str, object]) -> Location:
    """Parse a location row into a domain model."""
    return Location(
        key=str(row["key"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )


def _parse_photo(row: dict[str, object]) -> Photo:
    """Parse a photo row into a domain model."""
    raw_data = row.get("data")
    return Photo(
        id=str(row["id"]),
        external_id=str(row["external_id"]),
        location_key=str(row["location_key"]),
        remote_url=row.get("remote_url"),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        data=base64.b64decode(raw_data) if isinstance(raw_data, str) else None,
    )
