"""In-process record repository."""

import threading
from dataclasses import dataclass, field, replace

from virtual_tourist.domain.models import Location, Photo
from virtual_tourist.services.store import RecordRepository


@dataclass
class InMemoryRecordRepository(RecordRepository):
    """Dict-backed repository, used when no durable store is configured."""

    locations: dict[str, Location] = field(default_factory=dict)
    photos: dict[str, Photo] = field(default_factory=dict)
    _mutex: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get_location(self, key: str) -> Location | None:
        with self._mutex:
            return self.locations.get(key)

    def insert_location(self, location: Location) -> Location:
        with self._mutex:
            if location.key in self.locations:
                raise ValueError(f"Duplicate location key: {location.key}")
            self.locations[location.key] = location
            return location

    def delete_location(self, key: str) -> Location | None:
        with self._mutex:
            return self.locations.pop(key, None)

    def list_locations(self) -> list[Location]:
        with self._mutex:
            return list(self.locations.values())

    def has_photos(self, location_key: str) -> bool:
        with self._mutex:
            return any(
                photo.location_key == location_key for photo in self.photos.values()
            )

    def insert_photos(self, photos: list[Photo]) -> None:
        with self._mutex:
            duplicates = [photo.id for photo in photos if photo.id in self.photos]
            if duplicates:
                raise ValueError(f"Duplicate photo ids: {duplicates}")
            for photo in photos:
                self.photos[photo.id] = photo

    def list_photos(self, location_key: str) -> list[Photo]:
        with self._mutex:
            return [
                photo
                for photo in self.photos.values()
                if photo.location_key == location_key
            ]

    def update_photo_data(self, photo_id: str, data: bytes) -> Photo | None:
        with self._mutex:
            photo = self.photos.get(photo_id)
            if photo is None:
                return None
            updated = replace(photo, data=data)
            self.photos[photo_id] = updated
            return updated

    def delete_photo(self, photo_id: str) -> Photo | None:
        with self._mutex:
            return self.photos.pop(photo_id, None)
