"""Record store for locations and their cached photos."""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from virtual_tourist.domain.errors import (
    AlbumError,
    HasDependents,
    NotFound,
    PersistenceError,
)
from virtual_tourist.domain.events import ChangeEvent, ChangeKind, RecordKind
from virtual_tourist.domain.models import (
    DEFAULT_KEY_PRECISION,
    Coordinate,
    Location,
    Photo,
    PhotoDescriptor,
    location_key,
    photo_id,
)
from virtual_tourist.services.events import ChangeNotifier

_T = TypeVar("_T")

_logger = logging.getLogger(__name__)


class RecordRepository(Protocol):
    """Persistence interface for locations and photos.

    Implementations are synchronous and must make each call atomic for the
    records it touches. ``insert_photos`` must insert either all rows or none.
    """

    def get_location(self, key: str) -> Location | None:
        """Return a location by key, if present."""

    def insert_location(self, location: Location) -> Location:
        """Persist a new location and return it."""

    def delete_location(self, key: str) -> Location | None:
        """Delete a location and return the removed record, if it existed."""

    def list_locations(self) -> list[Location]:
        """Return all locations."""

    def has_photos(self, location_key: str) -> bool:
        """Return whether any photo references the location."""

    def insert_photos(self, photos: list[Photo]) -> None:
        """Persist a batch of photos."""

    def list_photos(self, location_key: str) -> list[Photo]:
        """Return all photos of a location."""

    def update_photo_data(self, photo_id: str, data: bytes) -> Photo | None:
        """Attach image bytes to a photo and return it, if it exists."""

    def delete_photo(self, photo_id: str) -> Photo | None:
        """Delete a photo and return the removed record, if it existed."""


@dataclass
class RecordStore:
    """Async store that serializes mutations per record and emits changes.

    Mutations of the same location, or of the same photo, are applied one at
    a time; unrelated records proceed in parallel. Change events for a record
    are emitted while its lock is held, so observers see them in apply order.
    """

    repository: RecordRepository
    notifier: ChangeNotifier = field(default_factory=ChangeNotifier)
    key_precision: int = DEFAULT_KEY_PRECISION
    _locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = field(
        default_factory=weakref.WeakValueDictionary, init=False, repr=False
    )

    def key_for(self, coordinate: Coordinate) -> str:
        """Return the identity key the store uses for a coordinate."""
        return location_key(coordinate, self.key_precision)

    async def upsert_location(self, coordinate: Coordinate) -> Location:
        """Return the location at a coordinate, creating it if needed."""
        key = self.key_for(coordinate)
        async with self._locked(f"location:{key}"):
            existing = await self._run(self.repository.get_location, key)
            if existing is not None:
                return existing
            location = Location(
                key=key,
                latitude=round(coordinate.latitude, self.key_precision),
                longitude=round(coordinate.longitude, self.key_precision),
                created_at=datetime.now(tz=UTC),
            )
            created = await self._run(self.repository.insert_location, location)
            _logger.info("Created location: key=%s", key)
            self._emit(ChangeKind.INSERT, RecordKind.LOCATION, created)
            return created

    async def get_location(self, key: str) -> Location | None:
        """Return a location by key, if present."""
        return await self._run(self.repository.get_location, key)

    async def fetch_all_locations(self) -> list[Location]:
        """Return every stored location."""
        return await self._run(self.repository.list_locations)

    async def delete_location(self, key: str) -> Location:
        """Delete a location that no photo references any more."""
        async with self._locked(f"location:{key}"):
            if await self._run(self.repository.get_location, key) is None:
                raise NotFound(f"Location not found: {key}")
            if await self._run(self.repository.has_photos, key):
                raise HasDependents(f"Location still has photos: {key}")
            deleted = await self._run(self.repository.delete_location, key)
            if deleted is None:
                raise NotFound(f"Location not found: {key}")
            _logger.info("Deleted location: key=%s", key)
            self._emit(ChangeKind.DELETE, RecordKind.LOCATION, deleted)
            return deleted

    async def bulk_create_photos(
        self, location_key: str, descriptors: Sequence[PhotoDescriptor]
    ) -> list[Photo]:
        """Create one pending photo per descriptor, all or nothing.

        Descriptors whose photo is already stored for the location are
        skipped, so only photos written by this call are returned or rolled
        back.
        """
        async with self._locked(f"location:{location_key}"):
            if await self._run(self.repository.get_location, location_key) is None:
                raise NotFound(f"Location not found: {location_key}")
            stored = await self._run(self.repository.list_photos, location_key)
            seen = {photo.id for photo in stored}
            created_at = datetime.now(tz=UTC)
            photos: list[Photo] = []
            for descriptor in descriptors:
                new_id = photo_id(location_key, descriptor.external_id)
                if new_id in seen:
                    continue
                seen.add(new_id)
                photos.append(
                    Photo(
                        id=new_id,
                        external_id=descriptor.external_id,
                        location_key=location_key,
                        remote_url=descriptor.remote_url,
                        created_at=created_at,
                    )
                )
            if not photos:
                return []
            try:
                await asyncio.to_thread(self.repository.insert_photos, photos)
            except Exception as exc:
                await self._roll_back(photos)
                raise PersistenceError(
                    f"Failed to persist {len(photos)} photos for {location_key}"
                ) from exc
            _logger.info(
                "Created pending photos: location=%s count=%s",
                location_key,
                len(photos),
            )
            for photo in photos:
                self._emit(ChangeKind.INSERT, RecordKind.PHOTO, photo)
            return photos

    async def fetch_photos(self, location_key: str) -> list[Photo]:
        """Return the photos of a location, newest first."""
        photos = await self._run(self.repository.list_photos, location_key)
        return sorted(photos, key=lambda photo: photo.created_at, reverse=True)

    async def update_photo_data(self, photo_id: str, data: bytes) -> Photo:
        """Attach image bytes to an existing photo."""
        async with self._locked(f"photo:{photo_id}"):
            updated = await self._run(
                self.repository.update_photo_data, photo_id, data
            )
            if updated is None:
                raise NotFound(f"Photo not found: {photo_id}")
            self._emit(ChangeKind.UPDATE, RecordKind.PHOTO, updated)
            return updated

    async def delete_photo(self, photo_id: str) -> Photo:
        """Delete a single photo."""
        async with self._locked(f"photo:{photo_id}"):
            deleted = await self._run(self.repository.delete_photo, photo_id)
            if deleted is None:
                raise NotFound(f"Photo not found: {photo_id}")
            self._emit(ChangeKind.DELETE, RecordKind.PHOTO, deleted)
            return deleted

    async def delete_photos(self, photo_ids: Sequence[str]) -> int:
        """Delete photos best-effort and return how many were removed."""
        unique_ids = list(dict.fromkeys(photo_ids))
        results = await asyncio.gather(
            *(self._delete_photo_quietly(item) for item in unique_ids)
        )
        deleted = sum(results)
        if deleted < len(unique_ids):
            _logger.warning("Deleted %s of %s photos", deleted, len(unique_ids))
        return deleted

    async def _delete_photo_quietly(self, photo_id: str) -> bool:
        try:
            await self.delete_photo(photo_id)
        except NotFound:
            _logger.debug("Photo already gone: id=%s", photo_id)
            return False
        except AlbumError as exc:
            _logger.warning("Failed to delete photo %s: %s", photo_id, exc)
            return False
        return True

    async def _roll_back(self, photos: list[Photo]) -> None:
        """Remove the photos of a failed batch that did get written.

        Every photo in the batch was absent before the insert, and new photos
        are only written under the location lock, so none of these ids can
        belong to a photo stored by someone else.
        """
        for photo in photos:
            try:
                await asyncio.to_thread(self.repository.delete_photo, photo.id)
            except Exception:
                _logger.exception("Rollback failed for photo %s", photo.id)

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        """Run a blocking repository call off the event loop."""
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as exc:
            raise PersistenceError(str(exc)) from exc

    @asynccontextmanager
    async def _locked(self, name: str) -> AsyncIterator[None]:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        async with lock:
            yield

    def _emit(
        self, kind: ChangeKind, record_kind: RecordKind, record: Location | Photo
    ) -> None:
        if isinstance(record, Photo):
            key, owner = record.id, record.location_key
        else:
            key, owner = record.key, record.key
        self.notifier.emit(
            ChangeEvent(
                kind=kind,
                record_kind=record_kind,
                key=key,
                location_key=owner,
                record=record,
            )
        )
