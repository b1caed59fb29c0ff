"""Album acquisition state machine for locations."""

import asyncio
import itertools
import logging
import random
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum

from virtual_tourist.adapters.flickr_client import RemoteAlbumClient
from virtual_tourist.domain.errors import AlbumError
from virtual_tourist.domain.models import AlbumPage, Coordinate, Location, Photo
from virtual_tourist.services.backfill import BackfillCoordinator, BackfillReport
from virtual_tourist.services.store import RecordStore

_logger = logging.getLogger(__name__)


class AcquisitionState(StrEnum):
    """Lifecycle of an album acquisition for one location."""

    IDLE = "idle"
    SEARCHING = "searching"
    POPULATING = "populating"
    BACKFILLING_PARTIAL = "backfilling_partial"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class AcquisitionStatus:
    """Current state of a location, with the failure reason when failed."""

    state: AcquisitionState
    reason: AlbumError | None = None


@dataclass(frozen=True)
class AcquisitionResult:
    """Outcome of a completed acquire or refresh request."""

    location_key: str
    photos: list[Photo]
    page: AlbumPage | None = None
    backfill: BackfillReport | None = None


def pick_refresh_page(
    previous: AlbumPage | None, result_cap: int, rng: random.Random
) -> int:
    """Pick a random page whose results stay within the service result cap."""
    if previous is None or previous.per_page < 1:
        return 1
    reachable = min(previous.pages, result_cap // previous.per_page)
    return rng.randint(1, max(1, reachable))


@dataclass
class AlbumAcquisitionEngine:
    """Acquire, refresh and remove photo albums for locations.

    Search and population for a location are serialized; backfill runs
    outside that critical section, so a refresh or removal can proceed while
    the previous album is still downloading.
    """

    client: RemoteAlbumClient
    store: RecordStore
    backfill: BackfillCoordinator
    result_cap: int = 4000
    rng: random.Random = field(default_factory=random.Random)
    _statuses: dict[str, AcquisitionStatus] = field(default_factory=dict, init=False)
    _pages: dict[str, AlbumPage] = field(default_factory=dict, init=False)
    _generations: dict[str, int] = field(default_factory=dict, init=False)
    _sequence: "itertools.count[int]" = field(
        default_factory=lambda: itertools.count(1), init=False, repr=False
    )
    _locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = field(
        default_factory=weakref.WeakValueDictionary, init=False, repr=False
    )

    def status(self, location_key: str) -> AcquisitionStatus:
        """Return the acquisition status of a location."""
        return self._statuses.get(
            location_key, AcquisitionStatus(AcquisitionState.IDLE)
        )

    async def place_location(self, coordinate: Coordinate) -> AcquisitionResult:
        """Store a location for a dropped pin and acquire its first album page."""
        location = await self.store.upsert_location(coordinate)
        return await self.acquire(location)

    async def acquire(self, location: Location, page: int = 1) -> AcquisitionResult:
        """Fetch and cache an album for a location that has no photos yet.

        When the location already has an album, photos still waiting for their
        image data are downloaded again instead of searching.
        """
        key = location.key
        async with self._locked(key):
            existing = await self.store.fetch_photos(key)
            if existing:
                pending = self._claim_pending(key, existing)
                if not pending:
                    return AcquisitionResult(location_key=key, photos=existing)
                generation = self._generations[key]
            else:
                photos, album, generation = await self._search_and_populate(
                    location, page
                )
        if existing:
            report = await self.backfill.fill(pending)
            self._settle(key, generation)
            return AcquisitionResult(
                location_key=key,
                photos=await self.store.fetch_photos(key),
                backfill=report,
            )
        return await self._finish(key, photos, album, generation)

    async def refresh(self, location: Location) -> AcquisitionResult:
        """Replace the album of a location with a random page of results."""
        async with self._locked(location.key):
            current = await self.store.fetch_photos(location.key)
            if current:
                deleted = await self.store.delete_photos(
                    [photo.id for photo in current]
                )
                if deleted < len(current):
                    _logger.warning(
                        "Refresh continuing with stale photos: location=%s left=%s",
                        location.key,
                        len(current) - deleted,
                    )
            page = pick_refresh_page(
                self._pages.get(location.key), self.result_cap, self.rng
            )
            photos, album, generation = await self._search_and_populate(
                location, page
            )
        return await self._finish(location.key, photos, album, generation)

    async def remove_location(self, location_key: str) -> Location:
        """Delete a location together with all of its photos."""
        async with self._locked(location_key):
            photos = await self.store.fetch_photos(location_key)
            if photos:
                await self.store.delete_photos([photo.id for photo in photos])
            removed = await self.store.delete_location(location_key)
            self._statuses.pop(location_key, None)
            self._pages.pop(location_key, None)
            self._generations.pop(location_key, None)
        return removed

    async def _search_and_populate(
        self, location: Location, page: int
    ) -> tuple[list[Photo], AlbumPage, int]:
        key = location.key
        generation = self._next_generation(key)

        self._set(key, AcquisitionState.SEARCHING)
        try:
            album = await self.client.search(location.coordinate, page)
        except AlbumError as exc:
            self._fail(key, exc)
            raise
        self._pages[key] = album

        self._set(key, AcquisitionState.POPULATING)
        try:
            photos = await self.store.bulk_create_photos(key, album.photos)
        except AlbumError as exc:
            self._fail(key, exc)
            raise

        self._set(key, AcquisitionState.BACKFILLING_PARTIAL)
        return photos, album, generation

    async def _finish(
        self, key: str, photos: list[Photo], album: AlbumPage, generation: int
    ) -> AcquisitionResult:
        report = await self.backfill.fill(photos)
        self._settle(key, generation)
        return AcquisitionResult(
            location_key=key, photos=photos, page=album, backfill=report
        )

    def _claim_pending(self, key: str, existing: list[Photo]) -> list[Photo]:
        """Return the photos this call should retry, marking the location."""
        pending = [photo for photo in existing if photo.is_pending]
        if not pending:
            self._set(key, AcquisitionState.SETTLED)
            return []
        if self.status(key).state == AcquisitionState.BACKFILLING_PARTIAL:
            return []
        self._next_generation(key)
        self._set(key, AcquisitionState.BACKFILLING_PARTIAL)
        _logger.info(
            "Retrying pending photos: location=%s count=%s", key, len(pending)
        )
        return pending

    def _next_generation(self, key: str) -> int:
        generation = next(self._sequence)
        self._generations[key] = generation
        return generation

    def _settle(self, key: str, generation: int) -> None:
        if self._generations.get(key) == generation:
            self._set(key, AcquisitionState.SETTLED)

    
    async def _locked(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            yield

    def _set(self, key: str, state: AcquisitionState) -> None:
        _logger.debug("Acquisition state: location=%s state=%s", key, state)
        self._statuses[key] = AcquisitionStatus(state)

    def _fail(self, key: str, reason: AlbumError) -> None:
        _logger.warning(
            "Acquisition failed: location=%s reason=%s: %s",
            key,
            type(reason).__name__,
            reason,
        )
        self._statuses[key] = AcquisitionStatus(AcquisitionState.FAILED, reason)
