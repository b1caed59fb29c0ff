"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field

import pytest

from virtual_tourist.adapters.flickr_client import RemoteAlbumClient
from virtual_tourist.adapters.memory_record_repository import InMemoryRecordRepository
from virtual_tourist.config import Settings
from virtual_tourist.domain.errors import EmptyResult, NetworkError
from virtual_tourist.domain.events import ChangeEvent
from virtual_tourist.domain.models import AlbumPage, Coordinate, Photo, PhotoDescriptor
from virtual_tourist.services.acquisition import AlbumAcquisitionEngine
from virtual_tourist.services.backfill import BackfillCoordinator
from virtual_tourist.services.events import ChangeNotifier
from virtual_tourist.services.store import RecordStore


def make_album(
    count: int, page: int = 1, pages: int = 10, per_page: int = 21, prefix: str = "p"
) -> AlbumPage:
    """Build an album page with ``count`` descriptors."""
    return AlbumPage(
        page=page,
        pages=pages,
        per_page=per_page,
        photos=[
            PhotoDescriptor(
                external_id=f"{prefix}{page}-{index}",
                remote_url=f"https://img.test/{prefix}{page}-{index}.jpg",
            )
            for index in range(1, count + 1)
        ],
    )


@dataclass
class FakeAlbumClient(RemoteAlbumClient):
    """Fake remote service with scripted search pages and downloads."""

    albums: dict[int, AlbumPage] = field(default_factory=dict)
    search_error: Exception | None = None
    failing_urls: set[str] = field(default_factory=set)
    searches: list[tuple[Coordinate, int]] = field(default_factory=list)
    downloads: list[str] = field(default_factory=list)
    download_gate: asyncio.Event | None = None
    in_flight: int = 0
    max_in_flight: int = 0

    async def search(self, coordinate: Coordinate, page: int = 1) -> AlbumPage:
        self.searches.append((coordinate, page))
        if self.search_error is not None:
            raise self.search_error
        album = self.albums.get(page)
        if album is None:
            raise EmptyResult(f"no page {page}")
        return album

    async def fetch_binary(self, url: str) -> bytes:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.download_gate is not None:
                await self.download_gate.wait()
            else:
                await asyncio.sleep(0)
            self.downloads.append(url)
            if url in self.failing_urls:
                raise NetworkError(f"download failed: {url}")
            return f"bytes:{url}".encode()
        finally:
            self.in_flight -= 1


@dataclass
class FlakyRecordRepository(InMemoryRecordRepository):
    """Repository whose photo batch insert dies after writing some rows."""

    fail_after: int = 0

    def insert_photos(self, photos: list[Photo]) -> None:
        with self._mutex:
            for index, photo in enumerate(photos):
                if index == self.fail_after:
                    raise OSError("disk full")
                self.photos[photo.id] = photo


@dataclass
class EventRecorder:
    """Collects change events emitted by a notifier."""

    events: list[ChangeEvent] = field(default_factory=list)

    def __call__(self, event: ChangeEvent) -> None:
        self.events.append(event)


@pytest.fixture
def settings() -> Settings:
    return Settings(flickr_api_key="flickr-key")


@pytest.fixture
def repository() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def store(
    repository: InMemoryRecordRepository, recorder: EventRecorder
) -> RecordStore:
    notifier = ChangeNotifier()
    notifier.subscribe(recorder)
    return RecordStore(repository=repository, notifier=notifier)


@pytest.fixture
def album_client() -> FakeAlbumClient:
    return FakeAlbumClient(albums={1: make_album(3)})


@pytest.fixture
def backfill(album_client: FakeAlbumClient, store: RecordStore) -> BackfillCoordinator:
    return BackfillCoordinator(client=album_client, store=store, max_concurrency=2)


@pytest.fixture
def engine(
    album_client: FakeAlbumClient,
    store: RecordStore,
    backfill: BackfillCoordinator,
) -> AlbumAcquisitionEngine:
    return AlbumAcquisitionEngine(
        client=album_client, store=store, backfill=backfill, result_cap=4000
    )
