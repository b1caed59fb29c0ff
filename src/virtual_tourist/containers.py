"""Dependency container wiring for the album engine."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from virtual_tourist.adapters.flickr_client import HttpxFlickrClient, RemoteAlbumClient
from virtual_tourist.adapters.memory_record_repository import InMemoryRecordRepository
from virtual_tourist.adapters.supabase_record_repository import (
    SupabaseRecordRepository,
)
from virtual_tourist.config import Settings
from virtual_tourist.services.acquisition import AlbumAcquisitionEngine
from virtual_tourist.services.backfill import BackfillCoordinator, FailureCallback
from virtual_tourist.services.events import ChangeNotifier
from virtual_tourist.services.store import RecordRepository, RecordStore

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    album_client: RemoteAlbumClient
    notifier: ChangeNotifier
    record_store: RecordStore
    backfill: BackfillCoordinator
    engine: AlbumAcquisitionEngine
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    on_backfill_failures: FailureCallback | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    repository: RecordRepository
    if resolved_settings.uses_supabase:
        supabase_client = create_client(
            str(resolved_settings.supabase_url),
            str(resolved_settings.supabase_service_key),
        )
        repository = SupabaseRecordRepository(supabase_client)
    else:
        _logger.info("No Supabase configured, using in-memory record repository")
        repository = InMemoryRecordRepository()

    album_client = HttpxFlickrClient.create(
        api_key=resolved_settings.flickr_api_key,
        base_url=resolved_settings.flickr_base_url,
        radius_km=resolved_settings.flickr_search_radius_km,
        per_page=resolved_settings.flickr_per_page,
        timeout=resolved_settings.http_timeout_seconds,
    )
    notifier = ChangeNotifier()
    record_store = RecordStore(
        repository=repository,
        notifier=notifier,
        key_precision=resolved_settings.coordinate_precision,
    )
    backfill = BackfillCoordinator(
        client=album_client,
        store=record_store,
        max_concurrency=resolved_settings.backfill_concurrency,
        on_failures=on_backfill_failures,
    )
    engine = AlbumAcquisitionEngine(
        client=album_client,
        store=record_store,
        backfill=backfill,
        result_cap=resolved_settings.flickr_result_cap,
    )

    async def close_resources() -> None:
        await album_client.close()

    return AppContainer(
        settings=resolved_settings,
        album_client=album_client,
        notifier=notifier,
        record_store=record_store,
        backfill=backfill,
        engine=engine,
        close_resources=close_resources,
    )
