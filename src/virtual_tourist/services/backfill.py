"""Backfill of image bytes for pending photos."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from virtual_tourist.adapters.flickr_client import RemoteAlbumClient
from virtual_tourist.domain.errors import AlbumError, NotFound
from virtual_tourist.domain.models import Photo
from virtual_tourist.services.store import RecordStore

FailureCallback = Callable[[str, int], None]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackfillReport:
    """Outcome of one backfill pass over an album."""

    attempted: int
    filled: int
    failed: int
    discarded: int


@dataclass
class BackfillCoordinator:
    """Fetch and store image bytes for pending photos, one album at a time.

    Every photo is handled independently: a failed download leaves that photo
    pending and is counted, it never cancels the other downloads. A photo
    removed while its download was in flight is counted as discarded.
    """

    client: RemoteAlbumClient
    store: RecordStore
    max_concurrency: int = 6
    on_failures: FailureCallback | None = None

    async def fill(self, photos: Sequence[Photo]) -> BackfillReport:
        """Backfill every pending photo in ``photos``."""
        pending = [photo for photo in photos if photo.is_pending and photo.remote_url]
        if not pending:
            return BackfillReport(attempted=0, filled=0, failed=0, discarded=0)

        semaphore = asyncio.Semaphore(max(1, self.max_concurrency))
        outcomes = await asyncio.gather(
            *(self._fill_one(photo, semaphore) for photo in pending)
        )
        report = BackfillReport(
            attempted=len(pending),
            filled=outcomes.count("filled"),
            failed=outcomes.count("failed"),
            discarded=outcomes.count("discarded"),
        )
        _logger.info(
            "Backfill finished: location=%s filled=%s failed=%s discarded=%s",
            pending[0].location_key,
            report.filled,
            report.failed,
            report.discarded,
        )
        if report.failed and self.on_failures is not None:
            self.on_failures(pending[0].location_key, report.failed)
        return report

    async def _fill_one(self, photo: Photo, semaphore: asyncio.Semaphore) -> str:
        async with semaphore:
            try:
                data = await self.client.fetch_binary(str(photo.remote_url))
            except AlbumError as exc:
                _logger.warning("Photo download failed: id=%s: %s", photo.id, exc)
                return "failed"
        try:
            await self.store.update_photo_data(photo.id, data)
        except NotFound:
            _logger.debug("Photo removed before backfill completed: id=%s", photo.id)
            return "discarded"
        except AlbumError as exc:
            _logger.warning("Failed to store photo data: id=%s: %s", photo.id, exc)
            return "failed"
        return "filled"
