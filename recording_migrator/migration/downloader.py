import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..registry.models import Activity, VideoRecord
from ..registry.status_store import StatusStore
from ..sources.recordings import RecordingsClient, SourceVideo
from ..storage.local_cache import LocalFileCache
from ..transfer.client import TransferClient
from ..utils.exceptions import DownloadError, ValidationError
from .checks import check_migratable
from .naming import FilenameBuilder
from .results import DownloadResult

logger = logging.getLogger(__name__)

TransferProgress = Callable[[str, int, Optional[int]], None]


class DownloadOrchestrator:
    """Fetches every recording of one activity into the staging directory.

    The ``videos`` list is written to the store once, after every download
    in the pass has succeeded; a failure anywhere leaves the store at
    ``downloading`` with the previous list untouched.
    """

    def __init__(
        self,
        store: StatusStore,
        recordings: RecordingsClient,
        transfer: TransferClient,
        cache: LocalFileCache,
        names: Optional[FilenameBuilder] = None,
    ) -> None:
        self._store = store
        self._recordings = recordings
        self._transfer = transfer
        self._cache = cache
        self._names = names or FilenameBuilder()
        self._on_progress: Optional[TransferProgress] = None

    def set_progress_callback(self, callback: TransferProgress) -> None:
        self._on_progress = callback

    def has_local_files(self, activity: Activity) -> bool:
        """True when every video still to be uploaded has its file on disk."""
        videos = activity.migration.videos
        if not videos:
            return False
        # uploaded videos have had their local copy removed on purpose
        return all(
            self._cache.exists(v.local_path) for v in videos if not v.is_uploaded
        )

    async def download(self, activity_id: str) -> DownloadResult:
        started = time.monotonic()
        activity = await asyncio.to_thread(self._store.get_activity, activity_id)
        check_migratable(activity, self._store.now())

        if self.has_local_files(activity):
            videos = activity.migration.videos
            logger.info(
                "All %d video file(s) for activity %s exist on disk",
                len(videos),
                activity_id,
            )
            return DownloadResult(
                activity_id=activity_id,
                activity_title=activity.title,
                videos=list(videos),
                already_downloaded=True,
                total_size_mb=sum(v.size_bytes for v in videos) / (1024 * 1024),
            )
        if activity.migration.videos:
            logger.warning(
                "Some video files for activity %s are missing from disk, "
                "re-downloading",
                activity_id,
            )

        logger.info(
            "Downloading videos for activity %s (%s)", activity_id, activity.title
        )
        await asyncio.to_thread(self._store.mark_downloading, activity_id)

        source_videos = await asyncio.to_thread(
            self._recordings.get_recording_videos, activity_id
        )
        if not source_videos:
            raise ValidationError(
                "No video recordings found for this activity", activity_id=activity_id
            )

        uploaded: Dict[Tuple[str, str], VideoRecord] = {
            (v.source_session_id, v.source_asset_id): v
            for v in activity.migration.videos
            if v.is_uploaded
        }

        records: List[VideoRecord] = []
        fetched: List[Path] = []
        try:
            for index, source in enumerate(source_videos, start=1):
                logger.info(
                    "Video %d/%d: session=%s asset=%s",
                    index,
                    len(source_videos),
                    source.session_id,
                    source.asset_id,
                )
                existing = uploaded.get((source.session_id, source.asset_id))
                if existing is not None:
                    logger.info(
                        "Already uploaded as %s - skipping",
                        existing.destination_asset_id,
                    )
                    records.append(existing)
                    continue

                path = await self._fetch(activity_id, source)
                fetched.append(path)
                records.append(
                    VideoRecord(
                        source_session_id=source.session_id,
                        source_asset_id=source.asset_id,
                        local_path=str(path),
                        duration_seconds=source.duration,
                        size_bytes=source.size or self._cache.size(path),
                        downloaded_at=self._store.now(),
                    )
                )
        except Exception:
            for path in fetched:
                self._cache.delete(path)
            raise

        await asyncio.to_thread(self._store.record_downloaded, activity_id, records)

        total_size_mb = sum(self._cache.size_mb(p) for p in fetched)
        duration = time.monotonic() - started
        logger.info(
            "Download completed for %s: %d video(s), %.2f MB in %.2fs",
            activity_id,
            len(records),
            total_size_mb,
            duration,
        )
        return DownloadResult(
            activity_id=activity_id,
            activity_title=activity.title,
            videos=records,
            total_size_mb=total_size_mb,
            duration_seconds=duration,
        )

    async def _fetch(self, activity_id: str, source: SourceVideo) -> Path:
        filename = self._names.local_filename(
            activity_id, source.session_id, source.asset_id
        )
        path = self._cache.path_for(filename)

        def progress(done: int, total: Optional[int]) -> None:
            if self._on_progress:
                self._on_progress(filename, done, total)

        written = await asyncio.to_thread(
            self._transfer.download, source.download_url, path, progress
        )

        on_disk = self._cache.size(path)
        if written <= 0 or on_disk != written:
            self._cache.delete(path)
            raise DownloadError(
                f"Downloaded file failed size verification "
                f"({on_disk} bytes on disk, {written} bytes received)",
                path=str(path),
            )
        if source.size and source.size != on_disk:
            logger.warning(
                "Size of %s (%d bytes) differs from provider-reported %d bytes",
                path,
                on_disk,
                source.size,
            )
        return path
