import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

from ..registry.models import Activity, UploadStatus, VideoRecord
from ..registry.status_store import StatusStore
from ..storage.local_cache import LocalFileCache
from ..targets.stream import StreamClient
from ..transfer.client import TransferClient
from ..utils.exceptions import (
    ActivityNotFoundError,
    AuthenticationError,
    MigratorError,
    ValidationError,
)
from .checks import check_migratable
from .naming import FilenameBuilder
from .results import UploadResult, VideoOutcome

logger = logging.getLogger(__name__)

TransferProgress = Callable[[str, int, Optional[int]], None]


class UploadOrchestrator:
    """Uploads the downloaded recordings of one activity to the destination.

    Each video is attempted independently; a failing video is recorded and
    the pass moves on. The store is written once at the end of the pass
    with ``completed`` or ``partial``. Anything escaping the per-video
    boundary marks the activity ``failed`` and is re-raised.
    """

    def __init__(
        self,
        store: StatusStore,
        stream: StreamClient,
        transfer: TransferClient,
        cache: LocalFileCache,
    ) -> None:
        self._store = store
        self._stream = stream
        self._transfer = transfer
        self._cache = cache
        self._on_progress: Optional[TransferProgress] = None

    def set_progress_callback(self, callback: TransferProgress) -> None:
        self._on_progress = callback

    @staticmethod
    def _check_uploadable(activity: Activity, now: datetime) -> None:
        check_migratable(activity, now)
        if not activity.migration.videos:
            raise ValidationError(
                "No videos downloaded yet. Please download videos first.",
                activity_id=activity.id,
            )
        if not activity.collection_ref:
            raise ValidationError(
                "Work group has no destination collection reference",
                activity_id=activity.id,
            )

    async def upload(self, activity_id: str) -> UploadResult:
        started = time.monotonic()
        activity = await asyncio.to_thread(self._store.get_activity, activity_id)
        videos = activity.migration.videos
        outcomes: List[VideoOutcome] = []

        try:
            self._check_uploadable(activity, self._store.now())

            if all(v.is_uploaded for v in videos) and activity.migration.uploaded:
                logger.info("All videos of %s already uploaded", activity_id)
                return UploadResult(
                    activity_id=activity_id,
                    activity_title=activity.title,
                    status=UploadStatus.COMPLETED,
                    outcomes=[
                        VideoOutcome(index=i, video=v, succeeded=True, skipped=True)
                        for i, v in enumerate(videos, start=1)
                    ],
                    already_uploaded=True,
                )

            await asyncio.to_thread(self._store.mark_uploading, activity_id)

            for index, video in enumerate(videos, start=1):
                logger.info("Video %d/%d of %s", index, len(videos), activity_id)
                outcomes.append(await self._upload_one(activity, index, video))

            failed = [o for o in outcomes if not o.succeeded]
            await asyncio.to_thread(
                self._store.record_upload_pass,
                activity_id,
                [o.video for o in outcomes],
                len(failed),
            )

        except ActivityNotFoundError:
            raise
        except Exception as e:
            logger.error("Upload failed for activity %s: %s", activity_id, e)
            # keep the destination ids of videos uploaded before the abort
            settled = (
                [o.video for o in outcomes] + videos[len(outcomes) :]
                if outcomes
                else None
            )
            try:
                await asyncio.to_thread(
                    self._store.mark_failed, activity_id, str(e), settled
                )
            except MigratorError as update_error:
                logger.error(
                    "Failed to record failed status for %s: %s",
                    activity_id,
                    update_error,
                )
            raise

        status = UploadStatus.PARTIAL if failed else UploadStatus.COMPLETED
        duration = time.monotonic() - started
        if failed:
            logger.warning(
                "Upload partially completed for %s: %d uploaded, %d failed",
                activity_id,
                len(outcomes) - len(failed),
                len(failed),
            )
        else:
            logger.info("All uploads completed for %s in %.2fs", activity_id, duration)

        return UploadResult(
            activity_id=activity_id,
            activity_title=activity.title,
            status=status,
            outcomes=outcomes,
            duration_seconds=duration,
        )

    async def _upload_one(
        self, activity: Activity, index: int, video: VideoRecord
    ) -> VideoOutcome:
        if video.is_uploaded:
            logger.info("Already uploaded as %s - skipping", video.destination_asset_id)
            return VideoOutcome(index=index, video=video, succeeded=True, skipped=True)

        try:
            if not self._cache.exists(video.local_path):
                raise ValidationError(
                    f"Video file not found: {video.local_path}",
                    activity_id=activity.id,
                )
            path = self._cache.resolve(video.local_path)  # type: ignore[arg-type]
            logger.info("Uploading %s (%.2f MB)", path, self._cache.size_mb(path))

            title = FilenameBuilder.part_title(activity.title, index)
            asset_id = await asyncio.to_thread(
                self._stream.create_video, title, activity.collection_ref
            )
            session = self._stream.build_upload_session(
                asset_id, title, activity.collection_ref, self._transfer.chunk_size
            )

            def progress(done: int, total: Optional[int]) -> None:
                if self._on_progress:
                    self._on_progress(path.name, done, total)

            asset_id = await asyncio.to_thread(
                self._transfer.upload, path, session, progress
            )
        except AuthenticationError:
            raise
        except MigratorError as e:
            logger.warning("Video %d of %s failed: %s", index, activity.id, e)
            return VideoOutcome(
                index=index,
                video=replace(video, error=str(e)),
                succeeded=False,
                error=str(e),
            )

        uploaded = replace(
            video,
            destination_asset_id=asset_id,
            uploaded_at=self._store.now(),
            error=None,
        )
        self._cache.delete(path)
        logger.info("Video %d of %s uploaded as %s", index, activity.id, asset_id)
        return VideoOutcome(index=index, video=uploaded, succeeded=True)
