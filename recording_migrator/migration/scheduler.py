import asyncio
import logging
from typing import Optional

from ..registry.status_store import StatusStore
from .discovery import Discovery
from .downloader import DownloadOrchestrator
from .results import ProcessResult
from .uploader import UploadOrchestrator

logger = logging.getLogger(__name__)


class Scheduler:
    """Drives at most one activity through download and upload per invocation.

    There is no internal lock: callers must not run two invocations at the
    same time.
    """

    def __init__(
        self,
        store: StatusStore,
        discovery: Discovery,
        downloader: DownloadOrchestrator,
        uploader: UploadOrchestrator,
    ) -> None:
        self._store = store
        self._discovery = discovery
        self._downloader = downloader
        self._uploader = uploader

    async def process_next(self) -> ProcessResult:
        activities = await asyncio.to_thread(self._discovery.list_eligible)
        if not activities:
            logger.info("No pending uploads")
            return ProcessResult(remaining=0)

        activity = activities[0]
        logger.info(
            "Processing activity %s (%s), %d eligible",
            activity.id,
            activity.title,
            len(activities),
        )

        download = await self._downloader.download(activity.id)
        upload = await self._uploader.upload(activity.id)
        remaining = await asyncio.to_thread(self._discovery.count_eligible)
        return ProcessResult(
            activity_id=activity.id,
            activity_title=activity.title,
            download=download,
            upload=upload,
            remaining=remaining,
        )

    async def process_activity(self, activity_id: str) -> ProcessResult:
        activity = await asyncio.to_thread(self._store.get_activity, activity_id)

        download = None
        if self._downloader.has_local_files(activity):
            logger.info("Activity %s has local files, skipping download", activity_id)
        else:
            download = await self._downloader.download(activity_id)

        upload = await self._uploader.upload(activity_id)
        return ProcessResult(
            activity_id=activity_id,
            activity_title=activity.title,
            download=download,
            upload=upload,
        )

    async def handle_notification(self, activity_id: str) -> Optional[ProcessResult]:
        """Run the pipeline for a notified activity; log and drop any error."""
        try:
            return await self.process_activity(activity_id)
        except Exception:
            logger.exception(
                "Notification processing failed for activity %s", activity_id
            )
            return None

    async def run_periodically(
        self,
        interval_seconds: float,
        max_runs: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Call ``process_next`` on a fixed cadence, starting immediately.

        Ticks are anchored to the start time, so a slow run does not shift
        later ones; ticks missed while a run was in progress are skipped.
        Returns the number of runs performed.
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        runs = 0
        tick = 0

        while max_runs is None or runs < max_runs:
            if stop_event is not None and stop_event.is_set():
                break

            try:
                await self.process_next()
            except Exception:
                logger.exception("Periodic run failed")
            runs += 1

            if max_runs is not None and runs >= max_runs:
                break

            now = loop.time()
            tick = max(tick + 1, int((now - start) // interval_seconds) + 1)
            delay = start + tick * interval_seconds - now
            if stop_event is None:
                await asyncio.sleep(delay)
            else:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        return runs
