import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..utils.exceptions import ActivityNotFoundError
from .base import ActivityRegistry
from .models import Activity, UploadStatus, VideoRecord, utcnow

logger = logging.getLogger(__name__)


class StatusStore:
    """Pipeline-facing view of the work registry.

    Every status change stamps ``last_attempt_at`` and increments
    ``attempt_count`` in the same registry write. ``uploaded`` is derived
    from the status on every write: it is true only for ``completed``.
    """

    def __init__(
        self,
        registry: ActivityRegistry,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def get_activity(self, activity_id: str) -> Activity:
        activity = self._registry.get(activity_id)
        if activity is None:
            raise ActivityNotFoundError(
                f"Activity {activity_id} not found", activity_id=activity_id
            )
        return activity

    def list_eligible(self) -> List[Activity]:
        return self._registry.find_eligible(self.now())

    def count_eligible(self) -> int:
        return self._registry.count_eligible(self.now())

    def set_status(
        self,
        activity_id: str,
        status: UploadStatus,
        videos: Optional[List[VideoRecord]] = None,
        error: Optional[str] = None,
    ) -> Activity:
        if not isinstance(status, UploadStatus):
            raise ValueError(f"Unknown upload status: {status!r}")
        if status == UploadStatus.COMPLETED and (
            videos is None or not all(v.is_uploaded for v in videos)
        ):
            raise ValueError(
                "completed requires every video to carry a destination asset id"
            )

        fields: Dict[str, Any] = {
            "upload_status": status,
            "uploaded": status == UploadStatus.COMPLETED,
            "last_attempt_at": self.now(),
        }
        if videos is not None:
            fields["videos"] = list(videos)
        if error is not None:
            fields["last_error"] = error
        elif status == UploadStatus.COMPLETED:
            fields["last_error"] = None

        activity = self._registry.update_migration(
            activity_id, fields, increment_attempts=True
        )
        logger.info("Updated activity %s status: %s", activity_id, status.value)
        return activity

    def mark_downloading(self, activity_id: str) -> Activity:
        return self.set_status(activity_id, UploadStatus.DOWNLOADING)

    def record_downloaded(
        self, activity_id: str, videos: List[VideoRecord]
    ) -> Activity:
        return self.set_status(activity_id, UploadStatus.DOWNLOADED, videos=videos)

    def mark_uploading(self, activity_id: str) -> Activity:
        return self.set_status(activity_id, UploadStatus.UPLOADING)

    def record_upload_pass(
        self,
        activity_id: str,
        videos: List[VideoRecord],
        failed_count: int,
    ) -> Activity:
        if failed_count:
            return self.set_status(
                activity_id,
                UploadStatus.PARTIAL,
                videos=videos,
                error=f"Failed to upload {failed_count} video(s)",
            )
        return self.set_status(activity_id, UploadStatus.COMPLETED, videos=videos)

    def mark_failed(
        self,
        activity_id: str,
        error: str,
        videos: Optional[List[VideoRecord]] = None,
    ) -> Activity:
        return self.set_status(
            activity_id, UploadStatus.FAILED, videos=videos, error=error
        )
