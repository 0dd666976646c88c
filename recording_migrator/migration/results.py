from dataclasses import dataclass, field
from typing import List, Optional

from ..registry.models import UploadStatus, VideoRecord


@dataclass
class DownloadResult:
    activity_id: str
    activity_title: str
    videos: List[VideoRecord] = field(default_factory=list)
    already_downloaded: bool = False
    total_size_mb: float = 0.0
    duration_seconds: float = 0.0

    @property
    def video_count(self) -> int:
        return len(self.videos)


@dataclass
class VideoOutcome:
    """Result of one video's upload attempt within a pass."""

    index: int
    video: VideoRecord
    succeeded: bool
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class UploadResult:
    activity_id: str
    activity_title: str
    status: UploadStatus
    outcomes: List[VideoOutcome] = field(default_factory=list)
    already_uploaded: bool = False
    duration_seconds: float = 0.0

    @property
    def uploaded(self) -> List[VideoOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[VideoOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def is_partial(self) -> bool:
        return self.status == UploadStatus.PARTIAL


@dataclass
class ProcessResult:
    activity_id: Optional[str] = None
    activity_title: Optional[str] = None
    download: Optional[DownloadResult] = None
    upload: Optional[UploadResult] = None
    remaining: int = 0

    @property
    def processed(self) -> bool:
        return self.activity_id is not None
