from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ActivityKind(Enum):
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    VIDEO = "video"
    MATERIAL = "material"
    TIME_BOUND_QUIZ = "time_bound_quiz"
    LIVE_SESSION = "live_session"


class UploadStatus(Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {UploadStatus.COMPLETED, UploadStatus.PARTIAL, UploadStatus.FAILED}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class VideoRecord:
    source_session_id: str
    source_asset_id: str
    local_path: Optional[str] = None
    destination_asset_id: Optional[str] = None
    duration_seconds: float = 0
    size_bytes: int = 0
    downloaded_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_uploaded(self) -> bool:
        return bool(self.destination_asset_id)


@dataclass
class MigrationRecord:
    recording_available: bool = False
    videos: List[VideoRecord] = field(default_factory=list)
    upload_status: UploadStatus = UploadStatus.PENDING
    uploaded: bool = False
    last_attempt_at: Optional[datetime] = None
    attempt_count: int = 0
    last_error: Optional[str] = None


@dataclass
class WorkGroup:
    id: str
    title: str = ""
    collection_ref: Optional[str] = None


@dataclass
class Activity:
    id: str
    kind: ActivityKind
    title: str = ""
    work_group_id: Optional[str] = None
    room_session_ref: Optional[str] = None
    window_end: Optional[datetime] = None
    deleted: bool = False
    created_at: Optional[datetime] = None
    collection_ref: Optional[str] = None
    migration: MigrationRecord = field(default_factory=MigrationRecord)

    def with_collection(self, collection_ref: Optional[str]) -> "Activity":
        return replace(self, collection_ref=collection_ref)


def video_to_dict(video: VideoRecord) -> Dict[str, Any]:
    return {
        "source_session_id": video.source_session_id,
        "source_asset_id": video.source_asset_id,
        "local_path": video.local_path,
        "destination_asset_id": video.destination_asset_id,
        "duration_seconds": video.duration_seconds,
        "size_bytes": video.size_bytes,
        "downloaded_at": _format_datetime(video.downloaded_at),
        "uploaded_at": _format_datetime(video.uploaded_at),
        "error": video.error,
    }


def video_from_dict(data: Dict[str, Any]) -> VideoRecord:
    return VideoRecord(
        source_session_id=data["source_session_id"],
        source_asset_id=data["source_asset_id"],
        local_path=data.get("local_path"),
        destination_asset_id=data.get("destination_asset_id"),
        duration_seconds=data.get("duration_seconds", 0),
        size_bytes=data.get("size_bytes", 0),
        downloaded_at=_parse_datetime(data.get("downloaded_at")),
        uploaded_at=_parse_datetime(data.get("uploaded_at")),
        error=data.get("error"),
    )


def migration_to_dict(record: MigrationRecord) -> Dict[str, Any]:
    return {
        "recording_available": record.recording_available,
        "videos": [video_to_dict(v) for v in record.videos],
        "upload_status": record.upload_status.value,
        "uploaded": record.uploaded,
        "last_attempt_at": _format_datetime(record.last_attempt_at),
        "attempt_count": record.attempt_count,
        "last_error": record.last_error,
    }


def migration_from_dict(data: Dict[str, Any]) -> MigrationRecord:
    return MigrationRecord(
        recording_available=data.get("recording_available", False),
        videos=[video_from_dict(v) for v in data.get("videos", [])],
        upload_status=UploadStatus(data.get("upload_status", "pending")),
        uploaded=data.get("uploaded", False),
        last_attempt_at=_parse_datetime(data.get("last_attempt_at")),
        attempt_count=data.get("attempt_count", 0),
        last_error=data.get("last_error"),
    )


def activity_to_dict(activity: Activity) -> Dict[str, Any]:
    return {
        "id": activity.id,
        "kind": activity.kind.value,
        "title": activity.title,
        "work_group_id": activity.work_group_id,
        "room_session_ref": activity.room_session_ref,
        "window_end": _format_datetime(activity.window_end),
        "deleted": activity.deleted,
        "created_at": _format_datetime(activity.created_at),
        "migration": migration_to_dict(activity.migration),
    }


def activity_from_dict(data: Dict[str, Any]) -> Activity:
    return Activity(
        id=data["id"],
        kind=ActivityKind(data["kind"]),
        title=data.get("title", ""),
        work_group_id=data.get("work_group_id"),
        room_session_ref=data.get("room_session_ref"),
        window_end=_parse_datetime(data.get("window_end")),
        deleted=data.get("deleted", False),
        created_at=_parse_datetime(data.get("created_at")),
        migration=migration_from_dict(data.get("migration", {})),
    )


def work_group_to_dict(group: WorkGroup) -> Dict[str, Any]:
    return {
        "id": group.id,
        "title": group.title,
        "collection_ref": group.collection_ref,
    }


def work_group_from_dict(data: Dict[str, Any]) -> WorkGroup:
    return WorkGroup(
        id=data["id"],
        title=data.get("title", ""),
        collection_ref=data.get("collection_ref"),
    )
