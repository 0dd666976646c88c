from .base import ActivityRegistry, is_eligible
from .json_registry import JsonActivityRegistry
from .models import (
    Activity,
    ActivityKind,
    MigrationRecord,
    UploadStatus,
    VideoRecord,
    WorkGroup,
)
from .status_store import StatusStore

__all__ = [
    "ActivityRegistry",
    "is_eligible",
    "JsonActivityRegistry",
    "Activity",
    "ActivityKind",
    "MigrationRecord",
    "UploadStatus",
    "VideoRecord",
    "WorkGroup",
    "StatusStore",
]
