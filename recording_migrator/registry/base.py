from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import Activity, ActivityKind

MIGRATABLE_KIND = ActivityKind.LIVE_SESSION


def is_eligible(activity: Activity, now: datetime) -> bool:
    """Return True when the activity should be picked up by discovery."""
    return (
        activity.kind == MIGRATABLE_KIND
        and activity.migration.recording_available
        and activity.migration.uploaded is not True
        and bool(activity.room_session_ref)
        and not activity.deleted
        and activity.window_end is not None
        and activity.window_end < now
    )


class ActivityRegistry(ABC):
    """Persistent store of activity records and their owning work groups.

    Activities returned by the registry carry the owning work group's
    ``collection_ref``.
    """

    @abstractmethod
    def get(self, activity_id: str) -> Optional[Activity]: ...

    @abstractmethod
    def find_eligible(self, now: datetime) -> List[Activity]:
        """Eligible activities, oldest ``created_at`` first."""

    @abstractmethod
    def update_migration(
        self,
        activity_id: str,
        fields: Dict[str, Any],
        increment_attempts: bool = False,
    ) -> Activity:
        """Set ``migration`` fields and maybe bump ``attempt_count`` in one write."""

    def count_eligible(self, now: datetime) -> int:
        return len(self.find_eligible(now))
