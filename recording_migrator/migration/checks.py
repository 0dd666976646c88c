from datetime import datetime

from ..registry.base import MIGRATABLE_KIND
from ..registry.models import Activity
from ..utils.exceptions import ValidationError


def check_migratable(activity: Activity, now: datetime) -> None:
    """Raise ValidationError for the first precondition the activity fails."""

    def fail(message: str) -> None:
        raise ValidationError(message, activity_id=activity.id)

    if activity.deleted:
        fail("Activity is deleted")
    if activity.kind != MIGRATABLE_KIND:
        fail("Activity is not a live session")
    if not activity.room_session_ref:
        fail("Activity has no recording room reference")
    if activity.window_end is None or activity.window_end > now:
        fail("Live session has not ended yet")
    if not activity.migration.recording_available:
        fail("No recording available for this activity")
