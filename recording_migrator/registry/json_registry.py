import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..utils.exceptions import ActivityNotFoundError, RegistryError
from .base import ActivityRegistry, is_eligible
from .models import (
    Activity,
    WorkGroup,
    activity_from_dict,
    activity_to_dict,
    migration_from_dict,
    migration_to_dict,
    work_group_from_dict,
    work_group_to_dict,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class JsonActivityRegistry(ActivityRegistry):
    """Activity registry persisted as a single JSON document.

    Every call re-reads the file so that records written by the recording
    system are picked up without a restart. Writes go through a temp file
    and ``os.replace`` so readers never observe a half-written document.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self._path.exists():
            return {"activities": {}, "work_groups": {}}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Failed to read registry {self._path}: {e}") from e
        data.setdefault("activities", {})
        data.setdefault("work_groups", {})
        return data

    def _write(self, data: Dict[str, Dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self._path.parent), prefix=".registry-", suffix=".tmp"
            )
        except OSError as e:
            raise RegistryError(f"Failed to write registry {self._path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(data, indent=2) + "\n")
            os.replace(tmp_name, self._path)
        except OSError as e:
            raise RegistryError(f"Failed to write registry {self._path}: {e}") from e
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)

    def _join(self, data: Dict[str, Dict[str, Any]], raw: Dict[str, Any]) -> Activity:
        activity = activity_from_dict(raw)
        group_data = data["work_groups"].get(activity.work_group_id or "")
        if group_data is None:
            return activity
        return activity.with_collection(work_group_from_dict(group_data).collection_ref)

    def get(self, activity_id: str) -> Optional[Activity]:
        data = self._read()
        raw = data["activities"].get(activity_id)
        if raw is None:
            return None
        return self._join(data, raw)

    def find_eligible(self, now: datetime) -> List[Activity]:
        data = self._read()
        activities = [self._join(data, raw) for raw in data["activities"].values()]
        eligible = [a for a in activities if is_eligible(a, now)]
        eligible.sort(key=lambda a: a.created_at or _EPOCH)
        logger.info("Found %d pending upload activities", len(eligible))
        return eligible

    def update_migration(
        self,
        activity_id: str,
        fields: Dict[str, Any],
        increment_attempts: bool = False,
    ) -> Activity:
        with self._lock:
            data = self._read()
            raw = data["activities"].get(activity_id)
            if raw is None:
                raise ActivityNotFoundError(
                    f"Activity {activity_id} not found", activity_id=activity_id
                )

            record = migration_from_dict(raw.get("migration", {}))
            for name, value in fields.items():
                if not hasattr(record, name):
                    raise RegistryError(f"Unknown migration field: {name}")
                setattr(record, name, value)
            if increment_attempts:
                record.attempt_count += 1

            raw["migration"] = migration_to_dict(record)
            self._write(data)
            return self._join(data, raw)

    def put_activity(self, activity: Activity) -> None:
        with self._lock:
            data = self._read()
            data["activities"][activity.id] = activity_to_dict(activity)
            self._write(data)

    def put_work_group(self, group: WorkGroup) -> None:
        with self._lock:
            data = self._read()
            data["work_groups"][group.id] = work_group_to_dict(group)
            self._write(data)

    def list_activities(self) -> List[Activity]:
        data = self._read()
        return [self._join(data, raw) for raw in data["activities"].values()]
