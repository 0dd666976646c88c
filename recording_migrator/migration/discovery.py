import logging
from typing import List

from ..registry.models import Activity
from ..registry.status_store import StatusStore

logger = logging.getLogger(__name__)


class Discovery:
    def __init__(self, store: StatusStore) -> None:
        self._store = store

    def list_eligible(self) -> List[Activity]:
        """Activities ready for migration, oldest first. Never raises on empty."""
        activities = self._store.list_eligible()
        logger.debug("Discovery returned %d eligible activities", len(activities))
        return activities

    def count_eligible(self) -> int:
        return self._store.count_eligible()
