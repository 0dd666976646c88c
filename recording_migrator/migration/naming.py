import re
import time
from typing import Callable

VIDEO_EXTENSION = "mp4"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe(segment: str) -> str:
    return _UNSAFE_RE.sub("-", str(segment)).strip("-") or "x"


class FilenameBuilder:
    """Builds staging filenames and destination titles for recordings.

    Local names are ``{activity}_{session}_{asset}_{timestamp_ns}.mp4``;
    the nanosecond timestamp keeps retries of the same video from
    colliding with an earlier partial file.
    """

    def __init__(self, clock_ns: Callable[[], int] = time.time_ns) -> None:
        self._clock_ns = clock_ns
        self._last_ns = 0

    def _next_timestamp(self) -> int:
        now = self._clock_ns()
        if now <= self._last_ns:
            now = self._last_ns + 1
        self._last_ns = now
        return now

    def local_filename(
        self,
        activity_id: str,
        session_id: str,
        asset_id: str,
    ) -> str:
        return (
            f"{_safe(activity_id)}_{_safe(session_id)}_{_safe(asset_id)}_"
            f"{self._next_timestamp()}.{VIDEO_EXTENSION}"
        )

    @staticmethod
    def part_title(activity_title: str, index: int) -> str:
        return f"{activity_title} - Part {index}"
