import logging
from dataclasses import dataclass
from typing import Any, Dict, List, NoReturn

import requests

from ..utils.exceptions import AuthenticationError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

SERVICE_NAME = "recordings"
_VIDEOS_PATH = "/v1/100ms/recordings/activity/{activity_id}/videos"


@dataclass
class SourceVideo:
    session_id: str
    asset_id: str
    download_url: str
    duration: float = 0
    size: int = 0


class RecordingsClient:
    """Client for the source provider's recordings API.

    Download URLs are signed and short-lived; they are fetched fresh on
    every call and never cached.
    """

    def __init__(
        self,
        api_base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    @staticmethod
    def _handle_response_error(status_code: int, response_text: str) -> NoReturn:
        if status_code in (401, 403):
            raise AuthenticationError(
                f"Recordings API authentication failed ({status_code}): "
                "check source.api_key",
                service=SERVICE_NAME,
                status_code=status_code,
            )

        if status_code == 404:
            raise UpstreamUnavailableError(
                "Activity not found or no recording available yet",
                service=SERVICE_NAME,
                status_code=status_code,
            )

        raise UpstreamUnavailableError(
            f"Recordings API error ({status_code}): {response_text}",
            service=SERVICE_NAME,
            status_code=status_code,
        )

    @staticmethod
    def _parse_video(item: Dict[str, Any]) -> SourceVideo:
        return SourceVideo(
            session_id=str(item["sessionId"]),
            asset_id=str(item["assetId"]),
            download_url=item["downloadUrl"],
            duration=item.get("duration") or 0,
            size=item.get("size") or 0,
        )

    def get_recording_videos(self, activity_id: str) -> List[SourceVideo]:
        url = self._api_base_url + _VIDEOS_PATH.format(activity_id=activity_id)
        logger.info("Fetching recording videos for activity: %s", activity_id)

        try:
            response = requests.get(
                url,
                headers={"x-api-key": self._api_key},
                timeout=self._timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamUnavailableError(
                f"Failed to get recording videos: {e}", service=SERVICE_NAME
            ) from e

        if response.status_code != 200:
            self._handle_response_error(response.status_code, response.text)

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"Recordings API returned invalid JSON: {e}", service=SERVICE_NAME
            ) from e

        if not payload.get("success"):
            raise UpstreamUnavailableError(
                f"Recordings API reported failure for activity {activity_id}: "
                f"{payload.get('message', 'no message')}",
                service=SERVICE_NAME,
            )

        videos = [self._parse_video(item) for item in payload.get("videos") or []]
        logger.info("Got %d video(s) for activity %s", len(videos), activity_id)
        return videos
