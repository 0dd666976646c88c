from unittest.mock import MagicMock, patch

import pytest
import requests

from recording_migrator.sources.recordings import RecordingsClient, SourceVideo
from recording_migrator.utils.exceptions import (
    AuthenticationError,
    UpstreamUnavailableError,
)

pytestmark = pytest.mark.unit

BASE_URL = "https://lms.example.com/"


@pytest.fixture
def client() -> RecordingsClient:
    return RecordingsClient(BASE_URL, api_key="source-key", timeout_seconds=5)


def _make_response(
    status_code: int = 200,
    json_data: dict = None,
    text: str = "",
) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    resp.text = text
    return resp


class TestGetRecordingVideos:
    @patch("recording_migrator.sources.recordings.requests.get")
    def test_returns_videos(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        mock_get.return_value = _make_response(
            json_data={
                "success": True,
                "videos": [
                    {
                        "sessionId": "s1",
                        "assetId": "a1",
                        "downloadUrl": "https://cdn/a1?sig=1",
                        "duration": 3600,
                        "size": 1024,
                    },
                    {"sessionId": "s1", "assetId": "a2", "downloadUrl": "https://cdn/a2"},
                ],
            }
        )

        videos = client.get_recording_videos("act-1")

        assert videos == [
            SourceVideo("s1", "a1", "https://cdn/a1?sig=1", 3600, 1024),
            SourceVideo("s1", "a2", "https://cdn/a2", 0, 0),
        ]
        mock_get.assert_called_once_with(
            "https://lms.example.com/v1/100ms/recordings/activity/act-1/videos",
            headers={"x-api-key": "source-key"},
            timeout=5,
        )

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_empty_list(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        mock_get.return_value = _make_response(json_data={"success": True, "videos": []})
        assert client.get_recording_videos("act-1") == []

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_fetches_fresh_urls_every_call(
        self, mock_get: MagicMock, client: RecordingsClient
    ) -> None:
        mock_get.return_value = _make_response(json_data={"success": True, "videos": []})
        client.get_recording_videos("act-1")
        client.get_recording_videos("act-1")
        assert mock_get.call_count == 2

    @pytest.mark.parametrize("status_code", [401, 403])
    @patch("recording_migrator.sources.recordings.requests.get")
    def test_auth_failure(
        self, mock_get: MagicMock, status_code: int, client: RecordingsClient
    ) -> None:
        mock_get.return_value = _make_response(status_code=status_code)
        with pytest.raises(AuthenticationError) as exc_info:
            client.get_recording_videos("act-1")
        assert exc_info.value.status_code == status_code

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_not_found(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        mock_get.return_value = _make_response(status_code=404)
        with pytest.raises(UpstreamUnavailableError, match="no recording available"):
            client.get_recording_videos("act-1")

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_server_error(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        mock_get.return_value = _make_response(status_code=500, text="oops")
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.get_recording_videos("act-1")
        assert exc_info.value.status_code == 500
        assert exc_info.value.service == "recordings"

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_network_error(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(UpstreamUnavailableError, match="refused"):
            client.get_recording_videos("act-1")

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_invalid_json(self, mock_get: MagicMock, client: RecordingsClient) -> None:
        resp = _make_response()
        resp.json.side_effect = ValueError("no json")
        mock_get.return_value = resp
        with pytest.raises(UpstreamUnavailableError, match="invalid JSON"):
            client.get_recording_videos("act-1")

    @patch("recording_migrator.sources.recordings.requests.get")
    def test_unsuccessful_payload(
        self, mock_get: MagicMock, client: RecordingsClient
    ) -> None:
        mock_get.return_value = _make_response(
            json_data={"success": False, "message": "room not found"}
        )
        with pytest.raises(UpstreamUnavailableError, match="room not found"):
            client.get_recording_videos("act-1")
