import base64
from unittest.mock import MagicMock, patch

import pytest
import requests

from recording_migrator.targets.tus import TusClient, UploadSession, encode_metadata
from recording_migrator.utils.exceptions import (
    AuthenticationError,
    TransferTimeoutError,
    UploadError,
)

pytestmark = pytest.mark.unit

ENDPOINT = "https://video.bunnycdn.com/tusupload"


@pytest.fixture
def session() -> UploadSession:
    return UploadSession(
        endpoint=ENDPOINT,
        auth_signature="sig",
        auth_expiry=1700003600,
        asset_id="guid-1",
        library_id="4242",
        chunk_size=4,
        metadata={"filetype": "video/mp4", "title": "Week 1"},
    )


@pytest.fixture
def client() -> TusClient:
    return TusClient(timeout_seconds=10)


def _make_response(status_code: int = 204, headers: dict = None, text: str = ""):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.text = text
    return resp


class TestEncodeMetadata:
    def test_base64_pairs(self):
        encoded = encode_metadata({"filetype": "video/mp4", "title": "Week 1"})
        first, second = encoded.split(",")
        key, value = second.split(" ")
        assert first.startswith("filetype ")
        assert key == "title"
        assert base64.b64decode(value).decode() == "Week 1"


class TestCreate:
    @patch("recording_migrator.targets.tus.requests.request")
    def test_returns_absolute_upload_url(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(
            201, headers={"Location": "/tusupload/abc123"}
        )

        url = client.create(session, 1000)

        assert url == "https://video.bunnycdn.com/tusupload/abc123"
        method, called_url = mock_request.call_args.args
        headers = mock_request.call_args.kwargs["headers"]
        assert (method, called_url) == ("POST", ENDPOINT)
        assert headers["Upload-Length"] == "1000"
        assert headers["Tus-Resumable"] == "1.0.0"
        assert headers["AuthorizationSignature"] == "sig"
        assert headers["VideoId"] == "guid-1"

    @patch("recording_migrator.targets.tus.requests.request")
    def test_missing_location(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(201)
        with pytest.raises(UploadError, match="Location"):
            client.create(session, 1000)

    @patch("recording_migrator.targets.tus.requests.request")
    def test_rejected_credentials(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(401, text="expired")
        with pytest.raises(AuthenticationError):
            client.create(session, 1000)

    @patch("recording_migrator.targets.tus.requests.request")
    def test_server_error(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(500, text="oops")
        with pytest.raises(UploadError) as exc_info:
            client.create(session, 1000)
        assert exc_info.value.asset_id == "guid-1"


class TestPatchAndOffset:
    @patch("recording_migrator.targets.tus.requests.request")
    def test_patch_returns_new_offset(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(204, {"Upload-Offset": "8"})

        offset = client.patch(ENDPOINT + "/abc", session, 4, b"abcd")

        assert offset == 8
        kwargs = mock_request.call_args.kwargs
        assert kwargs["data"] == b"abcd"
        assert kwargs["headers"]["Upload-Offset"] == "4"
        assert kwargs["headers"]["Content-Type"] == "application/offset+octet-stream"

    @patch("recording_migrator.targets.tus.requests.request")
    def test_get_offset(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(200, {"Upload-Offset": "12"})
        assert client.get_offset(ENDPOINT + "/abc", session) == 12
        assert mock_request.call_args.args[0] == "HEAD"

    @patch("recording_migrator.targets.tus.requests.request")
    def test_invalid_offset_header(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.return_value = _make_response(204, {"Upload-Offset": "x"})
        with pytest.raises(UploadError, match="Upload-Offset"):
            client.patch(ENDPOINT + "/abc", session, 0, b"abcd")

    @patch("recording_migrator.targets.tus.requests.request")
    def test_timeout(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.side_effect = requests.exceptions.ReadTimeout("slow")
        with pytest.raises(TransferTimeoutError) as exc_info:
            client.patch(ENDPOINT + "/abc", session, 0, b"abcd")
        assert exc_info.value.timeout_seconds == 10

    @patch("recording_migrator.targets.tus.requests.request")
    def test_connection_error(
        self, mock_request: MagicMock, client: TusClient, session: UploadSession
    ) -> None:
        mock_request.side_effect = requests.exceptions.ConnectionError("reset")
        with pytest.raises(UploadError, match="reset"):
            client.patch(ENDPOINT + "/abc", session, 0, b"abcd")
