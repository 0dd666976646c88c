from pathlib import Path
from typing import List
from unittest.mock import MagicMock, patch

import pytest
import requests

from recording_migrator.targets.tus import TusClient, UploadSession
from recording_migrator.transfer.client import TransferClient
from recording_migrator.utils.exceptions import (
    AuthenticationError,
    DownloadError,
    TransferTimeoutError,
    UploadError,
)

pytestmark = pytest.mark.unit

UPLOAD_URL = "https://video.bunnycdn.com/tusupload/abc"


def _stream_response(
    status_code: int = 200,
    blocks: List[bytes] = None,
    content_length: str = None,
) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.headers = {"content-length": content_length} if content_length else {}
    resp.iter_content.return_value = iter(blocks or [])
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


@pytest.fixture
def tus() -> MagicMock:
    return MagicMock(spec=TusClient)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def transfer(tus: MagicMock, sleeps: List[float]) -> TransferClient:
    return TransferClient(
        tus_client=tus,
        download_timeout_seconds=600,
        chunk_size=4,
        retry_delays=[0, 3, 5],
        sleep=sleeps.append,
    )


@pytest.fixture
def session() -> UploadSession:
    return UploadSession(
        endpoint="https://video.bunnycdn.com/tusupload",
        auth_signature="sig",
        auth_expiry=1,
        asset_id="guid-1",
        library_id="4242",
        chunk_size=4,
    )


class TestDownload:
    @patch("recording_migrator.transfer.client.requests.get")
    def test_streams_to_file(
        self, mock_get: MagicMock, transfer: TransferClient, tmp_path: Path
    ) -> None:
        mock_get.return_value = _stream_response(
            blocks=[b"abc", b"", b"defg"], content_length="7"
        )
        progress: list = []
        target = tmp_path / "nested" / "video.mp4"

        written = transfer.download(
            "https://cdn/video?sig=1", target, lambda d, t: progress.append((d, t))
        )

        assert written == 7
        assert target.read_bytes() == b"abcdefg"
        assert progress == [(3, 7), (7, 7)]
        assert mock_get.call_args.kwargs == {"stream": True, "timeout": 600}

    @patch("recording_migrator.transfer.client.requests.get")
    def test_http_error(
        self, mock_get: MagicMock, transfer: TransferClient, tmp_path: Path
    ) -> None:
        mock_get.return_value = _stream_response(status_code=403)
        target = tmp_path / "video.mp4"

        with pytest.raises(DownloadError, match="HTTP 403") as exc_info:
            transfer.download("https://cdn/video", target)
        assert exc_info.value.url == "https://cdn/video"
        assert not target.exists()

    @patch("recording_migrator.transfer.client.requests.get")
    def test_request_timeout_discards_partial_file(
        self, mock_get: MagicMock, transfer: TransferClient, tmp_path: Path
    ) -> None:
        def blocks():
            yield b"abc"
            raise requests.exceptions.ReadTimeout("stalled")

        resp = _stream_response()
        resp.iter_content.return_value = blocks()
        mock_get.return_value = resp
        target = tmp_path / "video.mp4"

        with pytest.raises(TransferTimeoutError) as exc_info:
            transfer.download("https://cdn/video", target)
        assert exc_info.value.timeout_seconds == 600
        assert not target.exists()

    @patch("recording_migrator.transfer.client.requests.get")
    def test_total_duration_is_bounded(
        self, mock_get: MagicMock, tus: MagicMock, tmp_path: Path
    ) -> None:
        clock = iter([0.0, 5.0, 11.0])
        transfer = TransferClient(
            tus_client=tus, download_timeout_seconds=10, monotonic=lambda: next(clock)
        )
        mock_get.return_value = _stream_response(blocks=[b"a", b"b", b"c"])
        target = tmp_path / "video.mp4"

        with pytest.raises(TransferTimeoutError, match="timeout"):
            transfer.download("https://cdn/video", target)
        assert not target.exists()

    @patch("recording_migrator.transfer.client.requests.get")
    def test_connection_error(
        self, mock_get: MagicMock, transfer: TransferClient, tmp_path: Path
    ) -> None:
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(DownloadError, match="refused"):
            transfer.download("https://cdn/video", tmp_path / "video.mp4")


class TestUpload:
    def _file(self, tmp_path: Path, content: bytes = b"0123456789") -> Path:
        path = tmp_path / "video.mp4"
        path.write_bytes(content)
        return path

    def test_uploads_in_ordered_chunks(
        self,
        transfer: TransferClient,
        tus: MagicMock,
        session: UploadSession,
        tmp_path: Path,
    ) -> None:
        tus.create.return_value = UPLOAD_URL
        tus.patch.side_effect = lambda url, s, offset, chunk: offset + len(chunk)
        progress: list = []

        asset_id = transfer.upload(
            self._file(tmp_path), session, lambda d, t: progress.append((d, t))
        )

        assert asset_id == "guid-1"
        tus.create.assert_called_once_with(session, 10)
        chunks = [(c.args[2], c.args[3]) for c in tus.patch.call_args_list]
        assert chunks == [(0, b"0123"), (4, b"4567"), (8, b"89")]
        assert progress == [(4, 10), (8, 10), (10, 10)]

    def test_resumes_from_acknowledged_offset(
        self,
        transfer: TransferClient,
        tus: MagicMock,
        session: UploadSession,
        tmp_path: Path,
        sleeps: List[float],
    ) -> None:
        tus.create.return_value = UPLOAD_URL
        tus.get_offset.return_value = 4
        calls = {"n": 0}

        def patch_chunk(url, s, offset, chunk):
            calls["n"] += 1
            if calls["n"] == 2:
                raise UploadError("connection reset")
            return offset + len(chunk)

        tus.patch.side_effect = patch_chunk
        progress: list = []

        transfer.upload(self._file(tmp_path), session, lambda d, t: progress.append(d))

        tus.create.assert_called_once()
        tus.get_offset.assert_called_once_with(UPLOAD_URL, session)
        offsets = [c.args[2] for c in tus.patch.call_args_list]
        assert offsets == [0, 4, 4, 8]
        assert progress == sorted(progress)
        assert progress[-1] == 10
        assert sleeps == [0]

    def test_gives_up_after_retry_schedule(
        self,
        transfer: TransferClient,
        tus: MagicMock,
        session: UploadSession,
        tmp_path: Path,
        sleeps: List[float],
    ) -> None:
        tus.create.side_effect = TransferTimeoutError("slow")

        with pytest.raises(UploadError, match="after 4 attempts") as exc_info:
            transfer.upload(self._file(tmp_path), session)

        assert exc_info.value.asset_id == "guid-1"
        assert sleeps == [0, 3, 5]
        assert tus.create.call_count == 4

    def test_auth_error_is_not_retried(
        self,
        transfer: TransferClient,
        tus: MagicMock,
        session: UploadSession,
        tmp_path: Path,
        sleeps: List[float],
    ) -> None:
        tus.create.side_effect = AuthenticationError("expired signature")

        with pytest.raises(AuthenticationError):
            transfer.upload(self._file(tmp_path), session)
        assert sleeps == []

    def test_progress_resets_failure_count(
        self,
        tus: MagicMock,
        session: UploadSession,
        tmp_path: Path,
        sleeps: List[float],
    ) -> None:
        transfer = TransferClient(
            tus_client=tus, chunk_size=4, retry_delays=[1], sleep=sleeps.append
        )
        tus.create.return_value = UPLOAD_URL
        tus.get_offset.side_effect = [4, 8]
        outcomes = iter([4, UploadError("reset"), 8, UploadError("reset"), 10])

        def patch_chunk(url, s, offset, chunk):
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        tus.patch.side_effect = patch_chunk

        assert transfer.upload(self._file(tmp_path), session) == "guid-1"
        assert sleeps == [1, 1]
