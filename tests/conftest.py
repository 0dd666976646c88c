from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from recording_migrator.registry.json_registry import JsonActivityRegistry
from recording_migrator.registry.models import (
    Activity,
    ActivityKind,
    MigrationRecord,
    VideoRecord,
    WorkGroup,
)
from recording_migrator.registry.status_store import StatusStore
from recording_migrator.sources.recordings import RecordingsClient, SourceVideo
from recording_migrator.storage.local_cache import LocalFileCache
from recording_migrator.targets.stream import StreamClient
from recording_migrator.targets.tus import UploadSession
from recording_migrator.transfer.client import TransferClient

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" * 64


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests with no network access")


def make_activity(
    activity_id: str = "act-1",
    created_at: Optional[datetime] = None,
    videos: Optional[List[VideoRecord]] = None,
    **overrides: object,
) -> Activity:
    activity = Activity(
        id=activity_id,
        kind=ActivityKind.LIVE_SESSION,
        title="Week 1",
        work_group_id="wg-1",
        room_session_ref="room-1",
        window_end=NOW - timedelta(hours=1),
        created_at=created_at or NOW - timedelta(days=1),
        migration=MigrationRecord(recording_available=True, videos=videos or []),
    )
    for name, value in overrides.items():
        target = activity.migration if hasattr(activity.migration, name) else activity
        setattr(target, name, value)
    return activity


def source_video(asset_id: str, session_id: str = "sess-1") -> SourceVideo:
    return SourceVideo(
        session_id=session_id,
        asset_id=asset_id,
        download_url=f"https://recordings.example.com/{asset_id}.mp4?sig=abc",
        duration=1800,
        size=len(VIDEO_BYTES),
    )


@pytest.fixture
def registry(tmp_path: Path) -> JsonActivityRegistry:
    reg = JsonActivityRegistry(tmp_path / "registry.json")
    reg.put_work_group(WorkGroup(id="wg-1", title="Cohort A", collection_ref="col-1"))
    return reg


@pytest.fixture
def store(registry: JsonActivityRegistry) -> StatusStore:
    return StatusStore(registry, clock=lambda: NOW)


@pytest.fixture
def cache(tmp_path: Path) -> LocalFileCache:
    return LocalFileCache(tmp_path / "uploads")


@pytest.fixture
def recordings() -> MagicMock:
    return MagicMock(spec=RecordingsClient)


@pytest.fixture
def downloads() -> Dict[str, bytes]:
    """Content served per download URL; unknown URLs get ``VIDEO_BYTES``."""
    return {}


@pytest.fixture
def transfer(downloads: Dict[str, bytes]) -> MagicMock:
    mock = MagicMock(spec=TransferClient)
    mock.chunk_size = 1024

    def fake_download(
        url: str, path: Path, on_progress: Optional[Callable] = None
    ) -> int:
        content = downloads.get(url, VIDEO_BYTES)
        path.write_bytes(content)
        if on_progress:
            on_progress(len(content), len(content))
        return len(content)

    mock.download.side_effect = fake_download
    mock.upload.side_effect = lambda path, session, on_progress=None: session.asset_id
    return mock


@pytest.fixture
def stream() -> MagicMock:
    mock = MagicMock(spec=StreamClient)
    counter = {"n": 0}

    def create_video(title: str, collection_id: Optional[str] = None) -> str:
        counter["n"] += 1
        return f"guid-{counter['n']}"

    def build_upload_session(
        asset_id: str, title: str, collection_id: Optional[str], chunk_size: int
    ) -> UploadSession:
        return UploadSession(
            endpoint="https://video.bunnycdn.com/tusupload",
            auth_signature="sig",
            auth_expiry=1,
            asset_id=asset_id,
            library_id="4242",
            chunk_size=chunk_size,
            metadata={"title": title, "collection": collection_id or ""},
        )

    mock.create_video.side_effect = create_video
    mock.build_upload_session.side_effect = build_upload_session
    return mock
