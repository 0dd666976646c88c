"""Recording Migrator - Move recorded live-session videos to a video streaming host."""

__version__ = "0.1.0"

from .config import Config, ConfigManager
from .pipeline import Pipeline, build_pipeline
from .migration import (
    Discovery,
    DownloadOrchestrator,
    Scheduler,
    UploadOrchestrator,
)
from .registry import ActivityRegistry, JsonActivityRegistry, StatusStore, UploadStatus
from .sources.recordings import RecordingsClient
from .targets.stream import StreamClient
from .transfer.client import TransferClient

__all__ = [
    "Config",
    "ConfigManager",
    "Pipeline",
    "build_pipeline",
    "Discovery",
    "DownloadOrchestrator",
    "Scheduler",
    "UploadOrchestrator",
    "ActivityRegistry",
    "JsonActivityRegistry",
    "StatusStore",
    "UploadStatus",
    "RecordingsClient",
    "StreamClient",
    "TransferClient",
]
