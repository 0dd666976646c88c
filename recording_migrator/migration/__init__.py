from .discovery import Discovery
from .downloader import DownloadOrchestrator
from .naming import FilenameBuilder
from .results import DownloadResult, ProcessResult, UploadResult, VideoOutcome
from .scheduler import Scheduler
from .uploader import UploadOrchestrator

__all__ = [
    "Discovery",
    "DownloadOrchestrator",
    "FilenameBuilder",
    "DownloadResult",
    "ProcessResult",
    "UploadResult",
    "VideoOutcome",
    "Scheduler",
    "UploadOrchestrator",
]
