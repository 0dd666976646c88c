from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Config
from .migration.discovery import Discovery
from .migration.downloader import DownloadOrchestrator
from .migration.scheduler import Scheduler
from .migration.uploader import UploadOrchestrator
from .registry.base import ActivityRegistry
from .registry.json_registry import JsonActivityRegistry
from .registry.status_store import StatusStore
from .sources.recordings import RecordingsClient
from .storage.local_cache import LocalFileCache
from .targets.stream import StreamClient
from .targets.tus import TusClient
from .transfer.client import TransferClient


@dataclass
class Pipeline:
    store: StatusStore
    discovery: Discovery
    downloader: DownloadOrchestrator
    uploader: UploadOrchestrator
    scheduler: Scheduler


def build_pipeline(
    config: Config, registry: Optional[ActivityRegistry] = None
) -> Pipeline:
    if registry is None:
        registry = JsonActivityRegistry(Path(config.registry.path).expanduser())
    store = StatusStore(registry)
    cache = LocalFileCache(config.migration.staging_dir)

    transfer = TransferClient(
        tus_client=TusClient(),
        download_timeout_seconds=config.migration.download_timeout_seconds,
        chunk_size=config.chunk_size_bytes,
        retry_delays=config.migration.retry_delays_seconds,
    )
    recordings = RecordingsClient(
        api_base_url=config.source.api_base_url,
        api_key=config.source.api_key,
        timeout_seconds=config.source.request_timeout_seconds,
    )
    stream = StreamClient(
        api_base_url=config.destination.api_base_url,
        api_key=config.destination.api_key,
        library_id=config.destination.library_id,
        tus_endpoint=config.destination.tus_endpoint,
        signature_expiry_minutes=config.destination.signature_expiry_minutes,
    )

    discovery = Discovery(store)
    downloader = DownloadOrchestrator(store, recordings, transfer, cache)
    uploader = UploadOrchestrator(store, stream, transfer, cache)
    scheduler = Scheduler(store, discovery, downloader, uploader)
    return Pipeline(
        store=store,
        discovery=discovery,
        downloader=downloader,
        uploader=uploader,
        scheduler=scheduler,
    )
