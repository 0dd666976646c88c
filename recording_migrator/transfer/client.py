import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import requests

from ..targets.tus import TusClient, UploadSession
from ..utils.exceptions import (
    AuthenticationError,
    DownloadError,
    TransferError,
    TransferTimeoutError,
    UploadError,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50 * 1024 * 1024
DEFAULT_RETRY_DELAYS: List[float] = [0, 3, 5, 10, 20, 60, 60]
STREAM_BLOCK_SIZE = 1024 * 1024

ProgressCallback = Callable[[int, Optional[int]], None]


class TransferClient:
    def __init__(
        self,
        tus_client: Optional[TusClient] = None,
        download_timeout_seconds: float = 600,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tus = tus_client or TusClient()
        self._download_timeout_seconds = download_timeout_seconds
        self._chunk_size = chunk_size
        self._retry_delays = list(retry_delays)
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def download(
        self,
        source_url: str,
        destination_path: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Stream ``source_url`` into ``destination_path``; return bytes written.

        The whole transfer, not just each read, is bounded by the download
        timeout. A failed download leaves no partial file behind.
        """
        timeout = self._download_timeout_seconds
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading video to: %s (timeout %ss)", destination_path, timeout)

        started = self._monotonic()
        written = 0
        try:
            with requests.get(source_url, stream=True, timeout=timeout) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        f"Failed to download video: HTTP {response.status_code}",
                        path=str(destination_path),
                        url=source_url,
                    )
                declared = response.headers.get("content-length")
                total = int(declared) if declared and declared.isdigit() else None

                with open(destination_path, "wb") as f:
                    for block in response.iter_content(chunk_size=STREAM_BLOCK_SIZE):
                        if not block:
                            continue
                        f.write(block)
                        written += len(block)
                        if on_progress:
                            on_progress(written, total)
                        if self._monotonic() - started > timeout:
                            raise TransferTimeoutError(
                                f"Download timeout after {timeout / 60:g} minutes",
                                path=str(destination_path),
                                timeout_seconds=timeout,
                            )
        except requests.exceptions.Timeout as e:
            self._discard(destination_path)
            raise TransferTimeoutError(
                f"Download timeout after {timeout / 60:g} minutes",
                path=str(destination_path),
                timeout_seconds=timeout,
            ) from e
        except requests.exceptions.RequestException as e:
            self._discard(destination_path)
            raise DownloadError(
                f"Failed to download video: {e}",
                path=str(destination_path),
                url=source_url,
            ) from e
        except OSError as e:
            self._discard(destination_path)
            raise DownloadError(
                f"Failed to write video to {destination_path}: {e}",
                path=str(destination_path),
                url=source_url,
            ) from e
        except TransferError:
            self._discard(destination_path)
            raise

        logger.info(
            "Video downloaded successfully: %s (%.2f MB)",
            destination_path,
            written / (1024 * 1024),
        )
        return written

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove partial download %s: %s", path, e)

    def upload(
        self,
        local_path: Path,
        session: UploadSession,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Upload ``local_path`` in ordered chunks; return the destination asset id.

        Transient failures are retried after each delay in the retry schedule,
        resuming from the offset the destination acknowledged. Progress is
        reported as a non-decreasing byte count.
        """
        file_size = local_path.stat().st_size
        chunk_size = session.chunk_size or self._chunk_size
        total_chunks = max(1, -(-file_size // chunk_size))
        logger.info(
            "Uploading %s (%.2f MB) in %d chunk(s) of %d MB",
            local_path,
            file_size / (1024 * 1024),
            total_chunks,
            chunk_size // (1024 * 1024),
        )

        upload_url: Optional[str] = None
        reported = 0
        failures = 0

        while True:
            offset_at_attempt = reported
            try:
                if upload_url is None:
                    upload_url = self._tus.create(session, file_size)
                    offset = 0
                else:
                    offset = self._tus.get_offset(upload_url, session)
                    logger.info("Resuming upload of %s at byte %d", local_path, offset)

                with open(local_path, "rb") as f:
                    while offset < file_size:
                        f.seek(offset)
                        chunk = f.read(chunk_size)
                        offset = self._tus.patch(upload_url, session, offset, chunk)
                        if offset > reported:
                            reported = offset
                        if on_progress:
                            on_progress(reported, file_size)
                        logger.debug(
                            "Chunk %d/%d acknowledged",
                            -(-offset // chunk_size),
                            total_chunks,
                        )

                logger.info("Upload completed for asset %s", session.asset_id)
                return session.asset_id

            except AuthenticationError:
                raise
            except TransferError as e:
                if reported > offset_at_attempt:
                    failures = 0
                if failures >= len(self._retry_delays):
                    raise UploadError(
                        f"Upload failed after {failures + 1} attempts: {e}",
                        path=str(local_path),
                        asset_id=session.asset_id,
                    ) from e
                delay = self._retry_delays[failures]
                failures += 1
                logger.warning(
                    "Error uploading %s (attempt %d/%d): %s, retrying in %.1fs",
                    local_path,
                    failures,
                    len(self._retry_delays) + 1,
                    e,
                    delay,
                )
                self._sleep(delay)
            except OSError as e:
                raise UploadError(
                    f"Failed to read {local_path}: {e}",
                    path=str(local_path),
                    asset_id=session.asset_id,
                ) from e
