import hashlib
import logging
import time
from typing import Any, Callable, Dict, NoReturn, Optional

import requests

from ..utils.exceptions import AuthenticationError, UpstreamUnavailableError
from .tus import SERVICE_NAME, UploadSession

logger = logging.getLogger(__name__)

VIDEO_FILETYPE = "video/mp4"


class StreamClient:
    """Client for the destination video host's management API."""

    def __init__(
        self,
        api_base_url: str,
        api_key: str,
        library_id: str,
        tus_endpoint: str,
        signature_expiry_minutes: int = 60,
        timeout_seconds: float = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._api_key = api_key
        self._library_id = str(library_id)
        self._tus_endpoint = tus_endpoint
        self._signature_expiry_minutes = signature_expiry_minutes
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    @property
    def library_id(self) -> str:
        return self._library_id

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "AccessKey": self._api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _handle_response_error(status_code: int, response_text: str) -> NoReturn:
        if status_code in (401, 403):
            raise AuthenticationError(
                f"Stream API authentication error ({status_code}): {response_text}",
                service=SERVICE_NAME,
                status_code=status_code,
            )

        raise UpstreamUnavailableError(
            f"Failed to create video in Stream ({status_code}): {response_text}",
            service=SERVICE_NAME,
            status_code=status_code,
        )

    def create_video(self, title: str, collection_id: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"title": title}
        if collection_id:
            payload["collectionId"] = collection_id

        url = f"{self._api_base_url}/library/{self._library_id}/videos"
        try:
            response = requests.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=self._timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamUnavailableError(
                f"Failed to create video in Stream: {e}", service=SERVICE_NAME
            ) from e

        if response.status_code not in (200, 201):
            self._handle_response_error(response.status_code, response.text)

        data: Dict[str, Any] = response.json()
        asset_id = data.get("guid")
        if not asset_id:
            raise UpstreamUnavailableError(
                f"Stream create-video response carried no guid: {data}",
                service=SERVICE_NAME,
            )
        logger.info("Created video in Stream: %s", asset_id)
        return str(asset_id)

    def sign_upload(self, asset_id: str) -> Dict[str, Any]:
        """Presigned credentials for a resumable upload of ``asset_id``.

        The signature is sha256(library_id + api_key + expiry + asset_id).
        """
        expiry = int(self._clock()) + self._signature_expiry_minutes * 60
        raw = f"{self._library_id}{self._api_key}{expiry}{asset_id}"
        signature = hashlib.sha256(raw.encode("utf-8")).hexdigest()
        return {"signature": signature, "expire": expiry}

    def build_upload_session(
        self,
        asset_id: str,
        title: str,
        collection_id: Optional[str],
        chunk_size: int,
    ) -> UploadSession:
        signed = self.sign_upload(asset_id)
        return UploadSession(
            endpoint=self._tus_endpoint,
            auth_signature=signed["signature"],
            auth_expiry=signed["expire"],
            asset_id=asset_id,
            library_id=self._library_id,
            chunk_size=chunk_size,
            metadata={
                "filetype": VIDEO_FILETYPE,
                "title": title,
                "collection": collection_id or "",
            },
        )
