"""Resumable upload session primitives for the destination host.

The destination speaks the tus 1.0 protocol: a ``POST`` creates the upload
and returns its URL, ``HEAD`` reports the acknowledged offset and each
``PATCH`` appends one chunk at that offset.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, NoReturn, Optional
from urllib.parse import urljoin

import requests

from ..utils.exceptions import (
    AuthenticationError,
    TransferTimeoutError,
    UploadError,
)

logger = logging.getLogger(__name__)

TUS_VERSION = "1.0.0"
SERVICE_NAME = "stream"


@dataclass
class UploadSession:
    endpoint: str
    auth_signature: str
    auth_expiry: int
    asset_id: str
    library_id: str
    chunk_size: int
    metadata: Dict[str, str] = field(default_factory=dict)

    def auth_headers(self) -> Dict[str, str]:
        return {
            "AuthorizationSignature": self.auth_signature,
            "AuthorizationExpire": str(self.auth_expiry),
            "VideoId": self.asset_id,
            "LibraryId": str(self.library_id),
        }


def encode_metadata(metadata: Dict[str, str]) -> str:
    pairs = []
    for key, value in metadata.items():
        encoded = base64.b64encode(str(value).encode("utf-8")).decode("ascii")
        pairs.append(f"{key} {encoded}")
    return ",".join(pairs)


class TusClient:
    def __init__(self, timeout_seconds: float = 120) -> None:
        self._timeout_seconds = timeout_seconds

    def _headers(self, session: UploadSession, **extra: str) -> Dict[str, str]:
        headers = {"Tus-Resumable": TUS_VERSION}
        headers.update(session.auth_headers())
        headers.update(extra)
        return headers

    def _handle_response_error(
        self,
        response: requests.Response,
        session: UploadSession,
        action: str,
    ) -> NoReturn:
        status_code = response.status_code
        if status_code in (401, 403):
            raise AuthenticationError(
                f"Upload {action} rejected ({status_code}): {response.text}",
                service=SERVICE_NAME,
                status_code=status_code,
            )
        raise UploadError(
            f"Upload {action} failed ({status_code}): {response.text}",
            asset_id=session.asset_id,
        )

    def _send(
        self,
        method: str,
        url: str,
        session: UploadSession,
        headers: Dict[str, str],
        data: Optional[bytes] = None,
    ) -> requests.Response:
        try:
            return requests.request(
                method,
                url,
                headers=headers,
                data=data,
                timeout=self._timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            raise TransferTimeoutError(
                f"Upload {method} timed out after {self._timeout_seconds}s",
                timeout_seconds=self._timeout_seconds,
            ) from e
        except requests.exceptions.RequestException as e:
            raise UploadError(
                f"Upload {method} request failed: {e}", asset_id=session.asset_id
            ) from e

    def create(self, session: UploadSession, upload_length: int) -> str:
        headers = self._headers(
            session,
            **{
                "Upload-Length": str(upload_length),
                "Upload-Metadata": encode_metadata(session.metadata),
            },
        )
        response = self._send("POST", session.endpoint, session, headers)
        if response.status_code not in (200, 201):
            self._handle_response_error(response, session, "creation")

        location = response.headers.get("Location")
        if not location:
            raise UploadError(
                "Upload creation response carried no Location header",
                asset_id=session.asset_id,
            )
        upload_url = urljoin(session.endpoint, location)
        logger.debug("Created upload %s for asset %s", upload_url, session.asset_id)
        return upload_url

    def get_offset(self, upload_url: str, session: UploadSession) -> int:
        response = self._send("HEAD", upload_url, session, self._headers(session))
        if response.status_code not in (200, 204):
            self._handle_response_error(response, session, "offset query")
        return self._read_offset(response, session)

    def patch(
        self,
        upload_url: str,
        session: UploadSession,
        offset: int,
        chunk: bytes,
    ) -> int:
        headers = self._headers(
            session,
            **{
                "Upload-Offset": str(offset),
                "Content-Type": "application/offset+octet-stream",
            },
        )
        response = self._send("PATCH", upload_url, session, headers, data=chunk)
        if response.status_code not in (200, 204):
            self._handle_response_error(response, session, "chunk")
        return self._read_offset(response, session)

    @staticmethod
    def _read_offset(response: requests.Response, session: UploadSession) -> int:
        raw = response.headers.get("Upload-Offset")
        try:
            return int(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise UploadError(
                f"Invalid Upload-Offset header: {raw!r}", asset_id=session.asset_id
            ) from e
