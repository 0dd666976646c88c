"""Thin HTTP adapter over the migration pipeline."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .migration.results import DownloadResult, ProcessResult, UploadResult
from .pipeline import Pipeline
from .registry.models import Activity, video_to_dict
from .utils.exceptions import (
    ActivityNotFoundError,
    AuthenticationError,
    MigratorError,
    UpstreamUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


class RecordingReadyRequest(BaseModel):
    activity_id: str = Field(alias="activityId", min_length=1)


class ApiKeyRejected(Exception):
    pass


def envelope(message: str, data: Any = None, success: bool = True) -> Dict[str, Any]:
    return {"success": success, "message": message, "data": data}


def activity_summary(activity: Activity) -> Dict[str, Any]:
    return {
        "id": activity.id,
        "title": activity.title,
        "collectionRef": activity.collection_ref,
        "createdAt": activity.created_at.isoformat() if activity.created_at else None,
        "uploadStatus": activity.migration.upload_status.value,
        "attemptCount": activity.migration.attempt_count,
    }


def download_payload(result: DownloadResult) -> Dict[str, Any]:
    return {
        "activityId": result.activity_id,
        "activityTitle": result.activity_title,
        "videoCount": result.video_count,
        "videos": [video_to_dict(v) for v in result.videos],
        "totalSizeMB": round(result.total_size_mb, 2),
        "alreadyDownloaded": result.already_downloaded,
        "durationSeconds": round(result.duration_seconds, 2),
    }


def upload_payload(result: UploadResult) -> Dict[str, Any]:
    return {
        "activityId": result.activity_id,
        "activityTitle": result.activity_title,
        "status": result.status.value,
        "totalVideos": len(result.outcomes),
        "uploadedCount": len(result.uploaded),
        "failedCount": len(result.failed),
        "uploadedVideos": [video_to_dict(o.video) for o in result.uploaded],
        "failedVideos": [
            dict(video_to_dict(o.video), error=o.error) for o in result.failed
        ],
        "alreadyUploaded": result.already_uploaded,
        "durationSeconds": round(result.duration_seconds, 2),
    }


def process_payload(result: ProcessResult) -> Dict[str, Any]:
    data: Dict[str, Any] = {"remainingUploads": result.remaining}
    if result.upload is not None:
        data.update(upload_payload(result.upload))
    return data


def _status_for(error: MigratorError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, ActivityNotFoundError):
        return 404
    if isinstance(error, (UpstreamUnavailableError, AuthenticationError)):
        return 502
    return 500


def create_app(pipeline: Pipeline, api_key: str) -> FastAPI:
    app = FastAPI(title="Recording Migrator", version=__version__)

    def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
        if not x_api_key or x_api_key != api_key:
            raise ApiKeyRejected()

    @app.exception_handler(ApiKeyRejected)
    async def _api_key_rejected(request: Request, exc: ApiKeyRejected) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=envelope(
                "Unauthorized: Invalid or missing API Key", success=False
            ),
        )

    @app.exception_handler(MigratorError)
    async def _migrator_error(request: Request, exc: MigratorError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code, content=envelope(exc.message, success=False)
        )

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "OK",
            "message": "Recording migrator is running",
            "uptime": round(time.monotonic() - _STARTED_AT, 2),
        }

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return {
            "name": "Recording Migrator",
            "version": __version__,
            "endpoints": {
                "health": "GET /health",
                "pendingUploads": "GET /api/activities/pending-uploads",
                "downloadActivity": "POST /api/activities/:activityId/download",
                "uploadActivity": "POST /api/upload/activity/:activityId",
                "processNext": "POST /api/upload/process-next",
                "recordingReady": "POST /api/webhooks/recording-ready",
            },
        }

    router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])

    @router.get("/activities/pending-uploads")
    async def pending_uploads() -> Dict[str, Any]:
        activities = await asyncio.to_thread(pipeline.discovery.list_eligible)
        return envelope(
            "Pending upload activities fetched successfully",
            {
                "count": len(activities),
                "activities": [activity_summary(a) for a in activities],
            },
        )

    @router.post("/activities/{activity_id}/download")
    async def download_activity(activity_id: str) -> Dict[str, Any]:
        result = await pipeline.downloader.download(activity_id)
        message = (
            "Videos already downloaded"
            if result.already_downloaded
            else "All videos downloaded and paths saved"
        )
        return envelope(message, download_payload(result))

    @router.post("/upload/activity/{activity_id}")
    async def upload_activity(activity_id: str) -> Dict[str, Any]:
        result = await pipeline.uploader.upload(activity_id)
        if result.already_uploaded:
            message = "All videos already uploaded"
        elif result.is_partial:
            message = (
                f"{len(result.uploaded)} videos uploaded, "
                f"{len(result.failed)} failed"
            )
        else:
            message = "All videos uploaded successfully"
        return envelope(message, upload_payload(result))

    @router.post("/upload/process-next")
    async def process_next() -> Dict[str, Any]:
        result = await pipeline.scheduler.process_next()
        if not result.processed:
            return envelope("No pending uploads", {"remainingUploads": 0})
        return envelope("Upload completed", process_payload(result))

    @router.post("/webhooks/recording-ready")
    async def recording_ready(
        body: RecordingReadyRequest, background_tasks: BackgroundTasks
    ) -> Dict[str, Any]:
        activity = await asyncio.to_thread(
            pipeline.store.get_activity, body.activity_id
        )
        if not activity.migration.recording_available:
            return envelope(
                "Recording not available yet",
                {"activityId": activity.id, "processed": False},
            )

        background_tasks.add_task(
            pipeline.scheduler.handle_notification, activity.id
        )
        return envelope(
            "Recording processing started",
            {
                "activityId": activity.id,
                "activityTitle": activity.title,
                "processing": True,
            },
        )

    app.include_router(router)
    return app
