"""Clip REST API: video info, segment fetch, crop/download, and intermediate previews."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import FileResponse
from starlette.types import Receive, Scope, Send

from app.config import get_settings
from models import AspectRatio, CropSpec
from services.clip_pipeline import ClipPipeline
from services.clip_storage import ClipStorage
from services.downloader import YtDlpClient
from services.errors import InvalidURLError
from services.metadata_cache import MetadataCache
from services.process_runner import ProcessRunner
from services.transcoder import FfmpegTranscoder

router = APIRouter(tags=["clips"])
logger = logging.getLogger(__name__)

VIDEO_MEDIA_TYPE = "video/mp4"


class VideoInfoResponse(BaseModel):
    title: str
    thumbnail: str | None = None
    duration: int
    channel: str | None = None


class FetchSegmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., min_length=1)
    start_time: str = Field(..., alias="startTime", min_length=1, max_length=16)
    end_time: str = Field(..., alias="endTime", min_length=1, max_length=16)


class FetchSegmentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    video_url: str = Field(..., alias="videoUrl")
    filename: str


class ProcessCropRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., min_length=1, max_length=128)
    aspect_ratio: AspectRatio = Field(..., alias="aspectRatio")
    position: float = Field(50.0, ge=0, le=100)


class TransientFileResponse(FileResponse):
    """FileResponse that runs `on_done` once sending ends, whether or not it succeeded."""

    def __init__(self, *args, on_done: Callable[[], None], **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._on_done = on_done

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_done()


@lru_cache(maxsize=1)
def get_pipeline() -> ClipPipeline:
    settings = get_settings()
    runner = ProcessRunner(
        max_concurrent=settings.max_processes,
        timeout=settings.process_timeout_seconds,
    )
    storage = ClipStorage(settings.data_dir)
    storage.ensure()
    return ClipPipeline(
        cache=MetadataCache(freshness_seconds=settings.metadata_ttl_seconds),
        downloader=YtDlpClient(runner, binary=settings.ytdlp_binary),
        transcoder=FfmpegTranscoder(
            runner,
            binary=settings.ffmpeg_binary,
            preset=settings.crop_preset,
            crf=settings.crop_crf,
        ),
        storage=storage,
        max_clip_seconds=settings.max_clip_seconds,
        clip_max_age_seconds=settings.clip_max_age_seconds,
    )


@router.get("/video-info", response_model=VideoInfoResponse)
async def video_info(
    url: str | None = Query(None, description="YouTube watch or share URL"),
    pipeline: ClipPipeline = Depends(get_pipeline),
) -> VideoInfoResponse:
    """Title, thumbnail, duration and channel for a YouTube URL (cached for the freshness window)."""
    if not url:
        raise InvalidURLError("URL is required.")
    logger.info("[clips] GET /api/video-info url=%s", url)
    info = await pipeline.resolve_metadata(url)
    return VideoInfoResponse(
        title=info.title,
        thumbnail=info.thumbnail,
        duration=info.duration,
        channel=info.channel,
    )


@router.post("/fetch-segment", response_model=FetchSegmentResponse, response_model_by_alias=True)
async def fetch_segment(
    body: FetchSegmentRequest,
    pipeline: ClipPipeline = Depends(get_pipeline),
) -> FetchSegmentResponse:
    """Extract [startTime, endTime) into a previewable intermediate clip."""
    logger.info("[clips] POST /api/fetch-segment url=%s %s-%s", body.url, body.start_time, body.end_time)
    clip = await pipeline.extract_segment(body.url, body.start_time, body.end_time)
    return FetchSegmentResponse(
        success=True,
        video_url=f"/api/clips/{clip.filename}",
        filename=clip.filename,
    )


@router.post("/process-crop", response_class=FileResponse)
async def process_crop(
    body: ProcessCropRequest,
    pipeline: ClipPipeline = Depends(get_pipeline),
) -> TransientFileResponse:
    """Crop an intermediate clip to the requested ratio and return it as a download."""
    logger.info(
        "[clips] POST /api/process-crop filename=%s ratio=%s position=%.1f",
        body.filename,
        body.aspect_ratio.value,
        body.position,
    )
    final = await pipeline.crop_and_finalize(
        body.filename,
        CropSpec(aspect_ratio=body.aspect_ratio, position=body.position),
    )
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    ratio_label = body.aspect_ratio.value.replace(":", "x")
    return TransientFileResponse(
        final.path,
        media_type=VIDEO_MEDIA_TYPE,
        filename=f"reelcutter_{ratio_label}_{stamp}.mp4",
        on_done=lambda: pipeline.release(final),
    )


@router.get("/clips/{filename}", response_class=FileResponse)
async def preview_clip(
    filename: str,
    pipeline: ClipPipeline = Depends(get_pipeline),
) -> FileResponse:
    """Serve an intermediate segment for in-browser preview."""
    path = pipeline.storage.resolve(filename)
    return FileResponse(path, media_type=VIDEO_MEDIA_TYPE)
