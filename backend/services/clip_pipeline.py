"""
Clip preparation: resolve metadata -> extract a segment -> crop to an aspect ratio.

Each step is invoked independently over HTTP, so every step re-validates its
inputs. Per-URL progress is tracked as a ClipSession in the session store.
"""

from __future__ import annotations

import asyncio
import logging

from models import (
    WORKING_RATIO,
    ClipSession,
    ClipStatus,
    CropSpec,
    FinalClip,
    IntermediateClip,
    SegmentRequest,
    VideoInfo,
)
from services import timestamps
from services.clip_storage import ClipStorage
from services.downloader import YtDlpClient
from services.errors import (
    InvalidTimeRangeError,
    InvalidURLError,
    OutputMissingError,
    SessionExpiredError,
    StreamLocatorExpiredError,
    ToolExitError,
)
from services.metadata_cache import MetadataCache
from services.store import sessions as default_sessions
from services.transcoder import FfmpegTranscoder, is_locator_expired
from services.url_validator import is_allowed

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLIP_SECONDS = 600
DEFAULT_CLIP_MAX_AGE_SECONDS = 3600


class ClipPipeline:
    def __init__(
        self,
        *,
        cache: MetadataCache,
        downloader: YtDlpClient,
        transcoder: FfmpegTranscoder,
        storage: ClipStorage,
        sessions: dict[str, ClipSession] | None = None,
        max_clip_seconds: int = DEFAULT_MAX_CLIP_SECONDS,
        clip_max_age_seconds: float = DEFAULT_CLIP_MAX_AGE_SECONDS,
    ) -> None:
        self._cache = cache
        self._downloader = downloader
        self._transcoder = transcoder
        self._storage = storage
        self._sessions = sessions if sessions is not None else default_sessions
        self._max_clip_seconds = max_clip_seconds
        self._clip_max_age = clip_max_age_seconds

    @property
    def storage(self) -> ClipStorage:
        return self._storage

    @staticmethod
    def _require_allowed(url: str) -> str:
        url = (url or "").strip()
        if not is_allowed(url):
            logger.warning("[clip_pipeline] Rejected URL %r", url)
            raise InvalidURLError()
        return url

    def _session(self, url: str) -> ClipSession:
        session = self._sessions.get(url)
        if session is None:
            session = ClipSession(url=url)
            self._sessions[url] = session
        return session

    def _expire(self, url: str) -> None:
        self._cache.invalidate(url)
        session = self._sessions.get(url)
        if session is not None:
            session.status = ClipStatus.NO_METADATA

    def _owner_of(self, filename: str) -> ClipSession | None:
        for session in self._sessions.values():
            if filename in session.segment_filenames:
                return session
        return None

    def session_status(self, url: str) -> ClipStatus:
        """Current state for `url`; resolved-but-stale metadata reads as NO_METADATA."""
        session = self._sessions.get(url)
        if session is None:
            return ClipStatus.NO_METADATA
        if session.status is ClipStatus.METADATA_RESOLVED and self._cache.get(url) is None:
            return ClipStatus.NO_METADATA
        return session.status

    async def resolve_metadata(self, url: str) -> VideoInfo:
        url = self._require_allowed(url)
        metadata = self._cache.get(url)
        if metadata is None:
            fetched = await self._downloader.fetch_metadata(url)
            metadata = self._cache.put(url, fetched)
        else:
            logger.info("[clip_pipeline] Metadata cache hit for %s", url)

        session = self._session(url)
        if session.status is ClipStatus.NO_METADATA:
            session.status = ClipStatus.METADATA_RESOLVED
        return VideoInfo.from_metadata(metadata)

    def _segment_request(self, url: str, start_text: str, end_text: str, duration: int) -> SegmentRequest:
        request = SegmentRequest(
            url=url,
            start_seconds=timestamps.parse(start_text),
            end_seconds=timestamps.parse(end_text),
        )
        if request.duration <= 0:
            raise InvalidTimeRangeError("End time must be after start time.")
        if duration and request.end_seconds > duration:
            raise InvalidTimeRangeError(
                f"End time is beyond the end of the video ({timestamps.format(duration)})."
            )
        if request.duration > self._max_clip_seconds:
            raise InvalidTimeRangeError(f"Clips are limited to {self._max_clip_seconds} seconds.")
        return request

    async def extract_segment(self, url: str, start_text: str, end_text: str) -> IntermediateClip:
        url = self._require_allowed(url)
        metadata = self._cache.get(url)
        if metadata is None:
            self._expire(url)
            raise SessionExpiredError()

        request = self._segment_request(url, start_text, end_text, metadata.duration)
        output = self._storage.new_path("segment")
        try:
            await self._transcoder.extract(metadata, request.start_seconds, request.duration, output)
        except ToolExitError as exc:
            self._storage.delete(output)
            if is_locator_expired(exc):
                logger.warning("[clip_pipeline] Stream locator for %s rejected by CDN; dropping cache entry", url)
                self._expire(url)
                raise StreamLocatorExpiredError() from exc
            raise
        except BaseException:
            self._storage.delete(output)
            raise

        if not output.is_file():
            raise OutputMissingError("Extraction silently failed: no output file was produced.")

        session = self._session(url)
        session.status = ClipStatus.SEGMENT_EXTRACTED
        session.segment_filenames.append(output.name)
        logger.info(
            "[clip_pipeline] Segment ready: %s (%s-%s)",
            output.name,
            timestamps.format(request.start_seconds),
            timestamps.format(request.end_seconds),
        )
        return IntermediateClip(
            filename=output.name,
            path=output,
            source_url=url,
            start_seconds=request.start_seconds,
            duration=request.duration,
        )

    async def crop_and_finalize(self, filename: str, crop: CropSpec) -> FinalClip:
        """
        Produce the delivered clip from an intermediate segment.

        The intermediate file is kept so the caller can re-crop; the returned
        FinalClip must be handed to release() once delivered.
        """
        source = self._storage.resolve(filename)
        output = self._storage.new_path("final")
        stream_copy = crop.aspect_ratio is WORKING_RATIO
        try:
            if stream_copy:
                await self._transcoder.stream_copy(source, output)
            else:
                await self._transcoder.crop(source, output, crop.aspect_ratio, crop.position)
        except BaseException:
            self._storage.delete(output)
            raise

        if not output.is_file():
            raise OutputMissingError()

        session = self._owner_of(filename)
        if session is not None:
            session.status = ClipStatus.FINALIZED
            session.final_count += 1

        await self.sweep()
        return FinalClip(
            filename=output.name,
            path=output,
            aspect_ratio=crop.aspect_ratio,
            stream_copied=stream_copy,
        )

    def release(self, clip: FinalClip) -> None:
        self._storage.delete(clip.path)

    async def sweep(self, *, now: float | None = None) -> list[str]:
        """Remove stale clip files and forget the swept segments in every session."""
        removed = await asyncio.to_thread(self._storage.sweep, self._clip_max_age, now=now)
        if removed:
            gone = set(removed)
            for session in self._sessions.values():
                session.segment_filenames[:] = [
                    name for name in session.segment_filenames if name not in gone
                ]
        return removed
