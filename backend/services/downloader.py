"""yt-dlp metadata lookup: one --dump-json call yields descriptive fields plus direct stream URLs."""

from __future__ import annotations

import json
import logging
from typing import Any

from models import VideoMetadata
from services.errors import MetadataUnavailableError, ProcessError
from services.process_runner import ProcessRunner

logger = logging.getLogger(__name__)

# H.264 video (stream-copies into mp4 and crops cheaply) capped at 1080p, m4a audio;
# otherwise the best pre-muxed format up to 1080p.
FORMAT_SELECTION = (
    "bestvideo[height<=1080][vcodec^=avc1]+bestaudio[ext=m4a]"
    "/bestvideo[height<=1080]+bestaudio"
    "/best[height<=1080]"
)


def build_metadata_args(url: str, format_selection: str = FORMAT_SELECTION) -> list[str]:
    return [
        "--dump-json",
        "--no-warnings",
        "--no-playlist",
        "-f",
        format_selection,
        url,
    ]


def _has_track(fmt: dict[str, Any], key: str) -> bool:
    return fmt.get(key) not in (None, "none")


def parse_metadata(stdout: str) -> VideoMetadata:
    """Turn yt-dlp --dump-json output into VideoMetadata (fetched_at is stamped by the cache)."""
    line = next((ln for ln in stdout.splitlines() if ln.strip()), "")
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MetadataUnavailableError() from exc
    if not isinstance(data, dict):
        raise MetadataUnavailableError()

    requested: list[dict[str, Any]] = data.get("requested_formats") or []
    if requested:
        video = next((f for f in requested if _has_track(f, "vcodec")), requested[0])
        audio = next(
            (f for f in requested if f is not video and _has_track(f, "acodec")),
            video,
        )
    else:
        video = audio = data

    video_url = video.get("url")
    audio_url = audio.get("url") or video_url
    if not video_url:
        logger.error("[downloader] yt-dlp output has no stream URL for %r", data.get("id"))
        raise MetadataUnavailableError()

    try:
        duration = int(round(float(data.get("duration") or 0)))
    except (TypeError, ValueError):
        duration = 0

    headers = video.get("http_headers") or data.get("http_headers") or {}
    return VideoMetadata(
        title=data.get("title") or data.get("id") or "Untitled",
        thumbnail=data.get("thumbnail"),
        duration=duration,
        channel=data.get("uploader") or data.get("channel"),
        video_locator=video_url,
        audio_locator=audio_url,
        http_headers={str(k): str(v) for k, v in headers.items()},
    )


class YtDlpClient:
    def __init__(self, runner: ProcessRunner, *, binary: str = "yt-dlp") -> None:
        self._runner = runner
        self._binary = binary

    async def fetch_metadata(self, url: str) -> VideoMetadata:
        """
        Resolve metadata and stream URLs for `url`.

        :raises MetadataUnavailableError: yt-dlp failed or printed something unparseable
        """
        logger.info("[downloader] Resolving metadata for %s", url)
        try:
            stdout = await self._runner.run(self._binary, build_metadata_args(url))
        except ProcessError as exc:
            raise MetadataUnavailableError() from exc
        metadata = parse_metadata(stdout)
        logger.info(
            "[downloader] Resolved %r (%ss, separate audio=%s)",
            metadata.title,
            metadata.duration,
            metadata.has_separate_audio,
        )
        return metadata
