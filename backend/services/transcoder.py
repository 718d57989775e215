"""ffmpeg argument builders and crop geometry for segment extraction and aspect-ratio crops."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import av

from models import AspectRatio, CropBox, VideoMetadata
from services.errors import SourceFileMissingError, ToolExitError
from services.process_runner import ProcessRunner

logger = logging.getLogger(__name__)

AUDIO_CODEC = "aac"
AUDIO_BITRATE = "128k"
DEFAULT_PRESET = "ultrafast"   # turnaround time over file size
DEFAULT_CRF = 23

_EXPIRED_LOCATOR_MARKERS = ("403 Forbidden", "HTTP error 403", "Server returned 403", "410 Gone")

_BASE_ARGS = ["-hide_banner", "-loglevel", "error", "-y"]


def compute_crop_box(
    source_width: int,
    source_height: int,
    aspect_ratio: AspectRatio,
    position: float,
) -> CropBox:
    """
    Crop rectangle for `aspect_ratio` inside a source frame.

    Normally the full height is kept and the width is height * ratio; the
    horizontal offset is (source_width - width) * position / 100 so the caller
    chooses which slice survives. When the source is too narrow for that, the
    full width is kept and the height is cropped around the centre instead.
    """
    if source_width <= 0 or source_height <= 0:
        raise ValueError("source dimensions must be positive")
    position = min(max(float(position), 0.0), 100.0)
    num, den = aspect_ratio.width_units, aspect_ratio.height_units

    width = int(source_height * num / den)
    if width <= source_width:
        x = int((source_width - width) * position / 100)
        return CropBox(width=width, height=source_height, x=x, y=0)

    height = int(source_width * den / num)
    return CropBox(width=source_width, height=height, x=0, y=(source_height - height) // 2)


def read_dimensions(path: Path) -> tuple[int, int]:
    """(width, height) of the first video stream, read with PyAV."""
    try:
        with av.open(str(path)) as container:
            stream = container.streams.video[0]
            width, height = stream.codec_context.width, stream.codec_context.height
    except (av.error.FFmpegError, OSError, IndexError) as exc:
        logger.error("[transcoder] Could not read dimensions of %s: %s", path, exc)
        raise SourceFileMissingError("Source clip is unreadable. Please fetch the segment again.") from exc
    if not width or not height:
        raise SourceFileMissingError("Source clip has no video track.")
    return width, height


def _input_options(headers: dict[str, str]) -> list[str]:
    """Per-input HTTP options so ffmpeg fetches CDN URLs with the headers yt-dlp resolved them with."""
    args: list[str] = []
    user_agent = next((v for k, v in headers.items() if k.lower() == "user-agent"), None)
    if user_agent:
        args += ["-user_agent", user_agent]
    extra = "".join(f"{k}: {v}\r\n" for k, v in headers.items() if k.lower() != "user-agent")
    if extra:
        args += ["-headers", extra]
    return args


def build_extract_args(
    metadata: VideoMetadata,
    start_seconds: int,
    duration: int,
    output: Path,
) -> list[str]:
    """Seek/duration bounded extraction; video is stream-copied, audio normalised to AAC."""
    locators = [metadata.video_locator]
    if metadata.has_separate_audio:
        locators.append(metadata.audio_locator)

    args = list(_BASE_ARGS)
    for locator in locators:
        args += _input_options(metadata.http_headers)
        args += ["-ss", str(start_seconds), "-t", str(duration), "-i", locator]

    args += ["-map", "0:v:0"]
    args += ["-map", "1:a:0"] if metadata.has_separate_audio else ["-map", "0:a:0?"]
    args += [
        "-c:v", "copy",
        "-c:a", AUDIO_CODEC,
        "-b:a", AUDIO_BITRATE,
        "-movflags", "+faststart",
        str(output),
    ]
    return args


def build_copy_args(source: Path, output: Path) -> list[str]:
    return [*_BASE_ARGS, "-i", str(source), "-c", "copy", "-movflags", "+faststart", str(output)]


def build_crop_args(
    source: Path,
    output: Path,
    box: CropBox,
    *,
    preset: str = DEFAULT_PRESET,
    crf: int = DEFAULT_CRF,
) -> list[str]:
    return [
        *_BASE_ARGS,
        "-i", str(source),
        "-vf", box.as_filter(),
        "-c:v", "libx264",
        "-preset", preset,
        "-crf", str(crf),
        "-c:a", "copy",
        "-movflags", "+faststart",
        str(output),
    ]


def is_locator_expired(exc: ToolExitError) -> bool:
    return any(marker in exc.stderr for marker in _EXPIRED_LOCATOR_MARKERS)


class FfmpegTranscoder:
    def __init__(
        self,
        runner: ProcessRunner,
        *,
        binary: str = "ffmpeg",
        preset: str = DEFAULT_PRESET,
        crf: int = DEFAULT_CRF,
    ) -> None:
        self._runner = runner
        self._binary = binary
        self._preset = preset
        self._crf = crf

    async def extract(self, metadata: VideoMetadata, start_seconds: int, duration: int, output: Path) -> None:
        logger.info("[transcoder] Extracting %ss from %ss -> %s", duration, start_seconds, output.name)
        await self._runner.run(self._binary, build_extract_args(metadata, start_seconds, duration, output))

    async def stream_copy(self, source: Path, output: Path) -> None:
        logger.info("[transcoder] Stream copy %s -> %s", source.name, output.name)
        await self._runner.run(self._binary, build_copy_args(source, output))

    async def crop(self, source: Path, output: Path, aspect_ratio: AspectRatio, position: float) -> CropBox:
        width, height = await asyncio.to_thread(read_dimensions, source)
        box = compute_crop_box(width, height, aspect_ratio, position)
        logger.info(
            "[transcoder] Crop %s (%dx%d) to %s at %.0f%%: %s",
            source.name,
            width,
            height,
            aspect_ratio.value,
            position,
            box.as_filter(),
        )
        await self._runner.run(
            self._binary,
            build_crop_args(source, output, box, preset=self._preset, crf=self._crf),
        )
        return box
