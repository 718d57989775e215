"""Clip pipeline: ordering, caching, extraction bounds and crop branching against a fake tool runner."""

from __future__ import annotations

import pytest

from models import AspectRatio, ClipStatus, CropSpec
from services.clip_pipeline import ClipPipeline
from services.clip_storage import ClipStorage
from services.downloader import YtDlpClient
from services.errors import (
    InvalidTimeRangeError,
    InvalidURLError,
    OutputMissingError,
    SessionExpiredError,
    SourceFileMissingError,
    StreamLocatorExpiredError,
    ToolExitError,
)
from services.metadata_cache import MetadataCache
from services.store import sessions
from services.transcoder import FfmpegTranscoder

from conftest import WATCH_URL, FakeClock, FakeRunner


def _value_after(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


@pytest.mark.asyncio
async def test_end_to_end_segment_then_square_crop(
    pipeline: ClipPipeline, fake_runner: FakeRunner, storage: ClipStorage
) -> None:
    info = await pipeline.resolve_metadata(WATCH_URL)
    assert info.duration == 120
    assert info.title == "Test Video"

    clip = await pipeline.extract_segment(WATCH_URL, "00:00:10", "00:00:25")
    assert clip.start_seconds == 10
    assert clip.duration == 15
    assert clip.path.is_file()

    (extract_args,) = fake_runner.calls_to("ffmpeg")
    assert _value_after(extract_args, "-ss") == "10"
    assert _value_after(extract_args, "-t") == "15"
    assert _value_after(extract_args, "-c:v") == "copy"
    assert pipeline.session_status(WATCH_URL) is ClipStatus.SEGMENT_EXTRACTED

    final = await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.SQUARE, 50))
    assert final.stream_copied is False
    assert final.path.is_file()
    crop_args = fake_runner.calls_to("ffmpeg")[-1]
    assert _value_after(crop_args, "-c:v") == "libx264"
    assert _value_after(crop_args, "-vf") == "crop=1080:1080:420:0"
    assert pipeline.session_status(WATCH_URL) is ClipStatus.FINALIZED

    pipeline.release(final)
    assert not final.path.exists()
    assert clip.path.exists()


@pytest.mark.asyncio
async def test_landscape_target_is_stream_copy(pipeline: ClipPipeline, fake_runner: FakeRunner) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clip = await pipeline.extract_segment(WATCH_URL, "0:05", "0:20")

    final = await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.LANDSCAPE, 10))
    assert final.stream_copied is True
    copy_args = fake_runner.calls_to("ffmpeg")[-1]
    assert _value_after(copy_args, "-c") == "copy"
    assert "libx264" not in copy_args


@pytest.mark.asyncio
async def test_recrop_reuses_intermediate(pipeline: ClipPipeline, fake_runner: FakeRunner) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clip = await pipeline.extract_segment(WATCH_URL, "10", "20")

    first = await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.PORTRAIT, 0))
    second = await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.FEED, 100))
    assert first.filename != second.filename
    assert len(fake_runner.calls_to("ffmpeg")) == 3
    assert sessions[WATCH_URL].final_count == 2


@pytest.mark.asyncio
async def test_extract_before_resolve_is_session_expired(pipeline: ClipPipeline, fake_runner: FakeRunner) -> None:
    with pytest.raises(SessionExpiredError):
        await pipeline.extract_segment(WATCH_URL, "00:00:10", "00:00:25")
    assert fake_runner.calls == []

    await pipeline.resolve_metadata(WATCH_URL)
    clip = await pipeline.extract_segment(WATCH_URL, "00:00:10", "00:00:25")
    assert clip.duration == 15


@pytest.mark.asyncio
async def test_metadata_cached_within_window(pipeline: ClipPipeline, fake_runner: FakeRunner, clock: FakeClock) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clock.advance(60)
    await pipeline.resolve_metadata(WATCH_URL)
    assert len(fake_runner.calls_to("yt-dlp")) == 1

    clock.advance(1800)
    await pipeline.resolve_metadata(WATCH_URL)
    assert len(fake_runner.calls_to("yt-dlp")) == 2


@pytest.mark.asyncio
async def test_stale_metadata_falls_back_to_no_metadata(pipeline: ClipPipeline, clock: FakeClock) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    assert pipeline.session_status(WATCH_URL) is ClipStatus.METADATA_RESOLVED

    clock.advance(1801)
    assert pipeline.session_status(WATCH_URL) is ClipStatus.NO_METADATA
    with pytest.raises(SessionExpiredError):
        await pipeline.extract_segment(WATCH_URL, "1", "5")
    assert pipeline.session_status(WATCH_URL) is ClipStatus.NO_METADATA


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["ftp://evil.example/x", "https://youtube.com.evil.example/watch?v=1", "nonsense"])
async def test_disallowed_urls_never_reach_a_subprocess(
    pipeline: ClipPipeline, fake_runner: FakeRunner, url: str
) -> None:
    with pytest.raises(InvalidURLError):
        await pipeline.resolve_metadata(url)
    with pytest.raises(InvalidURLError):
        await pipeline.extract_segment(url, "00:00:00", "00:00:10")
    assert fake_runner.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("start", "end"),
    [
        ("00:00:25", "00:00:10"),   # reversed
        ("00:00:10", "00:00:10"),   # empty
        ("garbage", "garbage"),     # both parse to 0
        ("00:01:00", "00:02:01"),   # past the 120s duration
    ],
)
async def test_invalid_time_ranges(pipeline: ClipPipeline, fake_runner: FakeRunner, start: str, end: str) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    with pytest.raises(InvalidTimeRangeError):
        await pipeline.extract_segment(WATCH_URL, start, end)
    assert fake_runner.calls_to("ffmpeg") == []


@pytest.mark.asyncio
async def test_clip_length_limit(fake_runner: FakeRunner, storage: ClipStorage, clock: FakeClock) -> None:
    pipeline = ClipPipeline(
        cache=MetadataCache(clock=clock),
        downloader=YtDlpClient(fake_runner),
        transcoder=FfmpegTranscoder(fake_runner),
        storage=storage,
        max_clip_seconds=30,
    )
    await pipeline.resolve_metadata(WATCH_URL)
    with pytest.raises(InvalidTimeRangeError, match="30 seconds"):
        await pipeline.extract_segment(WATCH_URL, "0", "31")


@pytest.mark.asyncio
async def test_extraction_without_output_file(pipeline: ClipPipeline, fake_runner: FakeRunner) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    fake_runner.write_outputs = False
    with pytest.raises(OutputMissingError, match="silently failed"):
        await pipeline.extract_segment(WATCH_URL, "0", "10")


@pytest.mark.asyncio
async def test_expired_stream_locator_drops_cache_entry(
    pipeline: ClipPipeline, fake_runner: FakeRunner, storage: ClipStorage
) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    fake_runner.errors["ffmpeg"] = ToolExitError(
        "ffmpeg exited with code 1",
        tool="ffmpeg",
        returncode=1,
        stderr="[https @ 0x1] HTTP error 403 Forbidden",
    )
    with pytest.raises(StreamLocatorExpiredError):
        await pipeline.extract_segment(WATCH_URL, "0", "10")
    assert pipeline.session_status(WATCH_URL) is ClipStatus.NO_METADATA
    assert list(storage.directory.iterdir()) == []

    with pytest.raises(SessionExpiredError):
        await pipeline.extract_segment(WATCH_URL, "0", "10")


@pytest.mark.asyncio
async def test_transcoder_failure_removes_partial_output(
    pipeline: ClipPipeline, fake_runner: FakeRunner, storage: ClipStorage
) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clip = await pipeline.extract_segment(WATCH_URL, "0", "10")

    fake_runner.errors["ffmpeg"] = ToolExitError("ffmpeg exited with code 1", tool="ffmpeg", stderr="bad filter")
    with pytest.raises(ToolExitError):
        await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.PORTRAIT, 50))
    assert [p.name for p in storage.directory.iterdir()] == [clip.filename]


@pytest.mark.asyncio
async def test_crop_unknown_file(pipeline: ClipPipeline, fake_runner: FakeRunner) -> None:
    with pytest.raises(SourceFileMissingError):
        await pipeline.crop_and_finalize("segment_1_abcdef.mp4", CropSpec(AspectRatio.SQUARE))
    with pytest.raises(SourceFileMissingError):
        await pipeline.crop_and_finalize("../../etc/passwd", CropSpec(AspectRatio.SQUARE))
    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_sweep_forgets_swept_segments(pipeline: ClipPipeline, storage: ClipStorage) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clips = [await pipeline.extract_segment(WATCH_URL, "0", str(n)) for n in range(5, 30, 5)]
    assert len(sessions[WATCH_URL].segment_filenames) == 5

    removed = await pipeline.sweep(now=10**12)
    assert sorted(removed) == sorted(clip.filename for clip in clips)
    assert sessions[WATCH_URL].segment_filenames == []
    assert list(storage.directory.iterdir()) == []

    with pytest.raises(SourceFileMissingError):
        await pipeline.crop_and_finalize(clips[0].filename, CropSpec(AspectRatio.SQUARE))


@pytest.mark.asyncio
async def test_finalize_sweep_keeps_fresh_segments(pipeline: ClipPipeline) -> None:
    await pipeline.resolve_metadata(WATCH_URL)
    clip = await pipeline.extract_segment(WATCH_URL, "0", "10")

    await pipeline.crop_and_finalize(clip.filename, CropSpec(AspectRatio.PORTRAIT))
    assert sessions[WATCH_URL].segment_filenames == [clip.filename]
    assert sessions[WATCH_URL].final_count == 1
