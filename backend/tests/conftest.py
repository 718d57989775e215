from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from services.clip_pipeline import ClipPipeline
from services.clip_storage import ClipStorage
from services.downloader import YtDlpClient
from services.metadata_cache import MetadataCache
from services.store import sessions
from services.transcoder import FfmpegTranscoder

WATCH_URL = "https://www.youtube.com/watch?v=abc123"

SAMPLE_INFO: dict[str, Any] = {
    "id": "abc123",
    "title": "Test Video",
    "thumbnail": "https://i.ytimg.com/vi/abc123/hqdefault.jpg",
    "duration": 120,
    "uploader": "Test Channel",
    "requested_formats": [
        {
            "format_id": "137",
            "vcodec": "avc1.640028",
            "acodec": "none",
            "url": "https://rr1.googlevideo.com/videoplayback?itag=137",
            "http_headers": {"User-Agent": "Mozilla/5.0 (test)", "Accept": "*/*"},
        },
        {
            "format_id": "140",
            "vcodec": "none",
            "acodec": "mp4a.40.2",
            "url": "https://rr1.googlevideo.com/videoplayback?itag=140",
            "http_headers": {"User-Agent": "Mozilla/5.0 (test)", "Accept": "*/*"},
        },
    ],
}


class FakeRunner:
    """Stands in for ProcessRunner: records argv, answers yt-dlp with JSON, 'writes' ffmpeg outputs."""

    def __init__(self, info: dict[str, Any] | None = None) -> None:
        self.info = info or SAMPLE_INFO
        self.calls: list[tuple[str, list[str]]] = []
        self.errors: dict[str, Exception] = {}
        self.write_outputs = True

    def calls_to(self, tool: str) -> list[list[str]]:
        return [args for command, args in self.calls if command == tool]

    async def run(self, command: str, args: list[str], *, timeout: float | None = None) -> str:
        self.calls.append((command, list(args)))
        if command in self.errors:
            raise self.errors[command]
        if command == "yt-dlp":
            return json.dumps(self.info) + "\n"
        if self.write_outputs:
            Path(args[-1]).write_bytes(b"\x00\x00\x00\x18ftypmp42")
        return ""


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def clear_sessions() -> None:
    """Isolate tests by clearing the in-memory session store."""
    sessions.clear()
    yield
    sessions.clear()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path: Path) -> ClipStorage:
    clip_storage = ClipStorage(tmp_path / "downloads")
    clip_storage.ensure()
    return clip_storage


@pytest.fixture
def pipeline(fake_runner: FakeRunner, clock: FakeClock, storage: ClipStorage, monkeypatch) -> ClipPipeline:
    monkeypatch.setattr("services.transcoder.read_dimensions", lambda _path: (1920, 1080))
    return ClipPipeline(
        cache=MetadataCache(freshness_seconds=1800, clock=clock),
        downloader=YtDlpClient(fake_runner),
        transcoder=FfmpegTranscoder(fake_runner),
        storage=storage,
    )
