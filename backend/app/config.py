"""Environment-derived settings. backend/.env is loaded first when present."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

BACKEND_ROOT = Path(__file__).resolve().parents[1]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


@dataclass
class Settings:
    data_dir: Path = field(
        default_factory=lambda: Path(_env_str("REELCUTTER_DATA_DIR", str(BACKEND_ROOT / "downloads")))
    )
    ytdlp_binary: str = field(default_factory=lambda: _env_str("REELCUTTER_YTDLP_BIN", "yt-dlp"))
    ffmpeg_binary: str = field(default_factory=lambda: _env_str("REELCUTTER_FFMPEG_BIN", "ffmpeg"))
    metadata_ttl_seconds: int = field(default_factory=lambda: _env_int("REELCUTTER_METADATA_TTL_SECONDS", 30 * 60))
    max_processes: int = field(default_factory=lambda: _env_int("REELCUTTER_MAX_PROCESSES", 2))
    process_timeout_seconds: int = field(
        default_factory=lambda: _env_int("REELCUTTER_PROCESS_TIMEOUT_SECONDS", 600)
    )
    crop_preset: str = field(default_factory=lambda: _env_str("REELCUTTER_CROP_PRESET", "ultrafast"))
    crop_crf: int = field(default_factory=lambda: _env_int("REELCUTTER_CROP_CRF", 23))
    clip_max_age_seconds: int = field(default_factory=lambda: _env_int("REELCUTTER_CLIP_MAX_AGE_SECONDS", 3600))
    max_clip_seconds: int = field(default_factory=lambda: _env_int("REELCUTTER_MAX_CLIP_SECONDS", 600))
    cors_origins: list[str] = field(
        default_factory=lambda: [o.strip() for o in _env_str("CORS_ORIGINS", "*").split(",") if o.strip()]
    )
    port: int = field(default_factory=lambda: _env_int("PORT", 8000))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(BACKEND_ROOT / ".env")
    return Settings()
