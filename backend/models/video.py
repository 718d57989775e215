from dataclasses import dataclass, field


@dataclass(frozen=True)
class VideoMetadata:
    title: str
    thumbnail: str | None
    duration: int                      # whole seconds
    channel: str | None
    video_locator: str                 # direct CDN URL, time-limited
    audio_locator: str                 # same as video_locator when pre-muxed
    http_headers: dict[str, str] = field(default_factory=dict)
    fetched_at: float = 0.0            # clock reading at lookup time

    @property
    def has_separate_audio(self) -> bool:
        return self.audio_locator != self.video_locator


@dataclass(frozen=True)
class VideoInfo:
    """Descriptive fields safe to hand back to clients."""

    title: str
    thumbnail: str | None
    duration: int
    channel: str | None

    @classmethod
    def from_metadata(cls, metadata: VideoMetadata) -> "VideoInfo":
        return cls(
            title=metadata.title,
            thumbnail=metadata.thumbnail,
            duration=metadata.duration,
            channel=metadata.channel,
        )
