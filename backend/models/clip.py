from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class AspectRatio(str, Enum):
    PORTRAIT = "9:16"
    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    FEED = "4:5"

    @property
    def width_units(self) -> int:
        return int(self.value.split(":")[0])

    @property
    def height_units(self) -> int:
        return int(self.value.split(":")[1])


WORKING_RATIO = AspectRatio.LANDSCAPE     # extracted segments stay in source ratio


@dataclass(frozen=True)
class SegmentRequest:
    url: str
    start_seconds: int
    end_seconds: int

    @property
    def duration(self) -> int:
        return self.end_seconds - self.start_seconds


@dataclass(frozen=True)
class CropSpec:
    aspect_ratio: AspectRatio
    position: float = 50.0     # 0 = left edge, 100 = right edge


@dataclass(frozen=True)
class CropBox:
    width: int
    height: int
    x: int
    y: int

    def as_filter(self) -> str:
        return f"crop={self.width}:{self.height}:{self.x}:{self.y}"


@dataclass(frozen=True)
class IntermediateClip:
    filename: str
    path: Path
    source_url: str
    start_seconds: int
    duration: int


@dataclass(frozen=True)
class FinalClip:
    filename: str
    path: Path
    aspect_ratio: AspectRatio
    stream_copied: bool
