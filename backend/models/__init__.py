from .clip import (
    WORKING_RATIO,
    AspectRatio,
    CropBox,
    CropSpec,
    FinalClip,
    IntermediateClip,
    SegmentRequest,
)
from .session import ClipSession, ClipStatus
from .video import VideoInfo, VideoMetadata

__all__ = [
    "AspectRatio",
    "WORKING_RATIO",
    "CropBox",
    "CropSpec",
    "FinalClip",
    "IntermediateClip",
    "SegmentRequest",
    "ClipSession",
    "ClipStatus",
    "VideoInfo",
    "VideoMetadata",
]
