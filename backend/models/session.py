from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ClipStatus(str, Enum):
    NO_METADATA = "no_metadata"
    METADATA_RESOLVED = "metadata_resolved"
    SEGMENT_EXTRACTED = "segment_extracted"
    FINALIZED = "finalized"


@dataclass
class ClipSession:
    url: str                               # validated source URL
    status: ClipStatus = ClipStatus.NO_METADATA
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    segment_filenames: list[str] = field(default_factory=list)
    final_count: int = 0
