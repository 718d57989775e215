"""In-memory, time-boxed cache of resolved video metadata keyed by source URL."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Callable

from models import VideoMetadata

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 30 * 60  # stream locators typically expire within hours; stay well inside


class MetadataCache:
    """
    Map of URL -> VideoMetadata with read-time expiry.

    Entries are replaced wholesale, never mutated, so readers never see a
    half-written entry. There is no size bound and no background eviction:
    an expired entry simply reads as a miss until it is overwritten.
    """

    def __init__(
        self,
        *,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._freshness = freshness_seconds
        self._clock = clock
        self._entries: dict[str, VideoMetadata] = {}
        self._lock = threading.Lock()

    @property
    def freshness_seconds(self) -> float:
        return self._freshness

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, metadata: VideoMetadata) -> bool:
        return self._clock() - metadata.fetched_at < self._freshness

    def get(self, url: str) -> VideoMetadata | None:
        with self._lock:
            entry = self._entries.get(url)
        if entry is None:
            return None
        if not self.is_fresh(entry):
            logger.info("[metadata_cache] Stale entry for %s (age %.0fs)", url, self._clock() - entry.fetched_at)
            return None
        return entry

    def put(self, url: str, metadata: VideoMetadata) -> VideoMetadata:
        """Store metadata stamped with the current clock reading and return the stored entry."""
        entry = dataclasses.replace(metadata, fetched_at=self._clock())
        with self._lock:
            self._entries[url] = entry
        return entry

    def invalidate(self, url: str) -> None:
        with self._lock:
            self._entries.pop(url, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
