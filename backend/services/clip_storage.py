"""Managed working directory for intermediate and final clip files."""

from __future__ import annotations

import logging
import re
import secrets
import time
from pathlib import Path

from services.errors import SourceFileMissingError

logger = logging.getLogger(__name__)

# Generated names only: prefix, nanosecond timestamp, random suffix, extension.
_FILENAME_RE = re.compile(r"^[a-z]+_\d+_[0-9a-f]{6}\.[a-z0-9]{2,4}$")


class ClipStorage:
    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory).resolve()

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    def new_path(self, prefix: str, extension: str = "mp4") -> Path:
        """Fresh, collision-resistant path inside the managed directory (file is not created)."""
        self.ensure()
        filename = f"{prefix}_{time.time_ns()}_{secrets.token_hex(3)}.{extension}"
        return self._directory / filename

    def resolve(self, filename: str) -> Path:
        """
        Map a client-supplied filename to an existing file in the managed directory.

        Anything that is not a bare generated name (path separators, "..",
        unexpected characters) is rejected the same way as a missing file.
        """
        if not filename or not _FILENAME_RE.match(filename):
            raise SourceFileMissingError()
        path = (self._directory / filename).resolve()
        if path.parent != self._directory or not path.is_file():
            raise SourceFileMissingError()
        return path

    def delete(self, path: Path) -> bool:
        """Best-effort removal; failures are logged, not raised."""
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("[clip_storage] Could not delete %s: %s", path, exc)
            return False
        logger.info("[clip_storage] Cleaned up %s", path.name)
        return True

    def sweep(self, max_age_seconds: float, *, now: float | None = None) -> list[str]:
        """Delete managed files older than max_age_seconds. Returns the removed filenames."""
        if not self._directory.is_dir():
            return []
        cutoff = (now if now is not None else time.time()) - max_age_seconds
        removed: list[str] = []
        for path in self._directory.iterdir():
            if not path.is_file() or not _FILENAME_RE.match(path.name):
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
            except FileNotFoundError:
                continue
            if self.delete(path):
                removed.append(path.name)
        if removed:
            logger.info("[clip_storage] Swept %d stale clip file(s)", len(removed))
        return removed
