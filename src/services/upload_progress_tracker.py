"""
Upload Progress Tracker.
Keeps live byte counters for in-flight upload streams, keyed by upload id.
Entries are in-memory only; the file record is the durable source of
progress once an upload completes.
"""
import logging
import threading
import time
from typing import Dict, Optional
from src.models.upload_progress import UploadProgress

logger = logging.getLogger(__name__)

UPLOAD_PROGRESS_CEILING = 55
UNKNOWN_TOTAL_PROGRESS = 10


def upload_percentage(received: int, total: int) -> int:
    """Map raw byte counts onto the 1..55 upload band of overall progress."""
    if total <= 0:
        return UNKNOWN_TOTAL_PROGRESS
    return min(UPLOAD_PROGRESS_CEILING, max(1, received * UPLOAD_PROGRESS_CEILING // total))


class UploadProgressTracker:
    """Thread-safe registry of upload progress entries."""

    def __init__(self, ttl_seconds: Optional[float] = None):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, UploadProgress] = {}
        self._lock = threading.Lock()

    def register(self, upload_id: str) -> None:
        """Create an empty entry for upload_id if absent, or refresh an existing one."""
        if self.ttl_seconds:
            self.sweep(self.ttl_seconds)
        with self._lock:
            if upload_id in self._entries:
                self._entries[upload_id].touch()
            else:
                self._entries[upload_id] = UploadProgress(upload_id=upload_id)

    def touch(self, upload_id: str) -> None:
        """Mark an entry active so the TTL sweep keeps it."""
        with self._lock:
            entry = self._entries.get(upload_id)
            if entry is not None:
                entry.touch()

    def record_bytes(self, upload_id: str, delta: int) -> None:
        with self._lock:
            entry = self._entries.get(upload_id)
            if entry is not None:
                entry.received += delta
                entry.touch()

    def set_total(self, upload_id: str, total: int) -> None:
        with self._lock:
            entry = self._entries.get(upload_id)
            if entry is not None and total > 0:
                entry.total = total
                entry.touch()

    def link(self, upload_id: str, file_id: str) -> None:
        with self._lock:
            entry = self._entries.get(upload_id)
            if entry is not None:
                entry.file_id = file_id
                entry.touch()

    def snapshot(self, upload_id: str) -> Optional[UploadProgress]:
        """Return a copy of the entry, or None if unknown."""
        with self._lock:
            entry = self._entries.get(upload_id)
            return entry.copy() if entry is not None else None

    def discard(self, upload_id: str) -> None:
        with self._lock:
            self._entries.pop(upload_id, None)

    def sweep(self, max_age_seconds: float) -> int:
        """
        Evict entries idle for longer than max_age_seconds. Streaming uploads
        stay fresh because every chunk refreshes last_seen.

        Returns:
            Number of evicted entries
        """
        cutoff = time.monotonic() - max_age_seconds
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.last_seen < cutoff]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info("Evicted %d stale upload progress entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
