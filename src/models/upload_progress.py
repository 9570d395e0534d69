"""
Upload Progress model.
Live byte counters for one in-flight upload stream.
"""
import time
from typing import Optional


class UploadProgress:
    """In-memory progress entry keyed by upload identifier."""

    def __init__(
        self,
        upload_id: str,
        received: int = 0,
        total: int = 0,
        file_id: Optional[str] = None,
        created_at: Optional[float] = None,
        last_seen: Optional[float] = None
    ):
        self.upload_id = upload_id
        self.received = received
        self.total = total
        self.file_id = file_id
        self.created_at = created_at if created_at is not None else time.monotonic()
        self.last_seen = last_seen if last_seen is not None else self.created_at

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def copy(self) -> "UploadProgress":
        return UploadProgress(
            upload_id=self.upload_id,
            received=self.received,
            total=self.total,
            file_id=self.file_id,
            created_at=self.created_at,
            last_seen=self.last_seen
        )

    def __repr__(self):
        return f"UploadProgress(upload_id={self.upload_id}, received={self.received}, total={self.total})"
