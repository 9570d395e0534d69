"""
File Record domain model.
Represents one uploaded file's lifecycle, progress and parse metadata.
"""
from datetime import datetime
from enum import Enum
from typing import Optional


class FileStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ParseMeta:
    """Summary of a completed parse."""

    def __init__(self, rows: int, cols: int, parser: str):
        self.rows = rows
        self.cols = cols
        self.parser = parser

    def to_dict(self) -> dict:
        return {"rows": self.rows, "cols": self.cols, "parser": self.parser}

    @classmethod
    def from_dict(cls, data: dict) -> "ParseMeta":
        return cls(
            rows=int(data.get("rows", 0)),
            cols=int(data.get("cols", 0)),
            parser=data.get("parser", "")
        )

    def __repr__(self):
        return f"ParseMeta(rows={self.rows}, cols={self.cols}, parser={self.parser})"


class FileRecord:
    """Domain model for an uploaded file and its parse state."""

    def __init__(
        self,
        file_id: str,
        filename: str,
        content_type: str,
        path: str,
        status: FileStatus = FileStatus.UPLOADING,
        progress: int = 0,
        size: Optional[int] = None,
        parse_meta: Optional[ParseMeta] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.file_id = file_id
        self.filename = filename
        self.content_type = content_type
        self.path = path
        self.status = FileStatus(status)
        self.progress = progress
        self.size = size
        self.parse_meta = parse_meta
        self.created_at = created_at or datetime.utcnow()
        self.updated_at = updated_at or self.created_at

    def __repr__(self):
        return f"FileRecord(file_id={self.file_id}, status={self.status.value}, progress={self.progress})"
