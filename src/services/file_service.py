"""
File Service for record queries.
Serves progress polling, parsed content retrieval, listing and deletion.
"""
import logging
from typing import List, Union
from src.core.exceptions import RecordNotFoundException
from src.models.dto.file_dto import (
    DeleteFileResponse,
    FileContentResponse,
    FileNotReadyResponse,
    FileProgressResponse,
    FileSummaryResponse,
    ParseMetaResponse,
    UploadProgressResponse
)
from src.models.file_record import FileRecord, FileStatus
from src.repositories.blob_storage import LocalBlobStorage
from src.repositories.record_store import RecordStore
from src.services.upload_progress_tracker import UploadProgressTracker, upload_percentage

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "File upload or processing in progress. Please try again later."


class FileService:
    """Service for file record read and delete operations."""

    def __init__(
        self,
        record_store: RecordStore,
        blob_storage: LocalBlobStorage,
        tracker: UploadProgressTracker
    ):
        self.record_store = record_store
        self.blob_storage = blob_storage
        self.tracker = tracker

    def get_progress(self, file_id: str) -> FileProgressResponse:
        """
        Get the lifecycle state and progress of a file.

        Raises:
            RecordNotFoundException: If file_id is unknown
        """
        record = self._get_record(file_id)
        return FileProgressResponse(
            file_id=record.file_id,
            status=record.status.value,
            progress=record.progress
        )

    def get_upload_progress(self, upload_id: str) -> UploadProgressResponse:
        """
        Get live byte counters for an upload that is still streaming.

        Raises:
            RecordNotFoundException: If upload_id is unknown or already finished
        """
        entry = self.tracker.snapshot(upload_id)
        if entry is None:
            raise RecordNotFoundException(f"Upload '{upload_id}' not found")
        return UploadProgressResponse(
            upload_id=entry.upload_id,
            file_id=entry.file_id,
            received=entry.received,
            total=entry.total,
            progress=upload_percentage(entry.received, entry.total) if entry.received else 0
        )

    def get_content(self, file_id: str) -> Union[FileContentResponse, FileNotReadyResponse]:
        """
        Get parsed content, or a not-ready message until parsing succeeds.

        Raises:
            RecordNotFoundException: If file_id is unknown
        """
        record = self._get_record(file_id)
        if record.status != FileStatus.READY:
            return FileNotReadyResponse(message=NOT_READY_MESSAGE)

        rows = self.record_store.find_content(file_id)
        meta = record.parse_meta
        return FileContentResponse(
            file_id=record.file_id,
            filename=record.filename,
            parse_meta=ParseMetaResponse(rows=meta.rows, cols=meta.cols, parser=meta.parser),
            data=rows
        )

    def list_files(self) -> List[FileSummaryResponse]:
        return [
            FileSummaryResponse(
                id=record.file_id,
                filename=record.filename,
                status=record.status.value,
                progress=record.progress,
                size=record.size,
                created_at=record.created_at,
                updated_at=record.updated_at
            )
            for record in self.record_store.list_all()
        ]

    def delete_file(self, file_id: str) -> DeleteFileResponse:
        """
        Delete a file record, its parsed content and its blob.
        A blob that is already missing does not fail the delete.

        Raises:
            RecordNotFoundException: If file_id is unknown
        """
        record = self._get_record(file_id)
        try:
            if self.blob_storage.exists(record.path):
                self.blob_storage.delete(record.path)
        except OSError as e:
            logger.warning("Blob cleanup failed: file_id=%s error=%s", file_id, str(e))

        self.record_store.delete_by_id(file_id)
        logger.info("File deleted: file_id=%s", file_id)
        return DeleteFileResponse(success=True)

    def _get_record(self, file_id: str) -> FileRecord:
        record = self.record_store.find_by_id(file_id)
        if record is None:
            raise RecordNotFoundException(f"File '{file_id}' not found")
        return record
