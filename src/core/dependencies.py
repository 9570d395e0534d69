"""
Dependency injection container for FastAPI.
Provides singleton-like behavior for services and repositories.
"""
from functools import lru_cache
from src.core import config
from src.repositories.blob_storage import LocalBlobStorage
from src.repositories.file_record_repository import FileRecordRepository
from src.repositories.record_store import RecordStore
from src.services.file_service import FileService
from src.services.ingestion_service import IngestionService
from src.services.parsing_service import ParsingService
from src.services.upload_progress_tracker import UploadProgressTracker


@lru_cache()
def get_record_store() -> RecordStore:
    """Get RecordStore singleton instance."""
    return FileRecordRepository()


@lru_cache()
def get_blob_storage() -> LocalBlobStorage:
    """Get LocalBlobStorage singleton instance."""
    return LocalBlobStorage()


@lru_cache()
def get_progress_tracker() -> UploadProgressTracker:
    """Get the upload progress tracker shared by all requests of this process."""
    return UploadProgressTracker(ttl_seconds=config.settings.upload_tracker_ttl_seconds)


@lru_cache()
def get_ingestion_service() -> IngestionService:
    """Get IngestionService singleton instance with injected dependencies."""
    return IngestionService(
        record_store=get_record_store(),
        blob_storage=get_blob_storage(),
        tracker=get_progress_tracker()
    )


@lru_cache()
def get_parsing_service() -> ParsingService:
    """Get ParsingService singleton instance with injected dependencies."""
    return ParsingService(record_store=get_record_store())


@lru_cache()
def get_file_service() -> FileService:
    """Get FileService singleton instance with injected dependencies."""
    return FileService(
        record_store=get_record_store(),
        blob_storage=get_blob_storage(),
        tracker=get_progress_tracker()
    )
