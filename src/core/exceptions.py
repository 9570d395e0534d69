"""
Custom exceptions for the File Parser API.
Provides specific error types for different failure scenarios.
"""
from typing import Optional


class FileParserException(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class MissingFilePartException(FileParserException):
    """Raised when a multipart body carries no file part."""
    pass


class StreamException(FileParserException):
    """Raised when the upload stream is malformed or cannot be written."""
    def __init__(self, message: str, file_id: Optional[str] = None):
        self.file_id = file_id
        super().__init__(message)


class DecodeException(FileParserException):
    """Raised when file content cannot be decoded into records."""
    pass


class RecordNotFoundException(FileParserException):
    """Raised when a file record or upload entry is not found."""
    pass


class StoreWriteException(FileParserException):
    """Raised when a record store operation fails."""
    pass


class BlobStorageException(FileParserException):
    """Raised when a blob storage operation fails."""
    pass
