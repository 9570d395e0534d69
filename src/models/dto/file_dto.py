"""
Data Transfer Objects for the File API.
Defines response schemas for upload, progress and retrieval endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class UploadIdResponse(BaseModel):
    """Response schema for a pre-allocated upload identifier."""
    upload_id: str = Field(..., serialization_alias="uploadId", description="Upload identifier to send with POST /files")


class FileUploadResponse(BaseModel):
    """Response schema for a completed upload stream."""
    file_id: str = Field(..., description="Durable file record identifier")
    status: str = Field(..., description="Lifecycle state")
    progress: int = Field(..., ge=0, le=100, description="Overall progress (0-100)")
    upload_id: str = Field(..., serialization_alias="uploadId", description="Upload identifier used for the stream")


class FileProgressResponse(BaseModel):
    """Response schema for progress polling."""
    file_id: str
    status: str
    progress: int


class UploadProgressResponse(BaseModel):
    """Response schema for live upload-phase progress."""
    upload_id: str = Field(..., serialization_alias="uploadId")
    file_id: Optional[str] = None
    received: int
    total: int
    progress: int


class ParseMetaResponse(BaseModel):
    rows: int
    cols: int
    parser: str


class FileContentResponse(BaseModel):
    """Response schema for parsed file content."""
    file_id: str
    filename: str
    parse_meta: ParseMetaResponse = Field(..., serialization_alias="parseMeta")
    data: List[Dict[str, Any]]


class FileNotReadyResponse(BaseModel):
    message: str


class FileSummaryResponse(BaseModel):
    """Response schema for file listing entries."""
    id: str
    filename: str
    status: str
    progress: int
    size: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class DeleteFileResponse(BaseModel):
    success: bool = True
