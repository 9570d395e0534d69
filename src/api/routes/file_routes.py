"""
File API routes.
Handles streamed uploads, progress polling and parsed content retrieval.
"""
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, status
from src.core.dependencies import get_file_service, get_ingestion_service, get_parsing_service
from src.models.dto.file_dto import (
    DeleteFileResponse,
    FileProgressResponse,
    FileSummaryResponse,
    FileUploadResponse,
    UploadIdResponse,
    UploadProgressResponse
)
from src.services.file_service import FileService
from src.services.ingestion_service import IngestionService
from src.services.parsing_service import ParsingService

router = APIRouter(prefix="/v1/api", tags=["Files"])


@router.post("/files/request-id", response_model=UploadIdResponse, status_code=status.HTTP_201_CREATED)
async def request_upload_id(ingestion_service: IngestionService = Depends(get_ingestion_service)):
    """
    Pre-allocate an upload id.

    Send it as `?uploadId=` or `x-upload-id` with POST /files to poll
    byte-level progress while the body is still streaming.
    """
    return UploadIdResponse(upload_id=ingestion_service.request_upload_id())


@router.post("/files", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    background_tasks: BackgroundTasks,
    upload_id: Optional[str] = Query(default=None, alias="uploadId", description="Pre-allocated upload id"),
    x_upload_id: Optional[str] = Header(default=None),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
    parsing_service: ParsingService = Depends(get_parsing_service)
):
    """
    Stream a multipart/form-data upload.

    Responds once the body is stored; parsing continues in the background.
    """
    resolved_id = ingestion_service.resolve_upload_id(upload_id, x_upload_id)
    result = await ingestion_service.ingest(request.stream(), request.headers, resolved_id)
    background_tasks.add_task(parsing_service.run, result.file_id)
    return result


@router.get("/files", response_model=List[FileSummaryResponse])
async def list_files(file_service: FileService = Depends(get_file_service)):
    """List all files without parsed content, newest first."""
    return file_service.list_files()


@router.get("/files/uploads/{upload_id}/progress", response_model=UploadProgressResponse)
async def get_upload_progress(upload_id: str, file_service: FileService = Depends(get_file_service)):
    """Live byte counters for an upload that is still streaming."""
    return file_service.get_upload_progress(upload_id)


@router.get("/files/{file_id}/progress", response_model=FileProgressResponse)
async def get_file_progress(file_id: str, file_service: FileService = Depends(get_file_service)):
    """Poll the lifecycle state and overall progress of a file."""
    return file_service.get_progress(file_id)


@router.get("/files/{file_id}")
async def get_file_content(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Retrieve parsed content.

    Returns a "try again later" message until the file is ready.
    """
    return file_service.get_content(file_id)


@router.delete("/files/{file_id}", response_model=DeleteFileResponse)
async def delete_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    """Delete a file record, its parsed content and its stored blob."""
    return file_service.delete_file(file_id)
