"""
Global exception handler for the File Parser API.
Provides centralized error handling for all API exceptions.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from .exceptions import (
    RecordNotFoundException,
    MissingFilePartException,
    StreamException,
    DecodeException,
    StoreWriteException,
    BlobStorageException
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""

    @app.exception_handler(RecordNotFoundException)
    async def handle_not_found(request: Request, exc: RecordNotFoundException):
        return JSONResponse(
            status_code=404,
            content={"error": "Not Found", "message": exc.message}
        )

    @app.exception_handler(MissingFilePartException)
    async def handle_missing_file_part(request: Request, exc: MissingFilePartException):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing File Part", "message": exc.message}
        )

    @app.exception_handler(StreamException)
    async def handle_stream_error(request: Request, exc: StreamException):
        content = {"error": "Upload Stream Failed", "message": exc.message}
        if exc.file_id:
            content["file_id"] = exc.file_id
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(DecodeException)
    async def handle_decode_error(request: Request, exc: DecodeException):
        return JSONResponse(
            status_code=422,
            content={"error": "Decode Failed", "message": exc.message}
        )

    @app.exception_handler(StoreWriteException)
    async def handle_store_error(request: Request, exc: StoreWriteException):
        logger.error("Record store error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": "Database Error", "message": exc.message}
        )

    @app.exception_handler(BlobStorageException)
    async def handle_blob_error(request: Request, exc: BlobStorageException):
        logger.error("Blob storage error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": "Blob Storage Error", "message": exc.message}
        )

    @app.exception_handler(Exception)
    async def handle_generic_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "message": "An unexpected error occurred"}
        )
