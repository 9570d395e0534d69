"""
Ingestion Service for streamed uploads.
Reads a multipart body chunk by chunk, writes the file part to blob storage
as it arrives and reports upload progress onto the file record before the
body has finished streaming.
"""
import logging
import uuid
from typing import AsyncIterator, BinaryIO, List, Mapping, Optional, Tuple
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect
from src.core.exceptions import (
    BlobStorageException,
    MissingFilePartException,
    StoreWriteException,
    StreamException
)
from src.models.dto.file_dto import FileUploadResponse
from src.models.file_record import FileRecord, FileStatus
from src.repositories.blob_storage import LocalBlobStorage
from src.repositories.record_store import RecordStore
from src.services.upload_progress_tracker import UploadProgressTracker, upload_percentage

logger = logging.getLogger(__name__)

PART_HEADERS = "part_headers"
PART_DATA = "part_data"
PART_END = "part_end"


class _MultipartEvents:
    """
    Collects parser callbacks. The parser is synchronous, so callbacks only
    queue events and the service handles them between stream reads.
    """

    def __init__(self):
        self.ended = False
        self._events: List[Tuple[str, object]] = []
        self._headers = {}
        self._header_name = b""
        self._header_value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_name.lower()] = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        self._events.append((PART_HEADERS, self._headers))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append((PART_DATA, data[start:end]))

    def on_part_end(self) -> None:
        self._events.append((PART_END, None))

    def on_end(self) -> None:
        self.ended = True

    def drain(self) -> List[Tuple[str, object]]:
        events, self._events = self._events, []
        return events


class _UploadState:
    """Per-request state of one upload stream."""

    def __init__(self, upload_id: str, total: int):
        self.upload_id = upload_id
        self.total = total
        self.received = 0
        self.progress = 0
        self.file_id: Optional[str] = None
        self.filename: Optional[str] = None
        self.path: Optional[str] = None
        self.handle: Optional[BinaryIO] = None
        self.writing = False
        self.ignored_parts = 0

    def close_handle(self) -> None:
        if self.handle is not None:
            self.handle.close()
            self.handle = None


class IngestionService:
    """Service for streaming uploads into blob storage and file records."""

    def __init__(
        self,
        record_store: RecordStore,
        blob_storage: LocalBlobStorage,
        tracker: UploadProgressTracker
    ):
        self.record_store = record_store
        self.blob_storage = blob_storage
        self.tracker = tracker

    def request_upload_id(self) -> str:
        """Allocate and pre-register an upload id so progress is visible before bytes arrive."""
        upload_id = str(uuid.uuid4())
        self.tracker.register(upload_id)
        return upload_id

    def resolve_upload_id(self, query_id: Optional[str], header_id: Optional[str]) -> str:
        return query_id or header_id or str(uuid.uuid4())

    async def ingest(
        self,
        stream: AsyncIterator[bytes],
        headers: Mapping[str, str],
        upload_id: str
    ) -> FileUploadResponse:
        """
        Consume a multipart body and store its first file part.

        Args:
            stream: Async iterator over raw body chunks
            headers: Request headers (content-type, content-length)
            upload_id: Upload identifier for live progress

        Returns:
            FileUploadResponse with the new file record's state

        Raises:
            MissingFilePartException: If the body holds no file part
            StreamException: If the body is malformed, the client disconnects
                or the blob cannot be written
            StoreWriteException: If the file record cannot be created
        """
        boundary = self._boundary(headers)
        total = self._content_length(headers)
        self.tracker.register(upload_id)
        self.tracker.set_total(upload_id, total)

        state = _UploadState(upload_id, total)
        events = _MultipartEvents()
        parser = MultipartParser(boundary, events.callbacks())

        try:
            async for chunk in stream:
                self.tracker.touch(upload_id)
                parser.write(chunk)
                for kind, payload in events.drain():
                    await self._handle_event(state, kind, payload)
            parser.finalize()
            if not events.ended:
                raise StreamException("Upload stream ended before the closing boundary")
            if state.file_id is None:
                raise MissingFilePartException(
                    'No file field found in multipart form-data (expected field name "file")'
                )
            state.close_handle()
            size = await run_in_threadpool(self.blob_storage.stat, state.path)
            await run_in_threadpool(
                self.record_store.update_fields,
                state.file_id,
                {'size': size, 'progress': max(state.progress, 1)}
            )
        except (MultipartParseError, ClientDisconnect, OSError) as e:
            await self._abort(state)
            raise StreamException(f"Upload stream failed: {str(e) or type(e).__name__}", file_id=state.file_id) from e
        except StreamException as e:
            await self._abort(state)
            e.file_id = state.file_id
            raise
        except (StoreWriteException, BlobStorageException):
            await self._abort(state)
            raise
        finally:
            state.close_handle()
            self.tracker.discard(upload_id)

        if state.ignored_parts:
            logger.warning(
                "Ignored %d additional file part(s): file_id=%s", state.ignored_parts, state.file_id
            )
        logger.info(
            "Upload complete: file_id=%s upload_id=%s filename=%s size=%d",
            state.file_id, upload_id, state.filename, size
        )
        return FileUploadResponse(
            file_id=state.file_id,
            status=FileStatus.UPLOADING.value,
            progress=max(state.progress, 1),
            upload_id=upload_id
        )

    async def _handle_event(self, state: _UploadState, kind: str, payload) -> None:
        if kind == PART_HEADERS:
            await self._begin_part(state, payload)
        elif kind == PART_DATA and state.writing:
            await self._write_chunk(state, payload)
        elif kind == PART_END and state.writing:
            state.writing = False
            state.close_handle()

    async def _begin_part(self, state: _UploadState, part_headers: dict) -> None:
        _, options = parse_options_header(part_headers.get(b"content-disposition", b""))
        raw_filename = options.get(b"filename")
        if not raw_filename:
            return
        if state.file_id is not None:
            state.ignored_parts += 1
            return

        filename = raw_filename.decode("utf-8", errors="replace")
        content_type = part_headers.get(b"content-type", b"application/octet-stream").decode("latin-1")
        name = self.blob_storage.generate_name(filename)
        state.path, state.handle = await run_in_threadpool(self.blob_storage.open_for_write, name)
        state.filename = filename

        record = FileRecord(
            file_id=str(uuid.uuid4()),
            filename=filename,
            content_type=content_type,
            path=state.path,
            status=FileStatus.UPLOADING,
            progress=1
        )
        state.file_id = await run_in_threadpool(self.record_store.create, record)
        state.progress = 1
        state.writing = True
        self.tracker.link(state.upload_id, state.file_id)
        logger.info(
            "File record created: file_id=%s upload_id=%s filename=%s",
            state.file_id, state.upload_id, filename
        )

    async def _write_chunk(self, state: _UploadState, data: bytes) -> None:
        await run_in_threadpool(state.handle.write, data)
        state.received += len(data)
        self.tracker.record_bytes(state.upload_id, len(data))

        pct = upload_percentage(state.received, state.total)
        if pct > state.progress:
            state.progress = pct
            await self._persist_progress(state.file_id, pct)

    async def _persist_progress(self, file_id: str, progress: int) -> None:
        """Best-effort progress write; the completion update corrects any loss."""
        try:
            await run_in_threadpool(self.record_store.update_fields, file_id, {'progress': progress})
        except StoreWriteException as e:
            logger.warning("Progress update dropped: file_id=%s progress=%d error=%s", file_id, progress, e.message)

    async def _abort(self, state: _UploadState) -> None:
        """Mark the record failed, or drop an orphaned blob if no record exists."""
        state.close_handle()
        if state.file_id is not None:
            try:
                await run_in_threadpool(
                    self.record_store.update_fields,
                    state.file_id,
                    {'status': FileStatus.FAILED, 'progress': 0}
                )
            except StoreWriteException:
                logger.exception("Could not mark file record failed: file_id=%s", state.file_id)
            logger.warning("Upload failed: file_id=%s upload_id=%s", state.file_id, state.upload_id)
        elif state.path is not None:
            await run_in_threadpool(self.blob_storage.delete, state.path)

    def _boundary(self, headers: Mapping[str, str]) -> bytes:
        content_type, params = parse_options_header(headers.get("content-type"))
        boundary = params.get(b"boundary")
        if content_type != b"multipart/form-data" or not boundary:
            raise StreamException("Expected multipart/form-data with a boundary")
        return boundary

    def _content_length(self, headers: Mapping[str, str]) -> int:
        try:
            return max(0, int(headers.get("content-length") or 0))
        except ValueError:
            return 0
