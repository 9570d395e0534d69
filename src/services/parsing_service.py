"""
Parsing Service for uploaded files.
Decodes a completed upload in the background, reports processing progress
and finalizes the file record as ready or failed.
"""
import asyncio
import functools
import logging
from typing import Any, Dict, List
from starlette.concurrency import run_in_threadpool
from src.core import config
from src.core.exceptions import StoreWriteException
from src.models.file_record import FileRecord, FileStatus, ParseMeta
from src.repositories.record_store import RecordStore
from src.services.progress_simulator import ChunkedProgressSimulator, PROCESSING_PROGRESS_FLOOR
from src.services.tabular_decoder import select_decoder

logger = logging.getLogger(__name__)


class ParsingService:
    """Background parser driving a file record from uploaded to ready."""

    def __init__(
        self,
        record_store: RecordStore,
        simulator: ChunkedProgressSimulator = None,
        max_rows: int = None,
        parse_timeout: float = None,
        strict_row_length: bool = None
    ):
        self.record_store = record_store
        self.simulator = simulator or ChunkedProgressSimulator(
            chunks=config.settings.processing_chunks,
            interval=config.settings.processing_tick_seconds
        )
        self.max_rows = max_rows if max_rows is not None else config.settings.max_parsed_rows
        self.parse_timeout = parse_timeout if parse_timeout is not None else config.settings.parse_timeout_seconds
        self.strict_row_length = (
            strict_row_length if strict_row_length is not None else config.settings.strict_row_length
        )

    async def run(self, file_id: str) -> None:
        """
        Parse the blob behind a file record and finalize the record.

        Failures are recorded on the record as status "failed" with progress 0
        and are never raised to the caller.
        """
        try:
            record = await run_in_threadpool(self.record_store.find_by_id, file_id)
        except StoreWriteException:
            logger.exception("Could not load file record for parsing: file_id=%s", file_id)
            return
        if record is None:
            logger.warning("Parsing skipped, file record not found: file_id=%s", file_id)
            return

        try:
            await self._parse(record)
        except Exception:
            logger.exception("Processing failed: file_id=%s filename=%s", file_id, record.filename)
            await self._mark_failed(file_id)

    async def _parse(self, record: FileRecord) -> None:
        progress = max(record.progress, PROCESSING_PROGRESS_FLOOR)
        await run_in_threadpool(
            self.record_store.update_fields,
            record.file_id,
            {'status': FileStatus.PROCESSING, 'progress': progress}
        )
        logger.info("Processing started: file_id=%s", record.file_id)

        decoder = select_decoder(record.content_type, record.filename, strict=self.strict_row_length)
        # Plain executor future so the timeout cancels without waiting on the worker thread.
        loop = asyncio.get_running_loop()
        rows = await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(decoder.decode_file, record.path)),
            timeout=self.parse_timeout
        )

        async def persist(pct: int) -> None:
            await self._persist_progress(record.file_id, max(progress, pct))

        await self.simulator.run(len(rows), persist)

        clipped = self.clip(rows)
        parse_meta = ParseMeta(
            rows=len(clipped),
            cols=len(clipped[0]) if clipped else 0,
            parser=decoder.name
        )

        # Rows land before the status flip so readers never see a partial "ready".
        await run_in_threadpool(self.record_store.save_content, record.file_id, clipped)
        await run_in_threadpool(
            self.record_store.update_fields,
            record.file_id,
            {'status': FileStatus.READY, 'progress': 100, 'parse_meta': parse_meta}
        )
        logger.info(
            "Processing complete: file_id=%s rows=%d cols=%d parser=%s",
            record.file_id, parse_meta.rows, parse_meta.cols, parse_meta.parser
        )

    def clip(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Bound parsed content to the configured row cap."""
        if len(rows) > self.max_rows:
            logger.info("Parsed rows capped: %d -> %d", len(rows), self.max_rows)
        return rows[:self.max_rows]

    async def _persist_progress(self, file_id: str, progress: int) -> None:
        """Best-effort intermediate progress write; the final write corrects any loss."""
        try:
            await run_in_threadpool(self.record_store.update_fields, file_id, {'progress': progress})
        except StoreWriteException as e:
            logger.warning("Progress update dropped: file_id=%s progress=%d error=%s", file_id, progress, e.message)

    async def _mark_failed(self, file_id: str) -> None:
        try:
            await run_in_threadpool(self.record_store.delete_content, file_id)
        except StoreWriteException as e:
            logger.warning("Could not clear parsed rows: file_id=%s error=%s", file_id, e.message)
        try:
            await run_in_threadpool(
                self.record_store.update_fields,
                file_id,
                {'status': FileStatus.FAILED, 'progress': 0}
            )
        except StoreWriteException:
            logger.exception("Could not mark file record failed: file_id=%s", file_id)
