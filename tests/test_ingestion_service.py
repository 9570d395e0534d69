"""
Unit tests for IngestionService.
Drives the streaming multipart path with an in-memory body and a mocked record store.
"""
import asyncio
from unittest.mock import Mock, patch
import pytest
from conftest import build_multipart, stream_chunks
from src.core.exceptions import (
    MissingFilePartException,
    StoreWriteException,
    StreamException
)
from src.models.file_record import FileStatus
from src.repositories.blob_storage import LocalBlobStorage
from src.services.ingestion_service import IngestionService
from src.services.upload_progress_tracker import UploadProgressTracker

CSV_DATA = b"a,b\n" + b"".join(f"{i},{i * 2}\n".encode() for i in range(200))


def progress_updates(store):
    return [c.args[1]["progress"] for c in store.update_fields.call_args_list if "progress" in c.args[1]]


class TestIngestionService:
    @pytest.fixture
    def store(self):
        store = Mock()
        store.create.side_effect = lambda record: record.file_id
        return store

    @pytest.fixture
    def blob_dir(self, tmp_path):
        return tmp_path / "blobs"

    @pytest.fixture
    def tracker(self):
        return UploadProgressTracker()

    @pytest.fixture
    def service(self, store, blob_dir, tracker):
        return IngestionService(
            record_store=store,
            blob_storage=LocalBlobStorage(str(blob_dir)),
            tracker=tracker
        )

    def ingest(self, service, body, headers, upload_id="up-1", chunk_size=16):
        return asyncio.run(service.ingest(stream_chunks(body, chunk_size), headers, upload_id))

    def test_stores_first_file_part(self, service, store, blob_dir):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])

        result = self.ingest(service, body, headers)

        assert result.status == "uploading"
        assert result.upload_id == "up-1"
        assert 1 <= result.progress <= 55

        store.create.assert_called_once()
        record = store.create.call_args.args[0]
        assert record.file_id == result.file_id
        assert record.filename == "data.csv"
        assert record.content_type == "text/csv"
        assert record.status == FileStatus.UPLOADING
        assert record.progress == 1

        blobs = list(blob_dir.iterdir())
        assert len(blobs) == 1
        assert blobs[0].name.endswith("-data.csv")
        assert blobs[0].read_bytes() == CSV_DATA
        assert str(blobs[0]) == record.path

    def test_final_update_records_size(self, service, store):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])

        result = self.ingest(service, body, headers)

        final = store.update_fields.call_args_list[-1]
        assert final.args[0] == result.file_id
        assert final.args[1]["size"] == len(CSV_DATA)
        assert final.args[1]["progress"] == result.progress

    def test_upload_progress_is_monotonic_within_band(self, service, store):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])

        self.ingest(service, body, headers, chunk_size=64)

        updates = progress_updates(store)
        assert len(updates) > 1
        assert updates == sorted(updates)
        assert all(1 <= pct <= 55 for pct in updates)

    def test_unknown_total_uses_placeholder(self, service, store):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])
        del headers["content-length"]

        result = self.ingest(service, body, headers)

        assert result.progress == 10
        assert set(progress_updates(store)) == {10}

    def test_tracker_entry_linked_during_stream_and_evicted_after(self, service, tracker):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])
        tracker.register("pre-registered")
        seen = []

        async def observed_stream():
            async for chunk in stream_chunks(body, 128):
                seen.append(tracker.snapshot("pre-registered"))
                yield chunk

        result = asyncio.run(service.ingest(observed_stream(), headers, "pre-registered"))

        last = seen[-1]
        assert last.file_id == result.file_id
        assert last.total == len(body)
        assert 0 < last.received < len(CSV_DATA)
        assert tracker.snapshot("pre-registered") is None

    def test_long_stream_outlives_tracker_ttl(self, store, blob_dir):
        tracker = UploadProgressTracker(ttl_seconds=0.2)
        service = IngestionService(
            record_store=store,
            blob_storage=LocalBlobStorage(str(blob_dir)),
            tracker=tracker
        )
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])
        seen = []

        async def slow_stream():
            for index, start in enumerate(range(0, len(body), 200)):
                if index:
                    await asyncio.sleep(0.08)
                if index == 5:
                    tracker.register("other-upload")
                    seen.append(tracker.snapshot("long-upload"))
                yield body[start:start + 200]

        result = asyncio.run(service.ingest(slow_stream(), headers, "long-upload"))

        assert seen[0] is not None
        assert seen[0].file_id == result.file_id
        assert seen[0].received > 0

    def test_no_file_part(self, service, store, tracker, blob_dir):
        body, headers = build_multipart([("comment", None, None, b"just a field")])

        with pytest.raises(MissingFilePartException):
            self.ingest(service, body, headers)

        store.create.assert_not_called()
        assert list(blob_dir.iterdir()) == []
        assert tracker.snapshot("up-1") is None

    def test_empty_filename_is_not_a_file_part(self, service, store):
        body, headers = build_multipart([("file", "", "application/octet-stream", b"")])

        with pytest.raises(MissingFilePartException):
            self.ingest(service, body, headers)
        store.create.assert_not_called()

    def test_only_first_file_part_is_taken(self, service, store, blob_dir):
        body, headers = build_multipart([
            ("title", None, None, b"quarterly"),
            ("file", "first.csv", "text/csv", b"a\n1\n"),
            ("file", "second.csv", "text/csv", b"b\n2\n"),
        ])

        self.ingest(service, body, headers)

        store.create.assert_called_once()
        assert store.create.call_args.args[0].filename == "first.csv"
        blobs = list(blob_dir.iterdir())
        assert len(blobs) == 1
        assert blobs[0].read_bytes() == b"a\n1\n"

    def test_truncated_stream_marks_record_failed(self, service, store):
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])
        truncated = body[:len(body) // 2]

        with pytest.raises(StreamException) as exc_info:
            self.ingest(service, truncated, headers)

        file_id = store.create.call_args.args[0].file_id
        assert exc_info.value.file_id == file_id
        store.update_fields.assert_called_with(file_id, {"status": FileStatus.FAILED, "progress": 0})

    def test_malformed_framing(self, service, store):
        headers = {"content-type": "multipart/form-data; boundary=abc", "content-length": "20"}

        with pytest.raises(StreamException) as exc_info:
            self.ingest(service, b"this is not multipart at all", headers)

        assert exc_info.value.file_id is None
        store.create.assert_not_called()

    @pytest.mark.parametrize("content_type", [
        "application/json",
        "multipart/form-data",
        None,
    ])
    def test_requires_multipart_with_boundary(self, service, store, content_type):
        headers = {"content-type": content_type} if content_type else {}

        with pytest.raises(StreamException):
            self.ingest(service, b"{}", headers)
        store.create.assert_not_called()

    def test_progress_write_failures_are_swallowed(self, service, store):
        def update_fields(file_id, updates):
            if set(updates) == {"progress"}:
                raise StoreWriteException("throttled")

        store.update_fields.side_effect = update_fields
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])

        result = self.ingest(service, body, headers)

        assert result.status == "uploading"
        assert store.update_fields.call_args_list[-1].args[1]["size"] == len(CSV_DATA)

    def test_record_create_failure_removes_blob(self, service, store, blob_dir):
        store.create.side_effect = StoreWriteException("table missing")
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])

        with pytest.raises(StoreWriteException):
            self.ingest(service, body, headers)

        assert list(blob_dir.iterdir()) == []
        store.update_fields.assert_not_called()

    def test_orphan_blob_cleanup_runs_off_the_event_loop(self, service, store, blob_dir):
        store.create.side_effect = StoreWriteException("table missing")
        body, headers = build_multipart([("file", "data.csv", "text/csv", CSV_DATA)])
        offloaded = []

        async def recording_threadpool(func, *args, **kwargs):
            offloaded.append(func)
            return func(*args, **kwargs)

        with patch("src.services.ingestion_service.run_in_threadpool", recording_threadpool):
            with pytest.raises(StoreWriteException):
                self.ingest(service, body, headers)

        assert service.blob_storage.delete in offloaded
        assert list(blob_dir.iterdir()) == []

    def test_resolve_upload_id_precedence(self, service):
        assert service.resolve_upload_id("from-query", "from-header") == "from-query"
        assert service.resolve_upload_id(None, "from-header") == "from-header"
        generated = service.resolve_upload_id(None, None)
        assert generated and generated != service.resolve_upload_id(None, None)

    def test_request_upload_id_pre_registers(self, service, tracker):
        upload_id = service.request_upload_id()

        snapshot = tracker.snapshot(upload_id)
        assert snapshot.received == 0
        assert snapshot.file_id is None
