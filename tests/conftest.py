"""
Shared test fixtures and utilities.
"""
import pytest
import boto3
from fastapi.testclient import TestClient
from moto import mock_aws
from src.core import config

RECORDS_TABLE = "FileRecords-test"
CONTENT_TABLE = "ParsedContent-test"
BOUNDARY = "testboundary1234"


def clear_dependency_caches():
    from src.core import dependencies
    dependencies.get_record_store.cache_clear()
    dependencies.get_blob_storage.cache_clear()
    dependencies.get_progress_tracker.cache_clear()
    dependencies.get_ingestion_service.cache_clear()
    dependencies.get_parsing_service.cache_clear()
    dependencies.get_file_service.cache_clear()


def create_tables(region: str = "us-east-1"):
    dynamodb = boto3.resource("dynamodb", region_name=region)
    records = dynamodb.create_table(
        TableName=RECORDS_TABLE,
        KeySchema=[{"AttributeName": "file_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "file_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST"
    )
    content = dynamodb.create_table(
        TableName=CONTENT_TABLE,
        KeySchema=[
            {"AttributeName": "file_id", "KeyType": "HASH"},
            {"AttributeName": "row_index", "KeyType": "RANGE"}
        ],
        AttributeDefinitions=[
            {"AttributeName": "file_id", "AttributeType": "S"},
            {"AttributeName": "row_index", "AttributeType": "N"}
        ],
        BillingMode="PAY_PER_REQUEST"
    )
    return records, content


def build_multipart(parts, boundary: str = BOUNDARY):
    """
    Build a multipart/form-data body.

    Args:
        parts: List of (field_name, filename or None, content_type or None, data)

    Returns:
        Tuple of (body bytes, request headers)
    """
    body = b""
    for name, filename, content_type, data in parts:
        disposition = f'form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += f"--{boundary}\r\nContent-Disposition: {disposition}\r\n".encode()
        if content_type:
            body += f"Content-Type: {content_type}\r\n".encode()
        body += b"\r\n" + data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    headers = {
        "content-type": f"multipart/form-data; boundary={boundary}",
        "content-length": str(len(body))
    }
    return body, headers


async def stream_chunks(body: bytes, size: int = 16):
    for start in range(0, len(body), size):
        yield body[start:start + size]


@pytest.fixture
def setup_test_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("FILE_RECORDS_TABLE_NAME", RECORDS_TABLE)
    monkeypatch.setenv("PARSED_CONTENT_TABLE_NAME", CONTENT_TABLE)
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("PROCESSING_TICK_SECONDS", "0")
    monkeypatch.setenv("ENVIRONMENT", "test")
    config.settings = config.Settings()
    clear_dependency_caches()

    yield

    clear_dependency_caches()


@pytest.fixture
def dynamodb_tables(setup_test_env):
    with mock_aws():
        yield create_tables()


@pytest.fixture
def client(dynamodb_tables):
    from src.main import app
    return TestClient(app)
