"""
Core configuration for the File Parser API.
Manages environment variables, AWS service settings and pipeline tuning.
"""
import os
import tempfile
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # AWS Configuration
    aws_region: str = os.getenv("AWS_REGION", "us-east-1")
    file_records_table_name: str = os.getenv("FILE_RECORDS_TABLE_NAME", "")
    parsed_content_table_name: str = os.getenv("PARSED_CONTENT_TABLE_NAME", "")

    # Blob Storage
    upload_dir: str = os.getenv("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "uploads"))

    # API Configuration
    api_title: str = os.getenv("API_TITLE", "File Parser API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Parsing
    max_parsed_rows: int = int(os.getenv("MAX_PARSED_ROWS", "5000"))
    strict_row_length: bool = os.getenv("STRICT_ROW_LENGTH", "false").lower() == "true"
    parse_timeout_seconds: float = float(os.getenv("PARSE_TIMEOUT_SECONDS", "300"))

    # Simulated processing progress
    processing_chunks: int = int(os.getenv("PROCESSING_CHUNKS", "5"))
    processing_tick_seconds: float = float(os.getenv("PROCESSING_TICK_SECONDS", "0.3"))

    # In-memory upload tracker
    upload_tracker_ttl_seconds: float = float(os.getenv("UPLOAD_TRACKER_TTL_SECONDS", "3600"))

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "dev")

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
