"""Library settings."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Store config from env."""

    app_name: str = "content-store"
    debug: bool = False
    # Structured logging: set LOG_JSON=1 for one-JSON-object-per-line (CloudWatch, etc.)
    log_json: bool = False

    # Storage: local (dev disk) or s3 (AWS / S3-compatible). Default local so no AWS required.
    storage_backend: str = "local"  # local | s3
    # Dev blobs (local disk); one sub-directory per container
    local_storage_dir: str = "./dev_blobs"

    # S3 (only used when storage_backend=s3)
    aws_region: str = "us-east-1"
    s3_endpoint_url: str | None = None  # MinIO / LocalStack
    # Optional explicit credentials; unset falls back to the boto3 default chain
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    # Content encoding for text and JSON values
    default_encoding: str = "utf-8"
    # put_batch group size (uploads per concurrent group)
    batch_size: int = 25

    # put_from_uri polling
    copy_poll_interval_seconds: float = 0.5
    copy_timeout_seconds: float | None = 600.0  # None or 0 = poll until the copy leaves pending
    # Fetching http(s) copy sources
    http_timeout_seconds: float = 60.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
