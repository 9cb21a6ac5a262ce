"""
Configuration loader for the watermark backfill worker.

Environment variables are centralized here so connection details, bucket
names and pool sizing are passed explicitly to every client instead of being
hardcoded next to the code that uses them.
"""

from functools import lru_cache
import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # MongoDB record store
    mongo_uri: str = Field("mongodb://localhost:27017")
    mongo_database: str
    mongo_collection: str
    source_field: str = Field("temp_link")
    result_field: str = Field("psf_images")
    max_records: int = Field(50000, ge=1)

    # S3 artifact storage
    s3_bucket: str
    s3_region: str = Field("ap-south-1")
    s3_endpoint: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_key_prefix: str = Field("images")

    # Remote watermark removal service
    transform_url: str = Field("http://127.0.0.1:4000/remove-watermark")
    connect_timeout_seconds: float = Field(5.0, gt=0)
    request_timeout_seconds: float = Field(30.0, gt=0)

    # Worker pool
    worker_count: int = Field(100, ge=1)
    queue_size: int = Field(10000, ge=1)

    log_level: str = Field("INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError("LOG_LEVEL must be one of DEBUG|INFO|WARNING|ERROR|CRITICAL")
        return v.upper()

    @field_validator("s3_key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        v = v.rstrip("/")
        if not v or v.startswith("/"):
            raise ValueError("S3_KEY_PREFIX must be a non-empty relative prefix")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
