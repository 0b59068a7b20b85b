"""
settings.py - Environment-driven configuration for the ROR pipeline

Precedence for config values:
1) Environment variables
2) A `.env` file in the working directory (loaded by python-dotenv)
3) Sensible defaults

Nothing here is stored in module-level mutable state: callers build a
`StorageConfig` once and pass it explicitly to the uploader.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv


def from_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return os.getenv(key), treating empty strings as unset."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value

def as_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


@dataclass(frozen=True)
class StorageConfig:
    """Credentials and endpoint for an S3-compatible object store."""

    bucket: str
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    session_token: Optional[str] = None
    region: str = "us-east-1"
    endpoint: Optional[str] = None
    multipart_threshold_mb: int = 8

    @property
    def endpoint_url(self) -> Optional[str]:
        """Endpoint with a scheme; bare hosts (e.g. a MinIO host) get https://."""
        if not self.endpoint:
            return None
        if self.endpoint.startswith(("http://", "https://")):
            return self.endpoint
        return f"https://{self.endpoint}"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "StorageConfig":
        """
        Build a config from AWS_* variables (and ROR_BUCKET).

        Raises:
            ValueError: If no bucket is configured
        """
        load_dotenv(dotenv_path)
        bucket = from_env("ROR_BUCKET")
        if not bucket:
            raise ValueError("ROR_BUCKET is not set (environment or .env)")
        return cls(
            bucket=bucket,
            access_key=from_env("AWS_ACCESS_KEY_ID"),
            secret_key=from_env("AWS_SECRET_ACCESS_KEY"),
            session_token=from_env("AWS_SESSION_TOKEN"),
            region=from_env("AWS_DEFAULT_REGION", "us-east-1"),
            endpoint=from_env("AWS_S3_ENDPOINT"),
            multipart_threshold_mb=as_int(from_env("ROR_MULTIPART_THRESHOLD_MB"), 8),
        )
