# config.py
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .models.errors import InvalidConfigurationError


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise InvalidConfigurationError(f"Environment variable {name} is required")
    return value


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"Environment variable {name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"Environment variable {name} must be a number") from exc


class UploaderSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_base_url: str
    bucket: str
    completion_base_url: Optional[str] = None
    api_token: Optional[str] = None
    storage_path: str = "videos"
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_cap_seconds: float = 10.0
    max_concurrency: Optional[int] = None
    max_waves: int = 10_000
    max_stalled_waves: int = 5
    request_timeout_seconds: float = 300.0

    def model_post_init(self, __context):
        if self.max_attempts < 1:
            raise InvalidConfigurationError("max_attempts must be at least 1")
        if self.backoff_base_seconds < 0 or self.backoff_cap_seconds < 0:
            raise InvalidConfigurationError("Backoff delays cannot be negative")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise InvalidConfigurationError("max_concurrency must be at least 1")
        if self.max_waves < 1 or self.max_stalled_waves < 1:
            raise InvalidConfigurationError("Wave limits must be at least 1")

    @property
    def completion_url(self) -> str:
        return (self.completion_base_url or self.api_base_url).rstrip("/")

    @classmethod
    def from_env(cls, **overrides) -> "UploaderSettings":
        """Build settings from UPLOADER_* environment variables"""
        values = dict(
            api_base_url=overrides.pop("api_base_url", None) or _require_env("UPLOADER_API_BASE_URL"),
            bucket=overrides.pop("bucket", None) or _require_env("UPLOADER_BUCKET"),
            completion_base_url=os.getenv("UPLOADER_COMPLETION_BASE_URL") or None,
            api_token=os.getenv("UPLOADER_API_TOKEN") or None,
            storage_path=os.getenv("UPLOADER_STORAGE_PATH", "videos"),
            max_attempts=_env_int("UPLOADER_MAX_ATTEMPTS", 3),
            backoff_base_seconds=_env_float("UPLOADER_BACKOFF_BASE_SECONDS", 1.0),
            backoff_cap_seconds=_env_float("UPLOADER_BACKOFF_CAP_SECONDS", 10.0),
            max_concurrency=_env_int("UPLOADER_MAX_CONCURRENCY", None),
            max_waves=_env_int("UPLOADER_MAX_WAVES", 10_000),
            max_stalled_waves=_env_int("UPLOADER_MAX_STALLED_WAVES", 5),
            request_timeout_seconds=_env_float("UPLOADER_REQUEST_TIMEOUT_SECONDS", 300.0),
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
