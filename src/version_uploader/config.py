from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from version_uploader.domain.chunks import DEFAULT_CHUNK_SIZE

DEFAULT_MAX_FILE_SIZE = 500 * 1024 * 1024  # 500MB


def _load_repo_env() -> None:
    """Load the nearest .env starting from the working directory upward."""
    current = Path.cwd().resolve()
    for candidate in [current, *current.parents]:
        env_file = candidate / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise ValueError(f"Environment variable {name} is required")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number") from exc


@dataclass(frozen=True)
class UploaderConfig:
    api_base_url: str
    api_key: str | None
    auth_token: str | None
    path_prefix: str
    chunk_size_bytes: int
    max_file_size_bytes: int
    timeout_seconds: float
    chunk_max_retries: int
    retry_initial_delay_seconds: float
    retry_max_delay_seconds: float
    redis_host: str | None
    redis_port: int
    redis_db: int
    redis_channel_prefix: str
    redis_socket_timeout_seconds: float

    @property
    def redis_enabled(self) -> bool:
        return bool(self.redis_host)


def load_config() -> UploaderConfig:
    _load_repo_env()
    return UploaderConfig(
        api_base_url=_require_env("UPLOADER_API_BASE_URL"),
        api_key=os.getenv("UPLOADER_API_KEY") or None,
        auth_token=os.getenv("UPLOADER_AUTH_TOKEN") or None,
        path_prefix=os.getenv("UPLOADER_PATH_PREFIX", "/api/v2/version/upload-chunked"),
        chunk_size_bytes=_env_int("UPLOADER_CHUNK_SIZE_BYTES", DEFAULT_CHUNK_SIZE),
        max_file_size_bytes=_env_int(
            "UPLOADER_MAX_FILE_SIZE_BYTES", DEFAULT_MAX_FILE_SIZE
        ),
        timeout_seconds=_env_float("UPLOADER_TIMEOUT_SECONDS", 300.0),
        chunk_max_retries=_env_int("UPLOADER_CHUNK_MAX_RETRIES", 0),
        retry_initial_delay_seconds=_env_float(
            "UPLOADER_RETRY_INITIAL_DELAY_SECONDS", 1.0
        ),
        retry_max_delay_seconds=_env_float("UPLOADER_RETRY_MAX_DELAY_SECONDS", 60.0),
        redis_host=os.getenv("UPLOADER_REDIS_HOST") or None,
        redis_port=_env_int("UPLOADER_REDIS_PORT", 6379),
        redis_db=_env_int("UPLOADER_REDIS_DB", 0),
        redis_channel_prefix=os.getenv("UPLOADER_REDIS_CHANNEL_PREFIX", "upload"),
        redis_socket_timeout_seconds=_env_float(
            "UPLOADER_REDIS_SOCKET_TIMEOUT_SECONDS", 1.0
        ),
    )
