import asyncio

import pytest

from version_uploader import config as config_module
from version_uploader.application.dto import UploadBinaryCommand
from version_uploader.application.exclusivity import UploadRegistry
from version_uploader.application.retry import RetryingSessionTransport
from version_uploader.application.upload_binary import UploadBinaryUseCase
from version_uploader.config import load_config
from version_uploader.domain.errors import ConcurrentUploadError
from version_uploader.infrastructure.http_transport import HttpSessionTransport
from version_uploader.infrastructure.progress import FanOutProgressReporter
from version_uploader.main import build_reporter, build_transport, build_use_case

ENV_VARS = [
    "UPLOADER_API_BASE_URL",
    "UPLOADER_API_KEY",
    "UPLOADER_AUTH_TOKEN",
    "UPLOADER_PATH_PREFIX",
    "UPLOADER_CHUNK_SIZE_BYTES",
    "UPLOADER_MAX_FILE_SIZE_BYTES",
    "UPLOADER_TIMEOUT_SECONDS",
    "UPLOADER_CHUNK_MAX_RETRIES",
    "UPLOADER_REDIS_HOST",
    "UPLOADER_REDIS_SOCKET_TIMEOUT_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_load_repo_env", lambda: None)


def test_defaults_match_original_client(monkeypatch):
    monkeypatch.setenv("UPLOADER_API_BASE_URL", "http://localhost:8000")

    cfg = load_config()

    assert cfg.api_base_url == "http://localhost:8000"
    assert cfg.chunk_size_bytes == 5 * 1024 * 1024
    assert cfg.max_file_size_bytes == 500 * 1024 * 1024
    assert cfg.timeout_seconds == 300.0
    assert cfg.path_prefix == "/api/v2/version/upload-chunked"
    assert cfg.chunk_max_retries == 0
    assert cfg.api_key is None
    assert not cfg.redis_enabled
    assert cfg.redis_socket_timeout_seconds == 1.0


def test_base_url_is_required():
    with pytest.raises(ValueError, match="UPLOADER_API_BASE_URL"):
        load_config()


def test_integer_settings_are_validated(monkeypatch):
    monkeypatch.setenv("UPLOADER_API_BASE_URL", "http://localhost:8000")
    monkeypatch.setenv("UPLOADER_CHUNK_SIZE_BYTES", "five")

    with pytest.raises(ValueError, match="UPLOADER_CHUNK_SIZE_BYTES"):
        load_config()


def test_build_use_case_wraps_transport_when_retries_enabled(monkeypatch):
    monkeypatch.setenv("UPLOADER_API_BASE_URL", "http://localhost:8000")
    monkeypatch.setenv("UPLOADER_CHUNK_MAX_RETRIES", "3")
    monkeypatch.setenv("UPLOADER_REDIS_HOST", "redis")
    cfg = load_config()

    use_case = build_use_case(cfg, transport=build_transport(cfg))

    assert isinstance(use_case, UploadBinaryUseCase)
    assert isinstance(use_case._transport, RetryingSessionTransport)
    assert isinstance(use_case._transport._inner, HttpSessionTransport)
    assert cfg.redis_enabled


def test_build_reporter_adds_redis_only_when_configured(monkeypatch, metadata):
    monkeypatch.setenv("UPLOADER_API_BASE_URL", "http://localhost:8000")
    cfg = load_config()

    reporter = build_reporter(cfg, metadata.target)

    assert isinstance(reporter, FanOutProgressReporter)
    assert len(reporter._reporters) == 1


def test_build_use_case_keeps_injected_empty_registry(
    monkeypatch, transport, metadata, make_source
):
    monkeypatch.setenv("UPLOADER_API_BASE_URL", "http://localhost:8000")
    cfg = load_config()
    registry = UploadRegistry()

    first = build_use_case(cfg, transport=transport, registry=registry)
    second = build_use_case(cfg, transport=transport, registry=registry)

    assert first._registry is registry
    assert second._registry is registry

    async def run_both():
        return await asyncio.gather(
            first.execute(
                UploadBinaryCommand(source=make_source(30), metadata=metadata, chunk_size=10)
            ),
            second.execute(
                UploadBinaryCommand(source=make_source(30), metadata=metadata, chunk_size=10)
            ),
            return_exceptions=True,
        )

    results = asyncio.run(run_both())

    assert sum(isinstance(r, ConcurrentUploadError) for r in results) == 1
    assert len(transport.calls_of("start")) == 1
