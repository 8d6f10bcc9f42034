from __future__ import annotations

from version_uploader.application.exclusivity import UploadRegistry
from version_uploader.application.interfaces import ProgressReporter, SessionTransport
from version_uploader.application.retry import RetryingSessionTransport, RetryPolicy
from version_uploader.application.upload_binary import UploadBinaryUseCase
from version_uploader.config import UploaderConfig, load_config
from version_uploader.domain.upload import UploadTarget
from version_uploader.infrastructure.http_transport import HttpSessionTransport
from version_uploader.infrastructure.progress import (
    LoggingProgressReporter,
    RedisProgressPublisher,
    fan_out,
)


def build_transport(config: UploaderConfig) -> HttpSessionTransport:
    return HttpSessionTransport(
        base_url=config.api_base_url,
        path_prefix=config.path_prefix,
        api_key=config.api_key,
        auth_token=config.auth_token,
        timeout_seconds=config.timeout_seconds,
    )


def build_use_case(
    config: UploaderConfig | None = None,
    *,
    transport: SessionTransport | None = None,
    registry: UploadRegistry | None = None,
) -> UploadBinaryUseCase:
    cfg = config or load_config()
    session_transport: SessionTransport = transport or build_transport(cfg)
    if cfg.chunk_max_retries > 0:
        session_transport = RetryingSessionTransport(
            session_transport,
            RetryPolicy(
                max_retries=cfg.chunk_max_retries,
                initial_delay=cfg.retry_initial_delay_seconds,
                max_delay=cfg.retry_max_delay_seconds,
            ),
        )
    return UploadBinaryUseCase(
        transport=session_transport,
        registry=registry if registry is not None else UploadRegistry(),
        max_file_size=cfg.max_file_size_bytes,
    )


def build_reporter(config: UploaderConfig, target: UploadTarget) -> ProgressReporter:
    reporters: list[ProgressReporter] = [LoggingProgressReporter()]
    if config.redis_enabled:
        reporters.append(
            RedisProgressPublisher(
                target=target,
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                channel_prefix=config.redis_channel_prefix,
                socket_timeout_seconds=config.redis_socket_timeout_seconds,
            )
        )
    return fan_out(*reporters)
