"""Progress sinks for the upload use case."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Iterable

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from version_uploader.application.interfaces import ProgressReporter
from version_uploader.domain.upload import ProgressEvent, UploadTarget

logger = logging.getLogger(__name__)


class LoggingProgressReporter(ProgressReporter):
    def report(self, event: ProgressEvent) -> None:
        logger.info(
            f"Upload progress: {event.percentage:.1f}% "
            f"(chunk {event.chunk_index + 1}/{event.total_chunks}, "
            f"session {event.session_id})"
        )


class CallbackProgressReporter(ProgressReporter):
    """Adapt a plain ``on_progress(percentage, chunk, total)`` callable."""

    def __init__(self, callback: Callable[[float, int, int], Any]) -> None:
        self._callback = callback

    def report(self, event: ProgressEvent) -> None:
        self._callback(event.percentage, event.chunk_index + 1, event.total_chunks)


class FanOutProgressReporter(ProgressReporter):
    def __init__(self, reporters: Iterable[ProgressReporter]) -> None:
        self._reporters = list(reporters)

    def report(self, event: ProgressEvent) -> None:
        for reporter in self._reporters:
            try:
                reporter.report(event)
            except Exception:
                logger.exception(f"Progress sink {reporter!r} failed")


def fan_out(*reporters: ProgressReporter) -> ProgressReporter:
    return FanOutProgressReporter(reporters)


class RedisProgressPublisher(ProgressReporter):
    """Publishes progress events for one target to a Redis channel.

    The latest event is also kept in a hash so late subscribers can read the
    current state.
    """

    def __init__(
        self,
        *,
        target: UploadTarget,
        host: str | None = None,
        port: int = 6379,
        db: int = 0,
        channel_prefix: str = "upload",
        status_ttl_seconds: int = 3600,
        socket_timeout_seconds: float = 1.0,
        client: Redis | None = None,
    ) -> None:
        if client is None and host is None:
            raise ValueError("Either a Redis client or a host is required")
        self._redis = client or Redis(
            host=host,
            port=port,
            db=db,
            socket_connect_timeout=socket_timeout_seconds,
            socket_timeout=socket_timeout_seconds,
        )
        self._target = target
        self._channel = (
            f"{channel_prefix}:{target.app_identifier}"
            f":{target.platform.value}:{target.version}"
        )
        self._status_ttl_seconds = status_ttl_seconds
        self._unreachable = False

    @property
    def channel(self) -> str:
        return self._channel

    def report(self, event: ProgressEvent) -> None:
        if self._unreachable:
            return
        payload = {
            "type": "progress",
            "target": str(self._target),
            "session_id": event.session_id,
            "percentage": event.percentage,
            "chunk_index": event.chunk_index,
            "total_chunks": event.total_chunks,
            "bytes_transferred": event.bytes_transferred,
            "total_size": event.total_size,
            "timestamp": time.time(),
        }
        status_key = f"{self._channel}:status"
        try:
            self._redis.hset(
                status_key,
                mapping={
                    "session_id": event.session_id,
                    "percentage": str(event.percentage),
                    "chunk_index": str(event.chunk_index),
                    "total_chunks": str(event.total_chunks),
                },
            )
            self._redis.expire(status_key, self._status_ttl_seconds)
            self._redis.publish(self._channel, json.dumps(payload))
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._unreachable = True
            logger.error(
                f"Redis unreachable, disabling progress publishing for {self._target}: {exc}"
            )
        except RedisError as exc:
            logger.error(f"Failed to publish upload progress for {self._target}: {exc}")
