"""
Bounded per-chunk retry with exponential backoff.

The upload use case never retries on its own. Wrapping a transport in
``RetryingSessionTransport`` re-sends a failed chunk index before the
failure reaches the use case; the server stores chunks by index, so a
duplicate submission overwrites the earlier one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from version_uploader.application.interfaces import SessionTransport
from version_uploader.domain.errors import ChunkUploadError
from version_uploader.domain.upload import CommittedArtifact, UploadMetadata

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 425, 429}


def is_transient(error: ChunkUploadError) -> bool:
    """Network failures, timeouts and 5xx/408/429 answers are worth retrying."""
    if error.status_code is None:
        return True
    return error.status_code >= 500 or error.status_code in _RETRYABLE_STATUS


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    def delays(self):
        delay = self.initial_delay
        for _ in range(self.max_retries):
            yield delay
            delay = min(delay * self.exponential_base, self.max_delay)


class RetryingSessionTransport:
    def __init__(
        self,
        inner: SessionTransport,
        policy: RetryPolicy,
        *,
        should_retry: Callable[[ChunkUploadError], bool] = is_transient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._inner = inner
        self._policy = policy
        self._should_retry = should_retry
        self._sleep = sleep

    async def start(
        self, metadata: UploadMetadata, total_size: int, file_name: str
    ) -> str:
        return await self._inner.start(metadata, total_size, file_name)

    async def upload_chunk(self, session_id: str, index: int, data: bytes) -> None:
        delays = self._policy.delays()
        attempt = 1
        while True:
            try:
                await self._inner.upload_chunk(session_id, index, data)
            except ChunkUploadError as exc:
                delay = next(delays, None)
                if delay is None or not self._should_retry(exc):
                    if attempt > 1:
                        logger.error(
                            f"Chunk {index} of session {session_id} failed after "
                            f"{attempt} attempts: {exc}"
                        )
                    raise
                logger.warning(
                    f"Attempt {attempt}/{self._policy.max_retries + 1} for chunk "
                    f"{index} failed: {exc}. Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(f"Chunk {index} succeeded on attempt {attempt}")
            return

    async def complete(self, session_id: str) -> CommittedArtifact:
        return await self._inner.complete(session_id)
