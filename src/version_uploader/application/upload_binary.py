from __future__ import annotations

import logging
from typing import Optional

from version_uploader.application.dto import UploadBinaryCommand
from version_uploader.application.exclusivity import UploadRegistry
from version_uploader.application.interfaces import ProgressReporter, SessionTransport
from version_uploader.application.validation import validate_upload
from version_uploader.domain.errors import ChunkUploadError, UploadCancelledError
from version_uploader.domain.upload import (
    CommittedArtifact,
    ProgressEvent,
    UploadSession,
)

logger = logging.getLogger(__name__)


class UploadBinaryUseCase:
    """Drive one chunked upload from ``start`` to ``complete``.

    Chunks are sent strictly in ascending index order and chunk ``i + 1`` is
    not read until chunk ``i`` is acknowledged, so at most one chunk buffer is
    held in memory. Any failure leaves the session ``FAILED``; a new
    ``execute`` call starts a fresh server-side session.
    """

    def __init__(
        self,
        *,
        transport: SessionTransport,
        registry: UploadRegistry,
        max_file_size: int,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._max_file_size = max_file_size

    async def execute(self, command: UploadBinaryCommand) -> CommittedArtifact:
        source = command.source
        validate_upload(
            file_name=source.name,
            file_size=source.size,
            chunk_size=command.chunk_size,
            metadata=command.metadata,
            max_file_size=self._max_file_size,
        )

        session = UploadSession(
            file_name=source.name,
            total_size=source.size,
            chunk_size=command.chunk_size,
            metadata=command.metadata,
        )
        with self._registry.claim(command.metadata.target, session):
            try:
                return await self._run(session, command)
            except BaseException:
                if not session.is_terminal:
                    session.mark_failed()
                raise

    async def _run(
        self, session: UploadSession, command: UploadBinaryCommand
    ) -> CommittedArtifact:
        metadata = command.metadata
        self._raise_if_cancelled(session, command)
        session_id = await self._transport.start(
            metadata, session.total_size, session.file_name
        )
        session.mark_started(session_id)
        logger.info(
            f"Started upload session {session_id} for {metadata.target} "
            f"({session.total_size} bytes, {session.total_chunks} chunks)"
        )

        for chunk in session.ranges:
            self._raise_if_cancelled(session, command)
            try:
                try:
                    data = command.source.read_range(chunk)
                except OSError as exc:
                    raise ChunkUploadError(
                        f"failed to read chunk from {session.file_name}: {exc}",
                        index=chunk.index,
                        session_id=session_id,
                    ) from exc
                if len(data) != chunk.length:
                    raise ChunkUploadError(
                        f"read {len(data)} bytes, expected {chunk.length}",
                        index=chunk.index,
                        session_id=session_id,
                    )
                await self._transport.upload_chunk(session_id, chunk.index, data)
            except ChunkUploadError as exc:
                exc.attach_progress(
                    completed_chunks=len(session.completed_chunks),
                    total_chunks=session.total_chunks,
                    bytes_transferred=session.bytes_transferred,
                )
                logger.error(f"Upload session {session_id} failed: {exc}")
                raise

            session.mark_chunk_completed(chunk.index)
            logger.debug(
                f"Chunk {chunk.index + 1}/{session.total_chunks} acknowledged "
                f"for session {session_id}"
            )
            self._notify(
                command.reporter,
                ProgressEvent(
                    percentage=session.progress,
                    chunk_index=chunk.index,
                    total_chunks=session.total_chunks,
                    session_id=session_id,
                    bytes_transferred=session.bytes_transferred,
                    total_size=session.total_size,
                ),
            )

        self._raise_if_cancelled(session, command)
        session.begin_completing()
        artifact = await self._transport.complete(session_id)
        session.mark_committed()
        logger.info(
            f"Committed upload session {session_id}: version={artifact.version} "
            f"platform={artifact.platform} size={artifact.final_size}"
        )
        return artifact

    @staticmethod
    def _raise_if_cancelled(
        session: UploadSession, command: UploadBinaryCommand
    ) -> None:
        token = command.cancellation
        if token is None or not token.is_cancelled:
            return
        logger.warning(
            f"Upload of {session.metadata.target} cancelled after "
            f"{len(session.completed_chunks)}/{session.total_chunks} chunks"
        )
        raise UploadCancelledError(
            token.reason or "cancelled by caller",
            session_id=session.session_id,
            completed_chunks=len(session.completed_chunks),
            total_chunks=session.total_chunks,
        )

    @staticmethod
    def _notify(reporter: Optional[ProgressReporter], event: ProgressEvent) -> None:
        if reporter is None:
            return
        try:
            reporter.report(event)
        except Exception:
            logger.exception(
                f"Progress reporter failed on chunk {event.chunk_index}; continuing"
            )
