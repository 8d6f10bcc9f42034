"""Error taxonomy for the chunked upload pipeline.

Validation and exclusivity errors are raised before any network call.
Transport errors (create / chunk / complete) wrap the underlying failure as
``__cause__`` and carry enough session context for an operator to decide
between retrying the same session and starting over.
"""

from __future__ import annotations

from typing import Any, Optional


class UploadError(Exception):
    phase: str = "upload"

    def __init__(self, reason: str, **context: Any) -> None:
        self.reason = reason
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(
            f"{k}={v!r}" for k, v in self.context.items() if v is not None
        )
        message = f"[{self.phase}] {self.reason}"
        return f"{message} ({ctx_str})" if ctx_str else message

    def to_dict(self) -> dict[str, Any]:
        return {"phase": self.phase, "reason": self.reason, **self.context}


class ValidationError(UploadError):
    phase = "validation"


class ConcurrentUploadError(UploadError):
    phase = "exclusivity"

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__("an upload for this target is already in flight", target=str(target))


class InvalidSessionStateError(UploadError):
    phase = "state"


class TransportError(UploadError):
    def __init__(
        self,
        reason: str,
        *,
        session_id: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ) -> None:
        self.session_id = session_id
        self.status_code = status_code
        super().__init__(
            reason, session_id=session_id, status_code=status_code, **context
        )


class SessionCreateError(TransportError):
    phase = "start"


class ChunkUploadError(TransportError):
    phase = "chunk"

    def __init__(
        self,
        reason: str,
        *,
        index: int,
        session_id: Optional[str] = None,
        status_code: Optional[int] = None,
        completed_chunks: Optional[int] = None,
        total_chunks: Optional[int] = None,
        bytes_transferred: Optional[int] = None,
    ) -> None:
        self.index = index
        self.completed_chunks = completed_chunks
        self.total_chunks = total_chunks
        self.bytes_transferred = bytes_transferred
        super().__init__(
            reason,
            session_id=session_id,
            status_code=status_code,
            index=index,
            completed_chunks=completed_chunks,
            total_chunks=total_chunks,
            bytes_transferred=bytes_transferred,
        )

    def attach_progress(
        self, *, completed_chunks: int, total_chunks: int, bytes_transferred: int
    ) -> None:
        self.completed_chunks = completed_chunks
        self.total_chunks = total_chunks
        self.bytes_transferred = bytes_transferred
        self.context.update(
            completed_chunks=completed_chunks,
            total_chunks=total_chunks,
            bytes_transferred=bytes_transferred,
        )
        self.args = (self._format_message(),)


class SessionCompleteError(TransportError):
    """Finalization failed.

    ``retryable`` is true when the server reports missing chunks or the link
    failed; re-uploading can still succeed. Corrupt sessions are fatal and
    must be restarted with a new session.
    """

    phase = "complete"

    def __init__(
        self,
        reason: str,
        *,
        retryable: bool,
        session_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.retryable = retryable
        super().__init__(
            reason, session_id=session_id, status_code=status_code, retryable=retryable
        )


class UploadCancelledError(UploadError):
    phase = "cancelled"
