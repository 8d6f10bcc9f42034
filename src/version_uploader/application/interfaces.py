from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from version_uploader.domain.chunks import ChunkRange
    from version_uploader.domain.upload import (
        CommittedArtifact,
        ProgressEvent,
        UploadMetadata,
    )


class SessionTransport(Protocol):
    async def start(
        self, metadata: "UploadMetadata", total_size: int, file_name: str
    ) -> str: ...

    async def upload_chunk(self, session_id: str, index: int, data: bytes) -> None: ...

    async def complete(self, session_id: str) -> "CommittedArtifact": ...


class ProgressReporter(Protocol):
    def report(self, event: "ProgressEvent") -> None: ...


class BinarySource(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def size(self) -> int: ...

    def read_range(self, chunk: "ChunkRange") -> bytes: ...
