from __future__ import annotations

import asyncio
import hashlib

import pytest

from version_uploader.domain.chunks import ChunkRange
from version_uploader.domain.errors import ChunkUploadError, SessionCompleteError
from version_uploader.domain.upload import (
    CommittedArtifact,
    Platform,
    UploadMetadata,
)

MIB = 1024 * 1024


class FakeSource:
    def __init__(self, payload: bytes, name: str = "app-release.apk") -> None:
        self._payload = payload
        self._name = name
        self.reads: list[int] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._payload)

    def read_range(self, chunk: ChunkRange) -> bytes:
        self.reads.append(chunk.index)
        return self._payload[chunk.start : chunk.end]


class FakeTransport:
    """In-memory version-storage server keyed by upload id and chunk index."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.sessions: dict[str, dict] = {}
        self.start_error: Exception | None = None
        self.complete_error: Exception | None = None
        self.chunk_failures: dict[int, int] = {}
        self.chunk_status_code: int | None = 503

    async def start(self, metadata, total_size, file_name):
        self.calls.append(("start", metadata.target, total_size, file_name))
        await asyncio.sleep(0)
        if self.start_error is not None:
            raise self.start_error
        upload_id = f"upl_{len(self.sessions) + 1}"
        self.sessions[upload_id] = {
            "metadata": metadata,
            "total_size": total_size,
            "chunks": {},
        }
        return upload_id

    async def upload_chunk(self, session_id, index, data):
        self.calls.append(("chunk", session_id, index, len(data)))
        await asyncio.sleep(0)
        remaining = self.chunk_failures.get(index, 0)
        if remaining:
            self.chunk_failures[index] = remaining - 1
            raise ChunkUploadError(
                "storage unavailable",
                index=index,
                session_id=session_id,
                status_code=self.chunk_status_code,
            )
        self.sessions[session_id]["chunks"][index] = bytes(data)

    async def complete(self, session_id):
        self.calls.append(("complete", session_id))
        await asyncio.sleep(0)
        if self.complete_error is not None:
            raise self.complete_error
        session = self.sessions[session_id]
        ordered = [session["chunks"][i] for i in sorted(session["chunks"])]
        payload = b"".join(ordered)
        if len(payload) != session["total_size"]:
            raise SessionCompleteError(
                "chunks missing", retryable=True, session_id=session_id, status_code=409
            )
        metadata = session["metadata"]
        return CommittedArtifact(
            version=metadata.version,
            platform=metadata.platform.value,
            final_size=len(payload),
            content_hash=hashlib.sha256(payload).hexdigest(),
        )

    def calls_of(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


class RecordingReporter:
    def __init__(self) -> None:
        self.events = []

    def report(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def metadata() -> UploadMetadata:
    return UploadMetadata(
        app_identifier="com.example.shop",
        version="1.4.0",
        version_code=42,
        platform=Platform.ANDROID,
        is_mandatory=False,
        changelog=("Fix login crash",),
    )


@pytest.fixture
def make_source():
    def _make(size: int, name: str = "app-release.apk") -> FakeSource:
        payload = bytes((i * 31 + 7) % 251 for i in range(min(size, 4096)))
        repeated = (payload * (size // max(len(payload), 1) + 1))[:size]
        return FakeSource(repeated, name=name)

    return _make

