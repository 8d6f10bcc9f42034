from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from version_uploader.domain.chunks import ChunkRange, split_ranges
from version_uploader.domain.errors import InvalidSessionStateError


class Platform(str, Enum):
    ANDROID = "android"
    IOS = "ios"


PLATFORM_EXTENSIONS = {
    Platform.ANDROID: ".apk",
    Platform.IOS: ".ipa",
}


@dataclass(frozen=True)
class UploadTarget:
    app_identifier: str
    platform: Platform
    version: str

    def __str__(self) -> str:
        return f"{self.app_identifier}/{self.platform.value}/{self.version}"


@dataclass(frozen=True)
class UploadMetadata:
    app_identifier: str
    version: str
    version_code: int
    platform: Platform
    is_mandatory: bool = False
    changelog: Tuple[str, ...] = ()

    @property
    def target(self) -> UploadTarget:
        return UploadTarget(
            app_identifier=self.app_identifier,
            platform=self.platform,
            version=self.version,
        )


@dataclass(frozen=True)
class CommittedArtifact:
    version: str
    platform: str
    final_size: int
    content_hash: Optional[str] = None
    download_url: Optional[str] = None
    version_id: Optional[int] = None


@dataclass(frozen=True)
class ProgressEvent:
    percentage: float
    chunk_index: int
    total_chunks: int
    session_id: str
    bytes_transferred: int
    total_size: int


class SessionState(str, Enum):
    CREATED = "created"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    COMMITTED = "committed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.COMMITTED, SessionState.FAILED})

_TRANSITIONS = {
    SessionState.CREATED: {SessionState.UPLOADING, SessionState.FAILED},
    SessionState.UPLOADING: {SessionState.COMPLETING, SessionState.FAILED},
    SessionState.COMPLETING: {SessionState.COMMITTED, SessionState.FAILED},
    SessionState.COMMITTED: set(),
    SessionState.FAILED: set(),
}


@dataclass
class UploadSession:
    """Client-side view of one in-flight transfer.

    Owned by the use case that created it. The server-assigned
    ``session_id`` is only known once the session leaves ``CREATED``.
    """

    file_name: str
    total_size: int
    chunk_size: int
    metadata: UploadMetadata
    session_id: Optional[str] = None
    state: SessionState = SessionState.CREATED
    completed_chunks: Set[int] = field(default_factory=set)
    ranges: List[ChunkRange] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.ranges = split_ranges(self.total_size, self.chunk_size)

    @property
    def total_chunks(self) -> int:
        return len(self.ranges)

    @property
    def is_complete(self) -> bool:
        return len(self.completed_chunks) == self.total_chunks

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def progress(self) -> float:
        if self.total_chunks == 0:
            return 0.0
        return len(self.completed_chunks) / self.total_chunks * 100

    @property
    def bytes_transferred(self) -> int:
        return sum(self.ranges[index].length for index in self.completed_chunks)

    def mark_started(self, session_id: str) -> None:
        self._transition(SessionState.UPLOADING)
        self.session_id = session_id

    def mark_chunk_completed(self, index: int) -> None:
        if self.state is not SessionState.UPLOADING:
            raise InvalidSessionStateError(
                "chunks can only be acknowledged while uploading",
                session_id=self.session_id,
                state=self.state.value,
            )
        if not 0 <= index < self.total_chunks:
            raise InvalidSessionStateError(
                "chunk index out of range",
                session_id=self.session_id,
                index=index,
                total_chunks=self.total_chunks,
            )
        self.completed_chunks.add(index)

    def begin_completing(self) -> None:
        if not self.is_complete:
            raise InvalidSessionStateError(
                "cannot complete before every chunk is acknowledged",
                session_id=self.session_id,
                completed_chunks=len(self.completed_chunks),
                total_chunks=self.total_chunks,
            )
        self._transition(SessionState.COMPLETING)

    def mark_committed(self) -> None:
        self._transition(SessionState.COMMITTED)

    def mark_failed(self) -> None:
        if self.state is SessionState.FAILED:
            return
        self._transition(SessionState.FAILED)

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidSessionStateError(
                f"illegal transition {self.state.value} -> {new_state.value}",
                session_id=self.session_id,
            )
        self.state = new_state
