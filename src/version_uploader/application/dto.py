from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from version_uploader.application.cancellation import CancellationToken
from version_uploader.application.interfaces import BinarySource, ProgressReporter
from version_uploader.domain.chunks import DEFAULT_CHUNK_SIZE
from version_uploader.domain.upload import UploadMetadata


@dataclass(frozen=True)
class UploadBinaryCommand:
    source: BinarySource
    metadata: UploadMetadata
    chunk_size: int = DEFAULT_CHUNK_SIZE
    reporter: Optional[ProgressReporter] = None
    cancellation: Optional[CancellationToken] = None
