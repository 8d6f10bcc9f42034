from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Optional

from version_uploader.domain.chunks import ChunkRange


class LocalBinaryFile:
    """Random-access reader over a file on disk, one chunk at a time."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        if not self._path.is_file():
            raise FileNotFoundError(f"File not found: {self._path}")
        self._size = self._path.stat().st_size
        self._handle: Optional[BinaryIO] = None

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._size

    def read_range(self, chunk: ChunkRange) -> bytes:
        if self._handle is None:
            self._handle = self._path.open("rb")
        self._handle.seek(chunk.start)
        return self._handle.read(chunk.length)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "LocalBinaryFile":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
