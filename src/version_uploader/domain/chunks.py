from __future__ import annotations

from dataclasses import dataclass
from typing import List

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5MB


@dataclass(frozen=True)
class ChunkRange:
    """Half-open byte range ``[start, end)`` of the source file."""

    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


def split_ranges(total_size: int, chunk_size: int) -> List[ChunkRange]:
    """Partition ``[0, total_size)`` into contiguous ranges of ``chunk_size``.

    Every range but the last is exactly ``chunk_size`` bytes long. An empty
    payload yields no ranges; callers reject empty files before uploading.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be greater than zero")
    if total_size < 0:
        raise ValueError("total_size must not be negative")

    return [
        ChunkRange(index=index, start=start, end=min(start + chunk_size, total_size))
        for index, start in enumerate(range(0, total_size, chunk_size))
    ]
