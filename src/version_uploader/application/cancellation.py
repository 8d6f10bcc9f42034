from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """Flag polled by the upload loop before each chunk is sent.

    Safe to set from another thread, e.g. a UI or signal handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason
