from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from version_uploader.domain.errors import ConcurrentUploadError
from version_uploader.domain.upload import UploadSession, UploadTarget

logger = logging.getLogger(__name__)


class UploadRegistry:
    """Map of upload target to the session currently uploading it.

    One registry is shared by every use case that must not race on the same
    (app, platform, version) tuple.
    """

    def __init__(self) -> None:
        self._active: Dict[UploadTarget, UploadSession] = {}
        self._lock = threading.Lock()

    @contextmanager
    def claim(self, target: UploadTarget, session: UploadSession) -> Iterator[None]:
        with self._lock:
            if target in self._active:
                logger.warning(f"Rejected concurrent upload for {target}")
                raise ConcurrentUploadError(target)
            self._active[target] = session
        try:
            yield
        finally:
            with self._lock:
                if self._active.get(target) is session:
                    del self._active[target]

    def active_session(self, target: UploadTarget) -> Optional[UploadSession]:
        with self._lock:
            return self._active.get(target)

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)
