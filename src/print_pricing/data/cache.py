"""
Reference Data Cache - Read-through holder for the current snapshot.

The snapshot is loaded on first use and reused by every request until an
admin write calls invalidate(). Requests already holding a snapshot keep it.
"""
import logging
import threading
from typing import Callable, Optional

from ..engine.snapshot import ReferenceSnapshot

logger = logging.getLogger(__name__)


class ReferenceDataCache:
    """Thread-safe read-through cache around a snapshot loader."""

    def __init__(self, loader: Callable[[], ReferenceSnapshot]):
        self._loader = loader
        self._lock = threading.Lock()
        self._snapshot: Optional[ReferenceSnapshot] = None
        self.version = 0

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def snapshot(self) -> ReferenceSnapshot:
        """Current snapshot, loading it if the cache is empty."""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._loader()
                self.version += 1
                logger.info("Reference data loaded (version %s)", self.version)
            return self._snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next read reloads it."""
        with self._lock:
            if self._snapshot is not None:
                logger.info("Reference data invalidated (version %s)", self.version)
            self._snapshot = None
