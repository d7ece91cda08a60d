"""Process-local cache of the last good global snapshot."""

import logging
import threading

from saviour.grid.models import Case, Snapshot

logger = logging.getLogger(__name__)


class LocalCache:
    """Hold the most recent successfully decoded snapshot.

    The cache lives as long as the client process and is never persisted. It
    is overwritten on every successful pull and read only when a remote
    round trip fails.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = Snapshot()

    def store(self, snapshot: Snapshot) -> None:
        """Replace the cached snapshot."""
        with self._lock:
            self._snapshot = Snapshot(
                cases=list(snapshot.cases), timestamp=snapshot.timestamp
            )
        logger.debug(
            f"Cached snapshot with {len(snapshot.cases)} cases (t={snapshot.timestamp})"
        )

    def snapshot(self) -> Snapshot:
        """Return a copy of the cached snapshot."""
        with self._lock:
            return Snapshot(
                cases=list(self._snapshot.cases), timestamp=self._snapshot.timestamp
            )

    @property
    def cases(self) -> list[Case]:
        return self.snapshot().cases

    @property
    def timestamp(self) -> int:
        with self._lock:
            return self._snapshot.timestamp

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._snapshot.cases

    def clear(self) -> None:
        """Forget the cached snapshot."""
        with self._lock:
            self._snapshot = Snapshot()
