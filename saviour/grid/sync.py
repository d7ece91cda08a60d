"""Sync engine for the emergency grid.

Every client keeps a local view of the shared case list and converges on the
global snapshot held by the relay. The relay can only return or replace the
whole blob, so all consistency logic lives here:

- Background pulls on a fixed interval, applied only when the snapshot is
  newer than the last one applied (or the local view is empty)
- The atomic update protocol used by every mutation: pull fresh, upsert the
  case by id, push the merged list, adopt the merged list locally
- Local optimistic fallback whenever the protocol cannot complete

The update protocol is a read-modify-write with no version check between the
read and the write. Two clients racing it from the same base snapshot lose
one of the two upserts: the last whole-snapshot write wins.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from saviour.grid import metrics as grid_metrics
from saviour.grid.cache import LocalCache
from saviour.grid.client import Delivery, GridStoreClient
from saviour.grid.codec import decode_snapshot, encode_snapshot, now_ms
from saviour.grid.exceptions import GridError
from saviour.grid.models import Case, Snapshot
from saviour.grid.sync_config import GridConfig

logger = logging.getLogger(__name__)

ViewListener = Callable[[list[Case]], None]


class SyncStatus(str, Enum):
    """User-visible sync indicator."""

    ONLINE = "online"
    SYNCING = "syncing"
    ERROR = "error"


def upsert(cases: list[Case], case: Case) -> list[Case]:
    """Merge a case into a list by id.

    An existing case with the same id is replaced in place; otherwise the
    case is prepended. The input list is not modified.
    """
    for index, existing in enumerate(cases):
        if existing.id == case.id:
            merged = list(cases)
            merged[index] = case
            return merged
    return [case, *cases]


class SyncEngine:
    """Keep one client's view of the case list in step with the global node."""

    def __init__(
        self,
        client: GridStoreClient,
        poll_interval: float = 7.0,
        cache: Optional[LocalCache] = None,
        metrics: Optional[grid_metrics.MetricsClient] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize sync engine.

        Args:
            client: Grid store client
            poll_interval: Seconds between background pulls
            cache: Local cache of the last good snapshot (a fresh one by default)
            metrics: Metrics client (the global one by default)
            clock: Source of epoch milliseconds for outgoing snapshots
        """
        self.client = client
        self.poll_interval = poll_interval
        self.cache = cache or LocalCache()
        self.metrics = metrics or grid_metrics.get_metrics_client()
        self.clock = clock

        self.status = SyncStatus.ONLINE
        self.last_applied_timestamp = 0

        self._view: list[Case] = []
        # Bumped by every local mutation; a pull that began before the latest
        # mutation must not overwrite it
        self._generation = 0
        self._view_lock = threading.Lock()
        self._pull_lock = threading.Lock()
        self._listeners: list[ViewListener] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: GridConfig, **kwargs) -> "SyncEngine":
        """Build an engine (and its store client) from a GridConfig."""
        http_client = kwargs.pop("http_client", None)
        client = GridStoreClient.from_config(config, http_client=http_client)
        return cls(client, poll_interval=config.poll_interval, **kwargs)

    @property
    def cases(self) -> list[Case]:
        """Copy of the local view."""
        with self._view_lock:
            return list(self._view)

    def on_change(self, listener: ViewListener) -> None:
        """Register a callback invoked with the new view whenever it changes."""
        self._listeners.append(listener)

    def _notify(self, view: list[Case]) -> None:
        self.metrics.gauge(grid_metrics.VIEW_SIZE, len(view))
        for listener in self._listeners:
            listener(list(view))

    def _replace_view(self, cases: list[Case]) -> list[Case]:
        with self._view_lock:
            self._generation += 1
            self._view = list(cases)
            view = list(self._view)
        self._notify(view)
        return view

    def fetch_snapshot(self) -> Snapshot:
        """Read the global snapshot straight from the relay.

        An empty node yields the cached snapshot. A successful read refreshes
        the cache.

        Returns:
            Current global snapshot

        Raises:
            RemoteUnavailable: Relay unreachable or answered with an error
            DecodeMalformed: Payload is not a snapshot
        """
        with self.metrics.timer(grid_metrics.PULL_DURATION):
            text = self.client.fetch_blob()

        snapshot = decode_snapshot(text)
        if snapshot is None:
            logger.debug("Global node holds no value, using cached snapshot")
            return self.cache.snapshot()

        self.cache.store(snapshot)
        return snapshot

    def read_global(self) -> Snapshot:
        """Read the global snapshot, falling back to the cache on any failure."""
        try:
            return self.fetch_snapshot()
        except GridError as e:
            logger.warning(f"Global read failed, serving cached snapshot: {e}")
            return self.cache.snapshot()

    def tick(self) -> bool:
        """Run one background pull.

        At most one pull runs at a time; a tick that finds another pull in
        flight is dropped rather than queued.

        Returns:
            True if a pull ran, False if the tick was dropped
        """
        if not self._pull_lock.acquire(blocking=False):
            logger.debug("Pull already in flight, dropping tick")
            self.metrics.incr(grid_metrics.PULL_SKIPPED)
            return False

        try:
            self.status = SyncStatus.SYNCING
            with self._view_lock:
                generation = self._generation
            try:
                snapshot = self.fetch_snapshot()
            except GridError as e:
                logger.warning(f"Pull failed: {e}")
                self.metrics.incr(grid_metrics.PULL_ERROR)
                self.status = SyncStatus.ERROR
                return True

            self.metrics.incr(grid_metrics.PULL_SUCCESS)
            self._apply_pulled(snapshot, generation)
            self.status = SyncStatus.ONLINE
            return True
        finally:
            self._pull_lock.release()

    def _apply_pulled(self, snapshot: Snapshot, generation: int) -> None:
        with self._view_lock:
            if generation != self._generation:
                logger.debug(
                    f"Dropping snapshot t={snapshot.timestamp}, a local update "
                    "landed while it was in flight"
                )
                return
            stale = (
                snapshot.timestamp <= self.last_applied_timestamp and bool(self._view)
            )
            if stale:
                return
            self._view = list(snapshot.cases)
            self.last_applied_timestamp = snapshot.timestamp
            view = list(self._view)

        logger.debug(
            f"Applied snapshot t={snapshot.timestamp} with {len(view)} cases"
        )
        self._notify(view)

    def atomic_update(self, case: Case) -> list[Case]:
        """Pull, upsert ``case`` by id, and push the merged list.

        The pull is always a fresh read, never the cache. There is no version
        check between the pull and the push.

        Args:
            case: Case to create or replace

        Returns:
            The merged case list that was pushed

        Raises:
            RemoteUnavailable: Pull failed, or push failed with no secondary path
            DecodeMalformed: Pulled payload is not a snapshot
        """
        snapshot = self.fetch_snapshot()
        merged = upsert(snapshot.cases, case)

        timestamp = self.clock()
        delivery = self.client.replace_blob(encode_snapshot(merged, timestamp))

        if delivery is Delivery.CONFIRMED:
            self.metrics.incr(grid_metrics.PUSH_CONFIRMED)
            self.cache.store(Snapshot(cases=merged, timestamp=timestamp))
        else:
            self.metrics.incr(grid_metrics.PUSH_UNVERIFIED)
            logger.warning(f"Update of {case.id} sent unverified")

        return merged

    def apply_update(self, case: Case) -> list[Case]:
        """Run the atomic update and adopt its result as the local view.

        If the protocol cannot complete, the same upsert is applied to the
        local view only, and the next successful pull reconciles it.

        Args:
            case: Case to create or replace

        Returns:
            The new local view
        """
        try:
            merged = self.atomic_update(case)
        except GridError as e:
            logger.warning(f"Update of {case.id} failed ({e}), applying locally")
            self.metrics.incr(grid_metrics.UPDATE_FALLBACK)
            self.status = SyncStatus.ERROR
            with self._view_lock:
                self._generation += 1
                self._view = upsert(self._view, case)
                view = list(self._view)
            self._notify(view)
            return view

        return self._replace_view(merged)

    def start(self) -> None:
        """Start background polling: one pull now, then one per interval."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop, name="grid-sync", daemon=True
        )
        self._thread.start()
        logger.info(f"Grid sync started (every {self.poll_interval}s)")

    def _poll_loop(self) -> None:
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Unexpected error during pull: {e}")
                self.status = SyncStatus.ERROR
            if self._stop_event.wait(self.poll_interval):
                break

    def stop(self, timeout: float = 5.0) -> None:
        """Stop background polling."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Grid sync stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
