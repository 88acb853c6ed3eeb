"""Thread-safe page-view counters with optional write-through persistence."""

import logging
import threading
from types import MappingProxyType
from typing import Mapping, Optional

from weblog_analytics.errors import StorageUnavailable
from weblog_analytics.storage import KeyValueStorage, decode_count, encode_count

logger = logging.getLogger(__name__)


class _Shard:
    __slots__ = ("lock", "counts")

    def __init__(self):
        self.lock = threading.Lock()
        self.counts: dict[str, int] = {}


class ViewCounterStore:
    """Maps request paths to view counts.

    The key space is split over ``stripes`` shards, each a dict guarded by
    its own lock, so increments on different paths rarely contend and a
    snapshot only ever holds one shard lock at a time.

    With a storage backend, the new count is written through ``put`` while
    the shard lock is held and only then applied in memory. A failed write
    raises StorageUnavailable and leaves the count unchanged.
    """

    def __init__(self, storage: Optional[KeyValueStorage] = None, stripes: int = 64):
        if stripes < 1:
            raise ValueError(f"stripes must be >= 1, got {stripes}")
        self._storage = storage
        self._shards = [_Shard() for _ in range(stripes)]
        if storage is not None:
            self._load()

    def _shard_for(self, path: str) -> _Shard:
        return self._shards[hash(path) % len(self._shards)]

    def _load(self) -> None:
        loaded = 0
        for path, count in self._scan_storage():
            shard = self._shard_for(path)
            with shard.lock:
                shard.counts[path] = count
            loaded += 1
        logger.info("Loaded %d page-view counters from storage", loaded)

    def _scan_storage(self):
        """Decoded (path, count) pairs from storage; undecodable values are skipped."""
        try:
            items = list(self._storage.scan())
        except OSError as exc:
            raise StorageUnavailable(f"storage scan failed: {exc}") from exc
        result = []
        for path, raw in items:
            try:
                result.append((path, decode_count(raw)))
            except ValueError as exc:
                logger.warning("Skipping counter %r with bad value: %s", path, exc)
        return result

    def increment(self, path: str) -> None:
        """Add one view to *path*, creating the counter on first use."""
        if not isinstance(path, str):
            raise TypeError(f"path must be str, got {type(path).__name__}")
        shard = self._shard_for(path)
        with shard.lock:
            count = shard.counts.get(path, 0) + 1
            if self._storage is not None:
                try:
                    self._storage.put(path, encode_count(count))
                except OSError as exc:
                    raise StorageUnavailable(f"storage write failed: {exc}") from exc
            shard.counts[path] = count

    def get(self, path: str) -> int:
        """Current count for *path*, 0 if it was never incremented."""
        shard = self._shard_for(path)
        with shard.lock:
            return shard.counts.get(path, 0)

    def snapshot(self) -> Mapping[str, int]:
        """Return a read-only copy of every counter.

        Shards are copied one at a time, so increments racing with the call
        may or may not be included, but every value seen is one the counter
        actually held. With a storage backend the copy is read back through
        ``scan`` and an unreachable backend raises StorageUnavailable.
        """
        if self._storage is not None:
            return MappingProxyType(dict(self._scan_storage()))

        counts: dict[str, int] = {}
        for shard in self._shards:
            with shard.lock:
                counts.update(shard.counts)
        return MappingProxyType(counts)

    def total_views(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += sum(shard.counts.values())
        return total

    def __len__(self) -> int:
        size = 0
        for shard in self._shards:
            with shard.lock:
                size += len(shard.counts)
        return size
