"""Key-value storage backends for persisting page-view counters.

Counts are stored as 8-byte big-endian unsigned integers. The file backend is
an append-only NDJSON journal, one ``{"k": key, "v": hex}`` object per put,
replayed on open with last-write-wins semantics.
"""

import json
import logging
import os
import struct
import tempfile
import threading
from typing import Iterator, Optional, Protocol

from weblog_analytics.config import Config
from weblog_analytics.errors import ConfigError, StorageUnavailable

logger = logging.getLogger(__name__)

_COUNT_STRUCT = struct.Struct(">Q")


def encode_count(count: int) -> bytes:
    """Serialize a non-negative count as 8 big-endian bytes."""
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    try:
        return _COUNT_STRUCT.pack(count)
    except struct.error as exc:
        raise ValueError(f"count {count} does not fit in 64 bits") from exc


def decode_count(value: bytes) -> int:
    """Inverse of encode_count. Raises ValueError on a wrong-width payload."""
    if len(value) != _COUNT_STRUCT.size:
        raise ValueError(f"expected {_COUNT_STRUCT.size} bytes, got {len(value)}")
    return _COUNT_STRUCT.unpack(value)[0]


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, value: bytes) -> None: ...

    def scan(self) -> Iterator[tuple[str, bytes]]: ...

    def close(self) -> None: ...


class InMemoryKeyValueStorage:
    """Dict-backed storage. Useful for tests and single-process deployments."""

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def scan(self) -> Iterator[tuple[str, bytes]]:
        with self._lock:
            items = list(self._data.items())
        return iter(items)

    def close(self) -> None:
        pass


class FileKeyValueStorage:
    """Durable storage backed by an append-only journal file.

    Every put is appended and flushed before it returns. The latest value per
    key is also held in memory so get() and scan() never touch the disk.

    The journal is compacted on open when it holds superseded lines, and
    again once ``compact_every`` superseded lines pile up, so
    its size tracks the number of keys rather than the number of puts.
    """

    def __init__(self, path: str, compact_every: int = 10000):
        if compact_every < 1:
            raise ValueError(f"compact_every must be >= 1, got {compact_every}")
        self._path = path
        self._compact_every = compact_every
        self._lock = threading.Lock()
        self._data: dict[str, bytes] = {}
        self._journal_lines = 0
        self._file = None
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._replay()
            self._file = open(path, "a", encoding="utf-8")
        except OSError as exc:
            raise StorageUnavailable(f"cannot open storage at {path}: {exc}") from exc
        if self._journal_lines > len(self._data):
            try:
                self.compact()
            except StorageUnavailable:
                self.close()
                raise
        logger.info("Opened counter journal %s (%d keys)", path, len(self._data))

    @property
    def path(self) -> str:
        return self._path

    @property
    def journal_lines(self) -> int:
        """Lines currently in the journal file, superseded ones included."""
        with self._lock:
            return self._journal_lines

    def _replay(self) -> None:
        if not os.path.exists(self._path):
            return
        skipped = 0
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                self._journal_lines += 1
                try:
                    entry = json.loads(line)
                    self._data[entry["k"]] = bytes.fromhex(entry["v"])
                except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                    skipped += 1
        if skipped:
            logger.warning("Skipped %d unreadable journal lines in %s", skipped, self._path)

    def _check_open(self) -> None:
        if self._file is None:
            raise StorageUnavailable(f"storage at {self._path} is closed")

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            self._check_open()
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        line = json.dumps({"k": key, "v": bytes(value).hex()}) + "\n"
        with self._lock:
            self._check_open()
            try:
                self._file.write(line)
                self._file.flush()
            except OSError as exc:
                raise StorageUnavailable(f"write to {self._path} failed: {exc}") from exc
            self._data[key] = bytes(value)
            self._journal_lines += 1

            if self._journal_lines - len(self._data) >= self._compact_every:
                try:
                    self._compact_locked()
                except StorageUnavailable as exc:
                    # The put itself is durable; compaction is retried on the next put.
                    logger.warning("Background compaction skipped: %s", exc)

    def scan(self) -> Iterator[tuple[str, bytes]]:
        with self._lock:
            self._check_open()
            items = list(self._data.items())
        return iter(items)

    def compact(self) -> None:
        """Rewrite the journal with only the latest value of each key."""
        with self._lock:
            self._check_open()
            self._compact_locked()

    def _compact_locked(self) -> None:
        """Must be called with self._lock held."""
        directory = os.path.dirname(self._path) or "."
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for key, value in self._data.items():
                    f.write(json.dumps({"k": key, "v": value.hex()}) + "\n")
            os.replace(tmp, self._path)
        except OSError as exc:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageUnavailable(f"compaction of {self._path} failed: {exc}") from exc
        # The old handle still points at the replaced inode.
        self._file.close()
        try:
            self._file = open(self._path, "a", encoding="utf-8")
        except OSError as exc:
            self._file = None
            raise StorageUnavailable(f"cannot reopen {self._path}: {exc}") from exc
        self._journal_lines = len(self._data)
        logger.info("Compacted counter journal %s (%d keys)", self._path, len(self._data))

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


def open_storage(config: Config) -> Optional[KeyValueStorage]:
    """Build the storage backend named by the config.

    The ``memory`` backend returns None: the counter store keeps its counts in
    its own shards and nothing survives a restart.
    """
    if config.storage_backend == "memory":
        return None
    if config.storage_backend == "file":
        return FileKeyValueStorage(config.storage_path)
    raise ConfigError(f"unknown storage backend: {config.storage_backend!r}")
