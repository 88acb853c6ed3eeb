"""Directory watcher: tails every .log file and hands new lines to a sink."""

import logging
import os
import threading
from dataclasses import dataclass

from watchdog.events import FileSystemEventHandler

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".log"


def read_batch(path: str) -> list[str]:
    """Read all non-empty lines from a file, line terminators removed."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.rstrip("\r\n") for line in f if line.strip()]


@dataclass
class _FileState:
    offset: int = 0
    inode: int = 0


class LogDirectoryWatcher(FileSystemEventHandler):
    """Follows appends to ``*.log`` files in one directory.

    Only complete lines are delivered. A trailing fragment without a newline
    stays on disk until a later event finds it terminated. When a file shrinks
    or is replaced (new inode) it is read again from the start.
    """

    def __init__(self, directory: str, sink):
        super().__init__()
        self._directory = directory
        self._sink = sink
        self._files: dict[str, _FileState] = {}
        self._lock = threading.Lock()

    def on_created(self, event):
        if not event.is_directory and str(event.src_path).endswith(LOG_SUFFIX):
            self.read_new_lines(str(event.src_path))

    def on_modified(self, event):
        if not event.is_directory and str(event.src_path).endswith(LOG_SUFFIX):
            self.read_new_lines(str(event.src_path))

    def on_moved(self, event):
        if not event.is_directory and str(event.dest_path).endswith(LOG_SUFFIX):
            self.read_new_lines(str(event.dest_path))

    def process_existing_files(self, read_from_start: bool = True) -> int:
        """Register the .log files already present at startup.

        With ``read_from_start`` their current contents are ingested, otherwise
        only lines appended from now on are.
        """
        if not os.path.isdir(self._directory):
            return 0
        total = 0
        for name in sorted(os.listdir(self._directory)):
            if not name.endswith(LOG_SUFFIX):
                continue
            path = os.path.join(self._directory, name)
            if read_from_start:
                total += self.read_new_lines(path)
            else:
                try:
                    stat = os.stat(path)
                except OSError:
                    continue
                with self._lock:
                    self._files[path] = _FileState(offset=stat.st_size, inode=stat.st_ino)
        return total

    def read_new_lines(self, path: str) -> int:
        """Deliver complete lines appended since the last read. Returns the count."""
        with self._lock:
            try:
                stat = os.stat(path)
            except FileNotFoundError:
                self._files.pop(path, None)
                return 0

            state = self._files.setdefault(path, _FileState(inode=stat.st_ino))
            if stat.st_ino != state.inode or stat.st_size < state.offset:
                logger.info("Rotation or truncation detected for %s", path)
                state.offset = 0
                state.inode = stat.st_ino
            if stat.st_size <= state.offset:
                return 0

            try:
                with open(path, "rb") as f:
                    f.seek(state.offset)
                    data = f.read()
            except OSError as e:
                logger.error("Failed to read %s: %s", path, e)
                return 0

            end = data.rfind(b"\n")
            if end < 0:
                return 0
            state.offset += end + 1
            lines = data[:end].split(b"\n")

        delivered = 0
        for line in lines:
            line = line.rstrip(b"\r")
            if not line.strip():
                continue
            self._sink(line)
            delivered += 1
        logger.debug("Read %d new lines from %s", delivered, path)
        return delivered
