"""Worker pool that drains a bounded queue of log lines into the pipeline."""

import logging
import queue
import threading

from weblog_analytics.metrics import HANDLER_ERRORS, LINES_REJECTED
from weblog_analytics.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

_STOP = object()


class IngestionWorker:
    """Runs ``pipeline.handle`` once per submitted line on N daemon threads.

    Lines are handled in no particular order. A line that blows up inside the
    pipeline is logged and counted, and the thread moves on to the next one.
    """

    def __init__(self, pipeline: IngestionPipeline, workers: int = 4, queue_size: int = 10000):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._pipeline = pipeline
        self._metrics = pipeline.metrics
        self._workers = workers
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []
        self._accepting = threading.Event()
        # Held across the accepting check and the put so that no line can land
        # behind the stop sentinels.
        self._submit_lock = threading.Lock()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._accepting.is_set()

    def start(self) -> None:
        if self._threads:
            return
        self._accepting.set()
        for i in range(self._workers):
            t = threading.Thread(target=self._run, name=f"ingest-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        logger.info("Started %d ingestion workers", self._workers)

    def submit(self, line, timeout: float = 1.0) -> bool:
        """Queue a line for handling. Returns False if it was not accepted."""
        with self._submit_lock:
            if not self._accepting.is_set():
                self._metrics.increment(LINES_REJECTED)
                return False
            try:
                if timeout <= 0:
                    self._queue.put_nowait(line)
                else:
                    self._queue.put(line, timeout=timeout)
            except queue.Full:
                self._metrics.increment(LINES_REJECTED)
                logger.warning("Ingestion queue full, rejected a line")
                return False
        return True

    def join(self) -> None:
        """Block until every queued line has been handled. Requires start()."""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting lines, let queued ones drain, then end the threads."""
        if not self._threads:
            return
        with self._submit_lock:
            self._accepting.clear()
            for _ in self._threads:
                self._queue.put(_STOP)
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = []
        logger.info("Ingestion workers stopped")

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._pipeline.handle(item)
            except Exception:
                self._metrics.increment(HANDLER_ERRORS)
                logger.exception("Unexpected error while handling a log line")
            finally:
                self._queue.task_done()
