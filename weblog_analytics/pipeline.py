"""Per-line ingestion: parse, extract the path, count the view."""

import logging

from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.errors import MalformedInput, StorageUnavailable
from weblog_analytics.metrics import (
    INCREMENTS_DROPPED,
    LINES_COUNTED,
    LINES_MALFORMED,
    LINES_RECEIVED,
    PipelineMetrics,
)
from weblog_analytics.parser import parse_line
from weblog_analytics.request_path import extract_path

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Feeds raw access-log lines into a ViewCounterStore.

    ``handle`` never raises for bad input or a failing storage backend: the
    line is dropped, logged and counted in the metrics, and the next line is
    processed as usual.
    """

    def __init__(self, store: ViewCounterStore, metrics: PipelineMetrics | None = None):
        self._store = store
        self.metrics = metrics if metrics is not None else PipelineMetrics()

    @property
    def store(self) -> ViewCounterStore:
        return self._store

    def handle(self, raw) -> bool:
        """Count one line. Returns True if a view was recorded."""
        self.metrics.increment(LINES_RECEIVED)
        try:
            record = parse_line(raw)
            path = extract_path(record.request_line)
        except MalformedInput as exc:
            self.metrics.increment(LINES_MALFORMED)
            logger.debug("Dropping malformed line (%s): %r", exc.reason, raw)
            return False

        try:
            self._store.increment(path)
        except StorageUnavailable as exc:
            self.metrics.increment(INCREMENTS_DROPPED)
            logger.warning("Dropped view for %s: %s", path, exc)
            return False

        self.metrics.increment(LINES_COUNTED)
        return True
