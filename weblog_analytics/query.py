"""Read side: serialize a counter snapshot into a response."""

import json
import logging
from dataclasses import dataclass

from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.errors import SerializationFailure, StorageUnavailable

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_INTERNAL_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503


@dataclass(frozen=True)
class QueryResponse:
    status: int
    body: str
    content_type: str = "application/json"


def serialize_views(views) -> str:
    """Render a path -> count mapping as a JSON object."""
    for path, count in views.items():
        if not isinstance(path, str) or isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise SerializationFailure(f"cannot serialize entry {path!r}: {count!r}")
    try:
        return json.dumps(dict(views), sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise SerializationFailure(str(exc)) from exc


def _error(status: int, message: str) -> QueryResponse:
    return QueryResponse(status=status, body=json.dumps({"error": message}))


class QueryEndpoint:
    def __init__(self, store: ViewCounterStore):
        self._store = store

    def handle_query(self) -> QueryResponse:
        """Return every page-view count, or an error response."""
        try:
            views = self._store.snapshot()
        except StorageUnavailable as exc:
            logger.error("Counter storage unavailable: %s", exc)
            return _error(HTTP_SERVICE_UNAVAILABLE, "service unavailable")

        try:
            body = serialize_views(views)
        except SerializationFailure as exc:
            logger.error("Failed to serialize page views: %s", exc)
            return _error(HTTP_INTERNAL_ERROR, "internal error")

        return QueryResponse(status=HTTP_OK, body=body)
