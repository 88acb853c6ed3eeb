"""Tests for the page-view query endpoint."""

import json

import pytest

from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.errors import SerializationFailure
from weblog_analytics.query import QueryEndpoint, serialize_views
from weblog_analytics.storage import InMemoryKeyValueStorage


class UnreachableStorage(InMemoryKeyValueStorage):
    reachable = True

    def scan(self):
        if not self.reachable:
            raise OSError("no route to host")
        return super().scan()


class StubStore:
    def __init__(self, views):
        self._views = views

    def snapshot(self):
        return self._views


class TestHandleQuery:
    def test_empty_store(self, store):
        resp = QueryEndpoint(store).handle_query()
        assert resp.status == 200
        assert json.loads(resp.body) == {}
        assert resp.content_type == "application/json"

    def test_full_mapping(self, store):
        store.increment("/products")
        store.increment("https://accounts.example.org/signup")
        store.increment("https://accounts.example.org/signup")
        resp = QueryEndpoint(store).handle_query()
        assert resp.status == 200
        assert json.loads(resp.body) == {
            "/products": 1,
            "https://accounts.example.org/signup": 2,
        }

    def test_repeated_queries_identical(self, store):
        store.increment("/a")
        endpoint = QueryEndpoint(store)
        assert endpoint.handle_query() == endpoint.handle_query()

    def test_unreachable_storage_is_503(self):
        storage = UnreachableStorage()
        store = ViewCounterStore(storage)
        store.increment("/a")
        storage.reachable = False
        resp = QueryEndpoint(store).handle_query()
        assert resp.status == 503
        assert json.loads(resp.body) == {"error": "service unavailable"}

    def test_unserializable_snapshot_is_500(self):
        resp = QueryEndpoint(StubStore({"/a": object()})).handle_query()
        assert resp.status == 500
        assert json.loads(resp.body) == {"error": "internal error"}


class TestSerializeViews:
    def test_sorted_json_object(self):
        assert serialize_views({"/b": 2, "/a": 1}) == '{"/a": 1, "/b": 2}'

    def test_unicode_paths(self):
        assert json.loads(serialize_views({"/café": 3})) == {"/café": 3}

    @pytest.mark.parametrize("views", [{"/a": -1}, {"/a": 1.5}, {"/a": True}, {1: 1}])
    def test_rejects_non_count_values(self, views):
        with pytest.raises(SerializationFailure):
            serialize_views(views)
