"""Tests for the Flask HTTP routes."""

import json

import pytest

from conftest import REFERENCE_LINES, make_line
from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.query import QueryEndpoint
from weblog_analytics.storage import InMemoryKeyValueStorage
from weblog_analytics.web import create_app


@pytest.fixture
def app(pipeline, store, metrics):
    app = create_app(QueryEndpoint(store), pipeline.handle, metrics)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert json.loads(resp.data) == {"status": "ok"}


class TestViewsEndpoint:
    def test_empty_store_returns_empty_object(self, client):
        resp = client.get("/views")
        assert resp.status_code == 200
        assert resp.mimetype == "application/json"
        assert json.loads(resp.data) == {}

    def test_reference_scenario(self, client):
        resp = client.post("/api/logs", data="\n".join(REFERENCE_LINES),
                           content_type="text/plain")
        assert resp.status_code == 202

        views = json.loads(client.get("/views").data)
        assert len(views) == 4
        assert views["https://accounts.example.org/signup"] == 2

    def test_post_not_allowed(self, client):
        assert client.post("/views").status_code == 405

    def test_storage_down_returns_503(self, metrics):
        class FlakyStorage(InMemoryKeyValueStorage):
            down = False

            def scan(self):
                if self.down:
                    raise OSError("down")
                return super().scan()

        storage = FlakyStorage()
        store = ViewCounterStore(storage)
        storage.down = True
        app = create_app(QueryEndpoint(store), lambda line: True, metrics)
        resp = app.test_client().get("/views")
        assert resp.status_code == 503
        assert json.loads(resp.data)["error"] == "service unavailable"


class TestIngestEndpoint:
    def test_counts_submitted_and_rejected(self, client):
        body = REFERENCE_LINES[0] + "\n\nnot a log line\n"
        resp = client.post("/api/logs", data=body, content_type="text/plain")
        data = json.loads(resp.data)
        assert data == {"status": "accepted", "submitted": 1, "rejected": 1}

    def test_empty_body(self, client):
        resp = client.post("/api/logs", data="", content_type="text/plain")
        assert resp.status_code == 202
        assert json.loads(resp.data)["submitted"] == 0

    def test_unicode_line_separators_stay_inside_a_line(self, client, store):
        line = make_line("GET /catalog HTTP/1.1").replace("curl/8.4.0", "Agent\x85v2\u2028build")
        resp = client.post("/api/logs", data=line + "\n", content_type="text/plain; charset=utf-8")
        assert json.loads(resp.data) == {"status": "accepted", "submitted": 1, "rejected": 0}
        assert store.get("/catalog") == 1

    def test_sink_receives_each_line(self, store, metrics):
        received = []
        app = create_app(QueryEndpoint(store), received.append, metrics)
        app.test_client().post("/api/logs", data="a\r\nb\n", content_type="text/plain")
        assert received == ["a", "b"]


class TestMetricsEndpoint:
    def test_reports_pipeline_counters(self, client):
        client.post("/api/logs", data=REFERENCE_LINES[2] + "\ngarbage\n", content_type="text/plain")
        data = json.loads(client.get("/metrics").data)
        assert data["counters"]["lines_received"] == 2
        assert data["counters"]["lines_counted"] == 1
        assert data["counters"]["lines_malformed"] == 1
        assert data["uptime_seconds"] >= 0
