"""Flask HTTP surface: page-view query, line ingestion and health routes."""

from flask import Flask, Response, jsonify, request

from weblog_analytics.metrics import PipelineMetrics
from weblog_analytics.query import QueryEndpoint


def create_app(query_endpoint: QueryEndpoint, sink, metrics: PipelineMetrics) -> Flask:
    """Build the app. ``sink`` is called once per submitted log line.

    Pass ``IngestionWorker.submit`` to queue lines for the worker pool, or
    ``IngestionPipeline.handle`` to count them inline.
    """
    app = Flask(__name__)

    def views():
        result = query_endpoint.handle_query()
        return Response(result.body, status=result.status, mimetype=result.content_type)

    def ingest_logs():
        text = request.get_data(as_text=True)
        submitted = 0
        rejected = 0
        # Only "\n" ends a line. str.splitlines() would also break on \x85, \u2028
        # and other characters that can legitimately appear in a user agent.
        for line in text.split("\n"):
            if line.endswith("\r"):
                line = line[:-1]
            if not line.strip():
                continue
            if sink(line) is False:
                rejected += 1
            else:
                submitted += 1
        return jsonify({"status": "accepted", "submitted": submitted, "rejected": rejected}), 202

    def pipeline_metrics():
        return jsonify(metrics.snapshot())

    def health():
        return jsonify(status="ok")

    app.add_url_rule("/views", "views", views, methods=["GET"])
    app.add_url_rule("/api/logs", "ingest_logs", ingest_logs, methods=["POST"])
    app.add_url_rule("/metrics", "metrics", pipeline_metrics, methods=["GET"])
    app.add_url_rule("/health", "health", health, methods=["GET"])
    return app


def run_app(app: Flask, host: str, port: int) -> None:
    """Run the Flask development server (blocking)."""
    app.run(host=host, port=port, use_reloader=False, threaded=True)
