#!/usr/bin/env python3
"""Entry point for the Web Log Analytics service."""

import argparse
import json
import logging
import os
import signal
import sys
import threading

from watchdog.observers import Observer

from weblog_analytics.config import load_config
from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.errors import StorageUnavailable
from weblog_analytics.metrics import PipelineMetrics
from weblog_analytics.pipeline import IngestionPipeline
from weblog_analytics.query import QueryEndpoint
from weblog_analytics.storage import FileKeyValueStorage, open_storage
from weblog_analytics.watcher import LogDirectoryWatcher, read_batch
from weblog_analytics.web import create_app, run_app
from weblog_analytics.worker import IngestionWorker

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Count page views from web access logs")
    parser.add_argument("--config", "-c", help="Path to YAML config (default: $CONFIG_PATH or config.yml)")
    parser.add_argument("--replay", "-r", metavar="FILE", help="Ingest an existing access log before serving")
    parser.add_argument("--no-serve", action="store_true",
                        help="Only replay, print the page views as JSON and exit")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s %(message)s",
        stream=sys.stderr,
    )
    logger.info("Config: %s", config)

    storage = open_storage(config)
    store = ViewCounterStore(storage, stripes=config.lock_stripes)
    metrics = PipelineMetrics()
    pipeline = IngestionPipeline(store, metrics)

    worker = IngestionWorker(pipeline, workers=config.workers, queue_size=config.queue_size)
    worker.start()

    try:
        if args.replay:
            lines = read_batch(args.replay)
            for line in lines:
                worker.submit(line, timeout=5.0)
            worker.join()
            logger.info("Replayed %d lines from %s", len(lines), args.replay)

        if args.no_serve:
            print(json.dumps(dict(store.snapshot()), indent=2, sort_keys=True))
            return 0

        return _serve(config, store, metrics, worker)
    finally:
        worker.stop()
        if storage is not None:
            _close_storage(storage)


def _close_storage(storage) -> None:
    try:
        if isinstance(storage, FileKeyValueStorage):
            storage.compact()
    except StorageUnavailable as e:
        logger.error("Could not compact storage on shutdown: %s", e)
    finally:
        storage.close()


def _serve(config, store, metrics, worker) -> int:
    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    observer = None
    if config.watch_dir:
        os.makedirs(config.watch_dir, exist_ok=True)
        watcher = LogDirectoryWatcher(config.watch_dir, worker.submit)
        n = watcher.process_existing_files(read_from_start=config.read_from_start)
        logger.info("Ingested %d existing lines from %s", n, config.watch_dir)
        observer = Observer()
        observer.schedule(watcher, config.watch_dir, recursive=False)
        observer.start()
        logger.info("Watching %s for access logs", config.watch_dir)

    app = create_app(QueryEndpoint(store), worker.submit, metrics)
    web_thread = threading.Thread(target=run_app, args=(app, config.host, config.port), daemon=True)
    web_thread.start()
    logger.info("Serving page views on http://%s:%d/views", config.host, config.port)

    shutdown_event.wait()

    if observer is not None:
        observer.stop()
        observer.join(timeout=5)
    logger.info("Final metrics: %s", metrics.snapshot())
    return 0


if __name__ == "__main__":
    sys.exit(main())
