"""Shared pytest fixtures for the web log analytics test suite."""

import pytest

from weblog_analytics.counter_store import ViewCounterStore
from weblog_analytics.metrics import PipelineMetrics
from weblog_analytics.pipeline import IngestionPipeline

REFERENCE_LINES = [
    '192.168.99.124 - - [14/Jan/2014:08:12:02 -0400] "GET /?C=M;O=A HTTP/1.1" 200 393 "-" '
    '"Mozilla/5.0 (compatible; YandexBot/3.0; +http://www.example.org/bots)"',
    '192.168.58.16 - - [14/Jan/2014:08:50:05 -0400] "GET / HTTP/1.0" 404 208 '
    '"http://www.example.org" "MSIE 7.0; Windows NT 5.1; Trident/4.0; .NET CLR 2.0.50727;'
    ' .NET CLR 3.0.4506.2152; .NET CLR"',
    '192.168.12.72 - - [14/Jan/2014:10:06:52 -0400] "GET /products HTTP/1.1" 200 581 '
    '"http://www.example.org" "Chrome/19.0.1084.15 Safari/536.5"',
    '192.168.99.124 - - [14/Jan/2014:06:51:04 -0400] "GET https://accounts.example.org/signup '
    'HTTP/1.1" 200 392 "http://www.example.org" "Mozilla/5.0 (compatible; YandexBot/3.0; '
    '+http://www.example.org/bots)"',
    '192.168.139.1 - - [14/Jan/2014:08:40:43 -0400] "GET https://accounts.example.org/signup '
    'HTTP/1.0" 200 809 "http://www.example.org" "example v4.10.5 (www.example.org)"',
]


def make_line(request: str = "GET /index.html HTTP/1.1", status: str = "200", size: str = "512") -> str:
    return (
        f'10.0.0.1 - frank [10/Oct/2000:13:55:36 -0700] "{request}" {status} {size} '
        f'"http://www.example.org/start" "curl/8.4.0"'
    )


@pytest.fixture
def reference_lines():
    return list(REFERENCE_LINES)


@pytest.fixture
def store():
    return ViewCounterStore(stripes=8)


@pytest.fixture
def metrics():
    return PipelineMetrics()


@pytest.fixture
def pipeline(store, metrics):
    return IngestionPipeline(store, metrics)
