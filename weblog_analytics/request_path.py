"""Extract the request target from an HTTP request line."""

from weblog_analytics.errors import MalformedInput


def split_request(request_line: str) -> tuple[str, str, str]:
    """Split 'GET /path HTTP/1.1' into (method, target, rest).

    ``rest`` is everything after the target (usually the protocol), or an
    empty string for HTTP/0.9-style lines with no protocol token.
    """
    parts = request_line.split(None, 2)
    if len(parts) < 2:
        raise MalformedInput("request line has fewer than two tokens", request_line)
    method, target = parts[0], parts[1]
    rest = parts[2] if len(parts) == 3 else ""
    return method, target, rest


def extract_path(request_line: str) -> str:
    """Return the request target verbatim.

    Query strings are kept and absolute URIs are not reduced to their path,
    so ``/signup`` and ``https://host/signup`` count as different pages.
    """
    return split_request(request_line)[1]
