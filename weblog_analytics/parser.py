"""Strict parser for Combined-Log-Format access lines.

Expected layout (nine fields):

    IP ID USER [TIMESTAMP] "REQUEST_LINE" STATUS SIZE "REFERRER" "USER_AGENT"

A line either matches the whole layout or is rejected. There is no
best-effort recovery of individual fields.
"""

import re

from weblog_analytics.errors import MalformedInput
from weblog_analytics.models import LogRecord

# Quoted fields accept backslash-escaped quotes, kept verbatim.
_ACCESS_LOG_RE = re.compile(
    r'(?P<client>\S+) (?P<identity>\S+) (?P<user>\S+) '
    r'\[(?P<timestamp>[^\]]+)\] '
    r'"(?P<request>(?:[^"\\]|\\.)*)" '
    r'(?P<status>\d{3}) '
    r'(?P<size>\d+) '
    r'"(?P<referrer>(?:[^"\\]|\\.)*)" '
    r'"(?P<user_agent>(?:[^"\\]|\\.)*)"'
)


def _strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def parse_line(raw) -> LogRecord:
    """Parse one access-log line into a LogRecord.

    Accepts ``str`` or UTF-8 ``bytes``. Raises MalformedInput when the line
    does not match the nine-field layout exactly.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"line is not valid UTF-8: {exc}", raw) from exc
    if not isinstance(raw, str):
        raise MalformedInput(f"expected text, got {type(raw).__name__}", raw)

    line = _strip_terminator(raw)
    if not line:
        raise MalformedInput("empty line", raw)

    m = _ACCESS_LOG_RE.fullmatch(line)
    if not m:
        raise MalformedInput("line does not match access log layout", raw)

    return LogRecord(
        client_address=m.group("client"),
        identity=m.group("identity"),
        user=m.group("user"),
        timestamp=m.group("timestamp"),
        request_line=m.group("request"),
        status_code=int(m.group("status")),
        response_size=int(m.group("size")),
        referrer=m.group("referrer"),
        user_agent=m.group("user_agent"),
    )
