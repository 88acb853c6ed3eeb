"""Structured access-log record produced by the line parser."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LogRecord:
    client_address: str
    identity: str
    user: str
    timestamp: str
    request_line: str
    status_code: int
    response_size: int
    referrer: str
    user_agent: str
