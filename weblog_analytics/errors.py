"""Exception hierarchy for the page-view pipeline."""


class WebLogAnalyticsError(Exception):
    """Base class for every error raised by this package."""


class MalformedInput(WebLogAnalyticsError, ValueError):
    """A log line or request field failed structural validation."""

    def __init__(self, reason: str, raw=None):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class StorageUnavailable(WebLogAnalyticsError):
    """The key-value storage backing the counter store could not be reached."""


class SerializationFailure(WebLogAnalyticsError):
    """A snapshot could not be rendered as a response body."""


class ConfigError(WebLogAnalyticsError, ValueError):
    """A configuration value is missing or out of range."""
