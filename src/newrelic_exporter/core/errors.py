"""Exception hierarchy for the exporter.

Scrape-time errors (transport, upstream status, decode) are caught where
they occur and folded into the cycle's error flag. ``ConfigError`` is the
only error that is fatal, and only at startup.
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class TransportError(ExporterError):
    """The upstream API could not be reached."""


class UpstreamStatusError(ExporterError):
    """The upstream API answered with a status other than 200.

    Attributes:
        status_code: HTTP status code of the rejected response.
        reason: Reason phrase sent with the status.
        url: URL of the rejected request.
    """

    def __init__(self, status_code: int, reason: str, url: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        self.url = url
        super().__init__(f"Bad response code: {status_code} {reason}".rstrip())


class DecodeError(ExporterError):
    """A payload was not valid JSON or did not have the expected shape."""


class ConfigError(ExporterError):
    """Startup configuration is missing or invalid."""
