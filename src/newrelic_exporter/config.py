"""Exporter settings and their validation."""

from dataclasses import dataclass

import httpx

from newrelic_exporter.adapters.http.client import DEFAULT_API_SERVER, APIConfig
from newrelic_exporter.core.errors import ConfigError
from newrelic_exporter.core.exporter import DEFAULT_PERIOD

DEFAULT_LISTEN_ADDRESS = ":9126"
DEFAULT_METRICS_PATH = "/metrics"
DEFAULT_TIMEOUT = 10.0


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts; an empty host means all interfaces.

    Example:
        >>> parse_listen_address(":9126")
        ('0.0.0.0', 9126)

    Raises:
        ConfigError: The address has no valid port.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit() or not 0 < int(port) < 65536:
        raise ConfigError(f"Invalid listen address: {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def _validate_server(server: str) -> None:
    try:
        url = httpx.URL(server)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"Could not parse API URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Could not parse API URL: {server!r}")


@dataclass(frozen=True)
class ExporterSettings:
    """Validated runtime settings.

    Attributes:
        api_key: New Relic REST API key. Required.
        api_server: Base URL of the New Relic API.
        api_period: Length in seconds of the window each scrape summarizes.
        api_timeout: Per-request timeout in seconds.
        listen_address: ``host:port`` to serve on.
        metrics_path: Path of the metrics endpoint.
        log_level: Log level name.
    """

    api_key: str
    api_server: str = DEFAULT_API_SERVER
    api_period: int = DEFAULT_PERIOD
    api_timeout: float = DEFAULT_TIMEOUT
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    metrics_path: str = DEFAULT_METRICS_PATH
    log_level: str = "info"

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigError("Cannot continue without an API key.")
        _validate_server(self.api_server)
        if self.api_period <= 0:
            raise ConfigError(f"API period must be positive, got {self.api_period}")
        if self.api_timeout <= 0:
            raise ConfigError(f"API timeout must be positive, got {self.api_timeout}")
        if not self.metrics_path.startswith("/") or self.metrics_path == "/":
            raise ConfigError(f"Invalid metrics path: {self.metrics_path!r}")
        parse_listen_address(self.listen_address)

    @property
    def host(self) -> str:
        return parse_listen_address(self.listen_address)[0]

    @property
    def port(self) -> int:
        return parse_listen_address(self.listen_address)[1]

    def api_config(self) -> APIConfig:
        return APIConfig(
            api_key=self.api_key,
            server=self.api_server,
            timeout=self.api_timeout,
        )
