"""HTTP client adapters for the New Relic API."""

from newrelic_exporter.adapters.http.client import APIConfig, NewRelicAPI

__all__ = ["APIConfig", "NewRelicAPI"]
