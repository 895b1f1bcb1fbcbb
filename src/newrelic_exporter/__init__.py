"""Prometheus exporter for New Relic application metrics."""

from newrelic_exporter.adapters.frameworks.asgi import create_asgi_app
from newrelic_exporter.adapters.http.client import APIConfig, NewRelicAPI
from newrelic_exporter.config import ExporterSettings
from newrelic_exporter.core.errors import (
    ConfigError,
    DecodeError,
    ExporterError,
    TransportError,
    UpstreamStatusError,
)
from newrelic_exporter.core.exporter import Exporter
from newrelic_exporter.core.models import Sample, ScrapeWindow
from newrelic_exporter.core.registry import MetricRegistry
from newrelic_exporter.core.scrape import Scraper

__all__ = [
    "APIConfig",
    "ConfigError",
    "DecodeError",
    "Exporter",
    "ExporterError",
    "ExporterSettings",
    "MetricRegistry",
    "NewRelicAPI",
    "Sample",
    "ScrapeWindow",
    "Scraper",
    "TransportError",
    "UpstreamStatusError",
    "create_asgi_app",
]
