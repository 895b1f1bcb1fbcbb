"""Example: serve the exporter with any ASGI server.

Run with:
    NEWRELIC_API_KEY=<key> uvicorn examples.exporter_app:app --port 9126

Endpoints:
    /          - Index page
    /metrics   - Prometheus text format (runs one scrape of the New Relic API)

Settings are read from the same environment variables as the
``newrelic-exporter`` command (NEWRELIC_API_KEY, NEWRELIC_API_SERVER,
NEWRELIC_API_PERIOD, NEWRELIC_API_TIMEOUT).
"""

import os

from newrelic_exporter.adapters.logging import configure_logging
from newrelic_exporter.cli import build_app
from newrelic_exporter.config import ExporterSettings

settings = ExporterSettings(
    api_key=os.environ.get("NEWRELIC_API_KEY", ""),
    api_server=os.environ.get("NEWRELIC_API_SERVER", "https://api.newrelic.com"),
    api_period=int(os.environ.get("NEWRELIC_API_PERIOD", "60")),
    api_timeout=float(os.environ.get("NEWRELIC_API_TIMEOUT", "10")),
)

configure_logging("debug")
app = build_app(settings)
