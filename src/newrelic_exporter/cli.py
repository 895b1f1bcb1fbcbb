"""'newrelic-exporter' command line entry point."""

import logging

import click
import uvicorn

from newrelic_exporter.adapters.frameworks.asgi import ASGIApp, create_asgi_app
from newrelic_exporter.adapters.http.client import DEFAULT_API_SERVER, NewRelicAPI
from newrelic_exporter.adapters.logging import LEVEL_CHOICES, configure_logging, parse_level
from newrelic_exporter.config import (
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_METRICS_PATH,
    DEFAULT_TIMEOUT,
    ExporterSettings,
)
from newrelic_exporter.core.errors import ConfigError
from newrelic_exporter.core.exporter import DEFAULT_PERIOD, Exporter

logger = logging.getLogger(__name__)


def build_app(settings: ExporterSettings) -> ASGIApp:
    """Wire the API client, exporter and ASGI app for ``settings``."""
    api = NewRelicAPI(settings.api_config())
    exporter = Exporter(api, period=settings.api_period)
    return create_asgi_app(exporter, settings.metrics_path)


@click.command()
@click.option("--api.key", "api_key", envvar="NEWRELIC_API_KEY", default="", help="NewRelic API key.")
@click.option(
    "--api.server",
    "api_server",
    envvar="NEWRELIC_API_SERVER",
    default=DEFAULT_API_SERVER,
    show_default=True,
    help="NewRelic API URL.",
)
@click.option(
    "--api.period",
    "api_period",
    envvar="NEWRELIC_API_PERIOD",
    type=int,
    default=DEFAULT_PERIOD,
    show_default=True,
    help="Period of data to extract in seconds.",
)
@click.option(
    "--api.timeout",
    "api_timeout",
    envvar="NEWRELIC_API_TIMEOUT",
    type=float,
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Timeout of each API request in seconds.",
)
@click.option(
    "--web.listen-address",
    "listen_address",
    default=DEFAULT_LISTEN_ADDRESS,
    show_default=True,
    help="Address to listen on for web interface and telemetry.",
)
@click.option(
    "--web.telemetry-path",
    "metrics_path",
    default=DEFAULT_METRICS_PATH,
    show_default=True,
    help="Path under which to expose metrics.",
)
@click.option(
    "--log.level",
    "log_level",
    type=click.Choice(LEVEL_CHOICES, case_sensitive=False),
    default="info",
    show_default=True,
    help="Only log messages with the given severity or above.",
)
def main(
    api_key: str,
    api_server: str,
    api_period: int,
    api_timeout: float,
    listen_address: str,
    metrics_path: str,
    log_level: str,
) -> None:
    """Export New Relic application metrics for Prometheus."""
    try:
        settings = ExporterSettings(
            api_key=api_key,
            api_server=api_server,
            api_period=api_period,
            api_timeout=api_timeout,
            listen_address=listen_address,
            metrics_path=metrics_path,
            log_level=log_level,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    configure_logging(settings.log_level)
    app = build_app(settings)

    logger.info("Listening on %s", settings.listen_address)
    uvicorn_level = logging.getLevelName(parse_level(settings.log_level)).lower()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=uvicorn_level)
    logger.info("HTTP server stopped")
