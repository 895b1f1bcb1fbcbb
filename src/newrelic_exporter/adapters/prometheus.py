"""Prometheus text exposition of the MetricRegistry via prometheus_client."""

from collections.abc import Iterator

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector, CollectorRegistry

from newrelic_exporter.core.registry import (
    FIXED_SERIES,
    LAST_SCRAPE_DURATION,
    LAST_SCRAPE_ERROR,
    SCRAPES_TOTAL,
    MetricRegistry,
    SeriesDescriptor,
)


def _family(descriptor: SeriesDescriptor) -> GaugeMetricFamily | CounterMetricFamily:
    if descriptor.kind == "counter":
        return CounterMetricFamily(
            descriptor.name, descriptor.documentation, labels=list(descriptor.labels)
        )
    return GaugeMetricFamily(
        descriptor.name, descriptor.documentation, labels=list(descriptor.labels)
    )


class RegistryCollector(Collector):
    """Custom collector that reads a MetricRegistry on every collection."""

    def __init__(self, registry: MetricRegistry) -> None:
        self.registry = registry

    def describe(self) -> Iterator[Metric]:
        for descriptor in self.registry.describe():
            yield _family(descriptor)

    def collect(self) -> Iterator[Metric]:
        snapshot = self.registry.collect_snapshot()
        fixed_values = {
            LAST_SCRAPE_DURATION: snapshot.last_scrape_duration,
            SCRAPES_TOTAL: snapshot.scrapes_total,
            LAST_SCRAPE_ERROR: snapshot.last_scrape_error,
        }
        for descriptor in FIXED_SERIES:
            family = _family(descriptor)
            family.add_metric([], fixed_values[descriptor.name])
            yield family

        for series in snapshot.series:
            family = _family(series.descriptor)
            for (app, component), value in sorted(series.values.items()):
                family.add_metric([app, component], value)
            yield family


def build_collector_registry(registry: MetricRegistry) -> CollectorRegistry:
    """Return a dedicated CollectorRegistry exporting ``registry``."""
    collectors = CollectorRegistry(auto_describe=False)
    collectors.register(RegistryCollector(registry))
    return collectors


def render_latest(collectors: CollectorRegistry) -> tuple[str, str]:
    """Render the text exposition.

    Returns:
        Tuple of (body, content type).
    """
    return generate_latest(collectors).decode("utf-8"), CONTENT_TYPE_LATEST
