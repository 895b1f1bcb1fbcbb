"""Metric registry shared between scrape cycles and the metrics endpoint.

Series are created lazily, one per normalized metric name, and never
removed. Every public method takes the registry lock for the duration of a
single operation only.
"""

import logging
import re
import threading
from dataclasses import dataclass, field

from newrelic_exporter.core.models import Sample

logger = logging.getLogger(__name__)

NAMESPACE = "newrelic"
LABEL_NAMES = ("app", "component")

LAST_SCRAPE_DURATION = f"{NAMESPACE}_exporter_last_scrape_duration_seconds"
SCRAPES_TOTAL = f"{NAMESPACE}_exporter_scrapes_total"
LAST_SCRAPE_ERROR = f"{NAMESPACE}_exporter_last_scrape_error"

# Names the fixed series occupy in the exposition, counter suffixes included
RESERVED_NAMES = frozenset(
    {
        LAST_SCRAPE_DURATION,
        LAST_SCRAPE_ERROR,
        SCRAPES_TOTAL,
        SCRAPES_TOTAL.removesuffix("_total"),
        SCRAPES_TOTAL.removesuffix("_total") + "_created",
    }
)

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]+")


def normalize_metric_name(name: str) -> str:
    """Map an upstream field name to an exportable metric identifier.

    Runs of characters outside ``[a-zA-Z0-9_:]`` collapse to one underscore
    and the result is prefixed with the ``newrelic`` namespace.

    Example:
        >>> normalize_metric_name("average_response_time")
        'newrelic_average_response_time'
        >>> normalize_metric_name("Apdex/score")
        'newrelic_Apdex_score'
    """
    return f"{NAMESPACE}_{_INVALID_NAME_CHARS.sub('_', name)}"


@dataclass(frozen=True)
class SeriesDescriptor:
    """Name, type and labels of an exported series."""

    name: str
    kind: str
    documentation: str
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class SeriesSnapshot:
    """Copy of one series' labelled values at collection time."""

    descriptor: SeriesDescriptor
    values: dict[tuple[str, str], float]


@dataclass(frozen=True)
class RegistrySnapshot:
    """Everything the registry exports, copied under the lock."""

    last_scrape_duration: float
    scrapes_total: float
    last_scrape_error: float
    series: list[SeriesSnapshot] = field(default_factory=list)


FIXED_SERIES = (
    SeriesDescriptor(LAST_SCRAPE_DURATION, "gauge", "The last scrape duration."),
    SeriesDescriptor(SCRAPES_TOTAL, "counter", "Total scrapes of the New Relic API."),
    SeriesDescriptor(LAST_SCRAPE_ERROR, "gauge", "The last scrape error status."),
)


class GaugeSeries:
    """Current values of one metric, keyed by (app, component)."""

    def __init__(self, identifier: str, source_name: str) -> None:
        self.identifier = identifier
        self.source_name = source_name
        self._values: dict[tuple[str, str], float] = {}

    @property
    def descriptor(self) -> SeriesDescriptor:
        return SeriesDescriptor(
            name=self.identifier,
            kind="gauge",
            documentation=f"New Relic metric value '{self.source_name}'.",
            labels=LABEL_NAMES,
        )

    def set(self, app: str, component: str, value: float) -> None:
        self._values[(app, component)] = value

    def values(self) -> dict[tuple[str, str], float]:
        return dict(self._values)


class MetricRegistry:
    """Thread-safe store of every series the exporter has seen."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._series: dict[str, GaugeSeries] = {}
        self._last_scrape_duration = 0.0
        self._scrapes_total = 0
        self._last_scrape_error = 0

    def ingest(self, sample: Sample) -> None:
        """Record ``sample``, creating its series on first sight.

        Samples whose name normalizes onto one of the exporter's own series
        are dropped.
        """
        identifier = normalize_metric_name(sample.name)
        if identifier in RESERVED_NAMES:
            logger.debug("Dropping sample %r: %s is reserved", sample.name, identifier)
            return
        with self._lock:
            series = self._series.get(identifier)
            if series is None:
                series = GaugeSeries(identifier, sample.name)
                self._series[identifier] = series
            series.set(sample.app, sample.category, sample.value)

    def describe(self) -> list[SeriesDescriptor]:
        """Return descriptors of every dynamic and fixed series."""
        with self._lock:
            dynamic = [series.descriptor for series in self._series.values()]
        return dynamic + list(FIXED_SERIES)

    def collect_snapshot(self) -> RegistrySnapshot:
        """Copy the current value of every series."""
        with self._lock:
            return RegistrySnapshot(
                last_scrape_duration=self._last_scrape_duration,
                scrapes_total=float(self._scrapes_total),
                last_scrape_error=float(self._last_scrape_error),
                series=[
                    SeriesSnapshot(series.descriptor, series.values())
                    for series in self._series.values()
                ],
            )

    def begin_scrape(self) -> None:
        """Count a new scrape cycle."""
        with self._lock:
            self._scrapes_total += 1

    def finish_scrape(self, duration: float, failed: bool) -> None:
        """Record the duration and error status of a finished cycle."""
        with self._lock:
            self._last_scrape_duration = duration
            self._last_scrape_error = 1 if failed else 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._series)
