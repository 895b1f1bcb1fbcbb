"""Core domain models for New Relic scrape data."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

APPLICATION_SUMMARY = "application_summary"
END_USER_SUMMARY = "end_user_summary"

# Timeslice values are an open mapping; the API mixes numbers with strings
# and nulls in the same object.
TimesliceValue = float | int | str | bool | None


def is_numeric(value: object) -> bool:
    """Return True for real numbers that can be exported as a sample."""
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float))


def to_float(value: object) -> float | None:
    """Return ``value`` as a float, or None when it cannot be exported.

    JSON integers are unbounded; those beyond float range are not exportable.
    """
    if not is_numeric(value):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except OverflowError:
        return None


def format_rfc3339(moment: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC timestamp with second precision."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Application:
    """A monitored application from the application list.

    Attributes:
        id: New Relic application id.
        name: Application name, used as the ``app`` label.
        health_status: Health colour reported by the API (e.g. green).
        application_summary: Server-side summary values by field name.
        end_user_summary: Browser-side summary values by field name.
    """

    id: int
    name: str
    health_status: str = "unknown"
    application_summary: Mapping[str, float] = field(default_factory=dict)
    end_user_summary: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ApplicationList:
    """All applications returned by one (possibly paginated) list request."""

    applications: tuple[Application, ...] = ()


@dataclass(frozen=True)
class MetricName:
    """One entry of a metric name catalog.

    Attributes:
        name: Metric name, e.g. ``Datastore/statement/JDBC/messages/insert``.
        values: Value fields available for the metric. Metadata only.
    """

    name: str
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricNameCatalog:
    """Metric names available for one application."""

    metrics: tuple[MetricName, ...] = ()

    @property
    def names(self) -> list[str]:
        return [metric.name for metric in self.metrics]


@dataclass(frozen=True)
class Timeslice:
    """A single timeslice of metric values."""

    start: str = ""
    end: str = ""
    values: Mapping[str, TimesliceValue] = field(default_factory=dict)

    def numeric_values(self) -> dict[str, float]:
        """Return only the fields whose value converts to a float."""
        numeric = {name: to_float(value) for name, value in self.values.items()}
        return {name: value for name, value in numeric.items() if value is not None}


@dataclass(frozen=True)
class MetricData:
    """Timeslices returned for one metric name."""

    name: str
    timeslices: tuple[Timeslice, ...] = ()


@dataclass(frozen=True)
class MetricDataSet:
    """Metric data for one application, merged across requests.

    Attributes:
        metrics: Data per metric name.
        metrics_not_found: Requested names the API did not recognise.
    """

    metrics: tuple[MetricData, ...] = ()
    metrics_not_found: tuple[str, ...] = ()

    def merge(self, other: "MetricDataSet") -> "MetricDataSet":
        """Return a new data set holding the entries of both."""
        return MetricDataSet(
            metrics=self.metrics + other.metrics,
            metrics_not_found=self.metrics_not_found + other.metrics_not_found,
        )


@dataclass(frozen=True)
class Sample:
    """One flattened observation passed from the scraper to the registry.

    Attributes:
        app: Application name.
        name: Value field name (e.g. ``call_count``).
        value: Observed value.
        category: ``application_summary``, ``end_user_summary`` or the
            metric name the value belongs to.
    """

    app: str
    name: str
    value: float
    category: str


@dataclass(frozen=True)
class ScrapeWindow:
    """Time range and aggregation period for one collection cycle."""

    start: datetime
    end: datetime
    period: int

    @classmethod
    def ending_at(cls, end: datetime, period: int) -> "ScrapeWindow":
        """Build the window covering ``period`` seconds up to ``end``."""
        return cls(start=end - timedelta(seconds=period), end=end, period=period)

    @classmethod
    def ending_now(cls, period: int) -> "ScrapeWindow":
        return cls.ending_at(datetime.now(UTC), period)

    def query_params(self) -> list[tuple[str, str]]:
        """Return the ``period``/``from``/``to`` query parameters."""
        return [
            ("period", str(self.period)),
            ("from", format_rfc3339(self.start)),
            ("to", format_rfc3339(self.end)),
        ]
