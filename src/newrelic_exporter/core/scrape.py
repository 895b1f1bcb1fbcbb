"""Scrape orchestrator.

One run fetches the application list, then fans out one task per
application and, inside each, one task per chunk of metric names. Samples
are put on an ``asyncio.Queue`` as soon as they are available; ``None`` is
put last, after every task has settled, to close the output.
"""

import asyncio
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from newrelic_exporter.core.decoding import (
    decode_application_list,
    decode_metric_data,
    decode_metric_names,
)
from newrelic_exporter.core.errors import ExporterError
from newrelic_exporter.core.models import (
    APPLICATION_SUMMARY,
    END_USER_SUMMARY,
    Application,
    ApplicationList,
    MetricDataSet,
    Sample,
    ScrapeWindow,
)
from newrelic_exporter.core.ports import FetcherPort

logger = logging.getLogger(__name__)

# The API rejects oversized data queries and has no way to continue one,
# so metric names are requested in batches of this size.
CHUNK_SIZE = 10

APPLICATIONS_PATH = "/v2/applications.json"

SampleQueue = asyncio.Queue[Sample | None]


@dataclass(frozen=True)
class ScrapeOutcome:
    """Summary of one orchestrator run."""

    failed: bool
    sample_count: int


@dataclass
class ScrapeResult:
    """All samples of one run, collected into a list."""

    samples: list[Sample] = field(default_factory=list)
    failed: bool = False


def chunked(names: Sequence[str], size: int = CHUNK_SIZE) -> list[list[str]]:
    """Split ``names`` into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(names[i : i + size]) for i in range(0, len(names), size)]


def application_samples(apps: ApplicationList) -> Iterator[Sample]:
    """Yield the summary samples carried by the application list."""
    for app in apps.applications:
        for name, value in app.application_summary.items():
            yield Sample(app=app.name, name=name, value=value, category=APPLICATION_SUMMARY)
        for name, value in app.end_user_summary.items():
            yield Sample(app=app.name, name=name, value=value, category=END_USER_SUMMARY)


def metric_data_samples(app_name: str, data: MetricDataSet) -> Iterator[Sample]:
    """Yield one sample per numeric field of each metric's first timeslice.

    Data is always requested summarized, so the first timeslice covers the
    whole window and any further ones are ignored.
    """
    for metric in data.metrics:
        if not metric.timeslices:
            continue
        for name, value in metric.timeslices[0].numeric_values().items():
            yield Sample(app=app_name, name=name, value=value, category=metric.name)


class Scraper:
    """Produces the samples of one collection cycle."""

    def __init__(self, api: FetcherPort, chunk_size: int = CHUNK_SIZE) -> None:
        self.api = api
        self.chunk_size = chunk_size

    async def _fetch_applications(self) -> ApplicationList:
        logger.debug("Requesting application list")
        return decode_application_list(await self.api.fetch(APPLICATIONS_PATH))

    async def _fetch_metric_names(self, app: Application) -> list[str]:
        logger.debug("Requesting metric names for application id %d", app.id)
        path = f"/v2/applications/{app.id}/metrics.json"
        return decode_metric_names(await self.api.fetch(path)).names

    async def _fetch_chunk(
        self, app: Application, names: list[str], window: ScrapeWindow
    ) -> MetricDataSet:
        path = f"/v2/applications/{app.id}/metrics/data.json"
        params = [("names[]", name) for name in names]
        params += [("raw", "true"), ("summarize", "true")]
        params += window.query_params()
        return decode_metric_data(await self.api.fetch(path, params))

    async def _fetch_metric_data(
        self, app: Application, names: list[str], window: ScrapeWindow
    ) -> tuple[MetricDataSet, bool]:
        """Fetch all chunks concurrently and merge the ones that succeed."""
        chunks = chunked(names, self.chunk_size)
        logger.debug(
            "Requesting %d metrics in %d chunk(s) for application id %d",
            len(names),
            len(chunks),
            app.id,
        )
        results = await asyncio.gather(
            *(self._fetch_chunk(app, chunk, window) for chunk in chunks),
            return_exceptions=True,
        )
        merged = MetricDataSet()
        failed = False
        for result in results:
            if isinstance(result, BaseException):
                failed = True
                logger.warning(
                    "Error requesting metric data for application %s: %s", app.name, result
                )
                continue
            merged = merged.merge(result)
        if merged.metrics_not_found:
            logger.debug(
                "Metrics not found for application %s: %s",
                app.name,
                ", ".join(merged.metrics_not_found),
            )
        return merged, failed

    async def _scrape_application(
        self, app: Application, window: ScrapeWindow, queue: SampleQueue
    ) -> tuple[int, bool]:
        """Run the catalog and data pipeline of one application.

        Returns:
            Number of samples emitted and whether anything failed.
        """
        try:
            names = await self._fetch_metric_names(app)
        except ExporterError as exc:
            logger.warning("Error getting metric names for application %s: %s", app.name, exc)
            return 0, True
        if not names:
            return 0, False

        data, failed = await self._fetch_metric_data(app, names, window)
        count = 0
        for sample in metric_data_samples(app.name, data):
            await queue.put(sample)
            count += 1
        return count, failed

    async def run(self, window: ScrapeWindow, queue: SampleQueue) -> ScrapeOutcome:
        """Scrape every application and put the samples on ``queue``.

        ``None`` is always put on the queue when the run ends, whether or
        not anything failed.

        Args:
            window: Time range shared by every data request of this run.
            queue: Destination of the samples.

        Returns:
            ScrapeOutcome with the failure flag and number of samples.
        """
        failed = False
        count = 0
        try:
            try:
                apps = await self._fetch_applications()
            except ExporterError as exc:
                logger.warning("Error getting application list: %s", exc)
                failed = True
                apps = ApplicationList()

            for sample in application_samples(apps):
                await queue.put(sample)
                count += 1

            results = await asyncio.gather(
                *(self._scrape_application(app, window, queue) for app in apps.applications),
                return_exceptions=True,
            )
            for app, result in zip(apps.applications, results, strict=True):
                if isinstance(result, BaseException):
                    logger.error(
                        "Unexpected error scraping application %s",
                        app.name,
                        exc_info=result,
                    )
                    failed = True
                    continue
                app_count, app_failed = result
                count += app_count
                failed = failed or app_failed
        finally:
            await queue.put(None)
        return ScrapeOutcome(failed=failed, sample_count=count)

    async def collect(self, window: ScrapeWindow) -> ScrapeResult:
        """Run one scrape and return all of its samples as a list."""
        queue: SampleQueue = asyncio.Queue()
        task = asyncio.create_task(self.run(window, queue))
        result = ScrapeResult()
        while (sample := await queue.get()) is not None:
            result.samples.append(sample)
        outcome = await task
        result.failed = outcome.failed
        return result
