"""Collection cycle: one scrape of the upstream API feeding the registry."""

import asyncio
import logging
import time

from newrelic_exporter.core.models import ScrapeWindow
from newrelic_exporter.core.ports import FetcherPort
from newrelic_exporter.core.registry import MetricRegistry
from newrelic_exporter.core.scrape import SampleQueue, ScrapeOutcome, Scraper

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 60


class Exporter:
    """Runs collection cycles against a shared MetricRegistry.

    Each call to ``collect`` is an independent cycle. Cycles that overlap
    each run their own scrape; the registry lock serialises their writes.
    """

    def __init__(
        self,
        api: FetcherPort,
        registry: MetricRegistry | None = None,
        period: int = DEFAULT_PERIOD,
        scraper: Scraper | None = None,
    ) -> None:
        self.api = api
        self.registry = registry if registry is not None else MetricRegistry()
        self.period = period
        self.scraper = scraper if scraper is not None else Scraper(api)

    async def collect(self) -> ScrapeOutcome:
        """Run one cycle, ingesting samples while they are produced."""
        window = ScrapeWindow.ending_now(self.period)
        self.registry.begin_scrape()
        start = time.perf_counter()
        logger.debug("Starting new scrape for window %s - %s", window.start, window.end)

        queue: SampleQueue = asyncio.Queue()
        task = asyncio.create_task(self.scraper.run(window, queue))
        # A scraper that dies before closing the queue must not block the drain
        task.add_done_callback(lambda _: queue.put_nowait(None))
        failed = True
        try:
            while (sample := await queue.get()) is not None:
                self.registry.ingest(sample)
            outcome = await task
            failed = outcome.failed
        finally:
            if not task.done():
                task.cancel()
            duration = time.perf_counter() - start
            self.registry.finish_scrape(duration, failed)

        logger.debug(
            "Scrape finished in %.3fs with %d samples (failed=%s)",
            duration,
            outcome.sample_count,
            outcome.failed,
        )
        return outcome
