"""Integration tests for the scrape orchestrator against a fake New Relic API."""

import asyncio
import json
from datetime import UTC, datetime

import httpx
import pytest

from newrelic_exporter.core.models import (
    APPLICATION_SUMMARY,
    END_USER_SUMMARY,
    Sample,
    ScrapeWindow,
)
from newrelic_exporter.core.scrape import SampleQueue, Scraper
from tests.upstream import TEST_APP_ID, make_api

pytestmark = [pytest.mark.scrape, pytest.mark.tier(2)]

WINDOW = ScrapeWindow.ending_at(datetime(2016, 1, 20, 11, 24, tzinfo=UTC), 60)


def fake_api_handler(
    apps: dict[int, list[str]],
    requests: list[httpx.Request],
    failing_names: frozenset[str] = frozenset(),
    failing_catalogs: frozenset[int] = frozenset(),
    list_status: int = 200,
):
    """Serve ``apps`` (id → metric names) as the New Relic API would.

    Each application has one application summary field. Every requested
    metric returns one timeslice with a single ``call_count`` value. Data
    requests that include a name from ``failing_names`` get a 500.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        parts = request.url.path.strip("/").split("/")
        if request.url.path == "/v2/applications.json":
            if list_status != 200:
                return httpx.Response(list_status)
            body = {
                "applications": [
                    {"id": app_id, "name": f"app-{app_id}", "application_summary": {"throughput": 1}}
                    for app_id in apps
                ]
            }
            return httpx.Response(200, json=body)
        app_id = int(parts[2])
        if parts[-1] == "metrics.json":
            if app_id in failing_catalogs:
                return httpx.Response(500)
            return httpx.Response(200, json={"metrics": [{"name": n} for n in apps[app_id]]})
        names = request.url.params.get_list("names[]")
        if failing_names.intersection(names):
            return httpx.Response(500)
        metrics = [
            {"name": name, "timeslices": [{"values": {"call_count": 1}}]} for name in names
        ]
        return httpx.Response(200, json={"metric_data": {"metrics": metrics}})

    return handler


def data_requests(requests: list[httpx.Request]) -> list[httpx.Request]:
    return [r for r in requests if r.url.path.endswith("/metrics/data.json")]


class TestRepositoryFixture:
    """Full cycle against the repository fixtures."""

    @pytest.mark.tra("Scrape.Fixture.SampleCount")
    async def test_fixture_yields_21_samples(self, api) -> None:
        """7 + 4 summary fields and 10 metric values give 21 samples."""
        result = await Scraper(api).collect(WINDOW)

        assert len(result.samples) == 21
        assert result.failed is False

    @pytest.mark.tra("Scrape.Fixture.Categories")
    async def test_fixture_sample_categories(self, api) -> None:
        """Samples carry the application name and their category."""
        result = await Scraper(api).collect(WINDOW)

        categories = [s.category for s in result.samples]
        assert categories.count(APPLICATION_SUMMARY) == 7
        assert categories.count(END_USER_SUMMARY) == 4
        assert categories.count("Datastore/statement/JDBC/messages/insert") == 10
        assert {s.app for s in result.samples} == {"Test/Client/Name"}
        assert (
            Sample("Test/Client/Name", "call_count", 2.0, "Datastore/statement/JDBC/messages/insert")
            in result.samples
        )

    @pytest.mark.tra("Scrape.Fixture.DataQuery")
    async def test_data_request_parameters(self, api, recorded_requests) -> None:
        """The data request asks for a summarized window of both metric names."""
        await Scraper(api).collect(WINDOW)

        [request] = data_requests(recorded_requests)
        params = request.url.params
        assert request.url.path == f"/v2/applications/{TEST_APP_ID}/metrics/data.json"
        assert params.get_list("names[]") == [
            "Datastore/statement/JDBC/messages/insert",
            "Datastore/statement/JDBC/messages/update",
        ]
        assert params["raw"] == "true"
        assert params["summarize"] == "true"
        assert params["period"] == "60"
        assert params["from"] == "2016-01-20T11:23:00Z"
        assert params["to"] == "2016-01-20T11:24:00Z"


class TestSmallScenario:
    """Two summary fields of each kind plus ten metric values."""

    @pytest.mark.tra("Scrape.Scenario.Fourteen")
    async def test_two_plus_two_plus_ten(self) -> None:
        """2 application + 2 end-user + 10 timeslice fields = 14 samples."""
        values = {f"field_{i}": float(i) for i in range(10)}

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/v2/applications.json":
                return httpx.Response(
                    200,
                    json={
                        "applications": [
                            {
                                "id": TEST_APP_ID,
                                "name": "shop",
                                "health_status": "green",
                                "application_summary": {"throughput": 1, "apdex_score": 0.9},
                                "end_user_summary": {"throughput": 2, "apdex_score": 0.8},
                            }
                        ]
                    },
                )
            if path.endswith("/metrics.json"):
                return httpx.Response(200, json={"metrics": [{"name": "A"}, {"name": "B"}]})
            body = {"metric_data": {"metrics": [{"name": "A", "timeslices": [{"values": values}]}]}}
            return httpx.Response(200, content=json.dumps(body))

        result = await Scraper(make_api(handler)).collect(WINDOW)

        assert len(result.samples) == 14
        assert result.failed is False


class TestChunking:
    """Tests for chunked metric data requests."""

    @pytest.mark.tra("Scrape.Chunking.Requests")
    @pytest.mark.parametrize(("count", "sizes"), [(25, [5, 10, 10]), (20, [10, 10]), (3, [3])])
    async def test_one_request_per_chunk(self, count: int, sizes: list[int]) -> None:
        """N names are requested in ceil(N/10) requests of at most 10."""
        requests: list[httpx.Request] = []
        names = [f"Custom/metric/{i}" for i in range(count)]
        api = make_api(fake_api_handler({1: names}, requests))

        result = await Scraper(api).collect(WINDOW)

        chunk_sizes = sorted(len(r.url.params.get_list("names[]")) for r in data_requests(requests))
        assert chunk_sizes == sizes
        assert len(result.samples) == 1 + count

    @pytest.mark.tra("Scrape.Chunking.EmptyCatalog")
    async def test_empty_catalog_issues_no_data_request(self) -> None:
        """Applications without metric names are not queried for data."""
        requests: list[httpx.Request] = []
        api = make_api(fake_api_handler({1: []}, requests))

        result = await Scraper(api).collect(WINDOW)

        assert data_requests(requests) == []
        assert len(result.samples) == 1
        assert result.failed is False


class TestPartialFailure:
    """Failures are isolated to the work that failed."""

    @pytest.mark.tra("Scrape.Failure.Chunk")
    async def test_failed_chunk_keeps_other_samples(self) -> None:
        """A failing chunk drops only its own samples and flags the cycle."""
        requests: list[httpx.Request] = []
        apps = {1: [f"a/{i}" for i in range(15)], 2: ["b/0", "b/1", "b/2"]}
        api = make_api(fake_api_handler(apps, requests, failing_names=frozenset({"a/12"})))

        result = await Scraper(api).collect(WINDOW)

        categories = {(s.app, s.category) for s in result.samples}
        assert result.failed is True
        assert {("app-2", name) for name in apps[2]} <= categories
        assert {("app-1", f"a/{i}") for i in range(10)} <= categories
        assert not any(("app-1", f"a/{i}") in categories for i in range(10, 15))
        assert len(result.samples) == 2 + 10 + 3

    @pytest.mark.tra("Scrape.Failure.Catalog")
    async def test_failed_catalog_skips_only_that_application(self) -> None:
        """A failing catalog leaves other applications untouched."""
        requests: list[httpx.Request] = []
        apps = {1: ["a/0"], 2: ["b/0", "b/1"]}
        api = make_api(fake_api_handler(apps, requests, failing_catalogs=frozenset({1})))

        result = await Scraper(api).collect(WINDOW)

        assert result.failed is True
        assert {s.category for s in result.samples if s.app == "app-2"} == {
            APPLICATION_SUMMARY,
            "b/0",
            "b/1",
        }
        assert [s.category for s in result.samples if s.app == "app-1"] == [APPLICATION_SUMMARY]

    @pytest.mark.tra("Scrape.Failure.ApplicationList")
    async def test_failed_application_list_completes_empty(self) -> None:
        """Without an application list the run still closes its output."""
        requests: list[httpx.Request] = []
        api = make_api(fake_api_handler({1: ["a"]}, requests, list_status=500))
        queue: SampleQueue = asyncio.Queue()

        outcome = await Scraper(api).run(WINDOW, queue)

        assert outcome.failed is True
        assert outcome.sample_count == 0
        assert queue.get_nowait() is None
        assert len(requests) == 1

    @pytest.mark.tra("Scrape.Failure.Decode")
    async def test_undecodable_chunk_flags_cycle(self) -> None:
        """Malformed metric data counts as a failure, not a crash."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v2/applications.json":
                return httpx.Response(200, json={"applications": [{"id": 1, "name": "x"}]})
            if request.url.path.endswith("/metrics.json"):
                return httpx.Response(200, json={"metrics": [{"name": "m"}]})
            return httpx.Response(200, content=b'{"metric_data": ')

        result = await Scraper(make_api(handler)).collect(WINDOW)

        assert result.failed is True
        assert result.samples == []

    @pytest.mark.tra("Scrape.Outcome.Count")
    async def test_run_reports_sample_count(self, api) -> None:
        """run() counts every sample it put on the queue."""
        queue: SampleQueue = asyncio.Queue()

        outcome = await Scraper(api).run(WINDOW, queue)

        assert outcome.sample_count == 21
        assert queue.qsize() == 22
