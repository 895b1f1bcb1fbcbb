"""BDD step definitions for the scrape cycle features.

Every cycle runs against its own API client on a fresh event loop; the
registry lives in the scenario context so consecutive cycles share it.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from pytest_bdd import given, parsers, then, when

from newrelic_exporter.core.exporter import Exporter
from newrelic_exporter.core.registry import MetricRegistry
from newrelic_exporter.core.scrape import ScrapeOutcome
from tests.upstream import Handler, make_api, newrelic_handler


@dataclass
class ScrapeScenarioContext:
    """Shared state between steps in a scrape scenario."""

    handler: Handler | None = None
    registry: MetricRegistry = field(default_factory=MetricRegistry)
    outcome: ScrapeOutcome | None = None


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


async def run_cycle(ctx: ScrapeScenarioContext) -> ScrapeOutcome:
    """Run one collection cycle against the scenario's upstream."""
    assert ctx.handler is not None, "no upstream configured"
    api = make_api(ctx.handler)
    try:
        return await Exporter(api, registry=ctx.registry).collect()
    finally:
        await api.aclose()


@pytest.fixture
def ctx() -> ScrapeScenarioContext:
    """Fresh scenario context for each test."""
    return ScrapeScenarioContext()


# === Upstream Steps ===
@given("the recorded New Relic API")
def step_recorded_api(ctx: ScrapeScenarioContext) -> None:
    ctx.handler = newrelic_handler()


@given(parsers.parse("metric data requests fail with status {code:d}"))
def step_data_requests_fail(ctx: ScrapeScenarioContext, code: int) -> None:
    upstream = ctx.handler

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/metrics/data.json"):
            return httpx.Response(code)
        return upstream(request)

    ctx.handler = handler


@given("an unreachable New Relic API")
def step_unreachable_api(ctx: ScrapeScenarioContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    ctx.handler = handler


# === Cycle Steps ===
@when("a collection cycle runs")
def step_collection_cycle(ctx: ScrapeScenarioContext) -> None:
    ctx.outcome = run_async(run_cycle(ctx))


# === Outcome Steps ===
@then(parsers.parse("{count:d} samples are ingested"))
def step_sample_count(ctx: ScrapeScenarioContext, count: int) -> None:
    assert ctx.outcome is not None
    assert ctx.outcome.sample_count == count


@then(parsers.parse("the last scrape error is {flag:d}"))
def step_last_scrape_error(ctx: ScrapeScenarioContext, flag: int) -> None:
    assert ctx.registry.collect_snapshot().last_scrape_error == float(flag)


@then(parsers.parse("the scrape counter is {count:d}"))
def step_scrape_counter(ctx: ScrapeScenarioContext, count: int) -> None:
    assert ctx.registry.collect_snapshot().scrapes_total == float(count)


@then(
    parsers.parse(
        'the series "{name}" has value {value:g} for component "{component}"'
    )
)
def step_series_value(
    ctx: ScrapeScenarioContext, name: str, value: float, component: str
) -> None:
    series = {s.descriptor.name: s.values for s in ctx.registry.collect_snapshot().series}
    assert series[name][("Test/Client/Name", component)] == pytest.approx(value)
