"""Decoders for New Relic API payloads.

A fetched payload is the concatenation of one JSON document per page, so
every decoder reads a stream of top-level documents and merges their list
fields into one record.
"""

import json
from collections.abc import Iterator
from typing import Any

from newrelic_exporter.core.errors import DecodeError
from newrelic_exporter.core.models import (
    Application,
    ApplicationList,
    MetricData,
    MetricDataSet,
    MetricName,
    MetricNameCatalog,
    Timeslice,
    TimesliceValue,
    to_float,
)

_WHITESPACE = " \t\n\r"


def iter_json_documents(payload: bytes) -> Iterator[Any]:
    """Yield each consecutive top-level JSON value in ``payload``.

    Args:
        payload: Raw bytes holding zero or more JSON documents.

    Raises:
        DecodeError: The payload is not UTF-8 or contains invalid JSON.
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Payload is not valid UTF-8: {exc}") from exc

    decoder = json.JSONDecoder()
    pos = 0
    end = len(text)
    while True:
        while pos < end and text[pos] in _WHITESPACE:
            pos += 1
        if pos >= end:
            return
        try:
            document, pos = decoder.raw_decode(text, pos)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON document: {exc}") from exc
        yield document


def _object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(f"Expected {what} to be an object, got {type(value).__name__}")
    return value


def _list(document: dict[str, Any], key: str) -> list[Any]:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"Expected '{key}' to be a list, got {type(value).__name__}")
    return value


def _summary(value: Any) -> dict[str, float]:
    if value is None:
        return {}
    summary = _object(value, "summary")
    numeric = {key: to_float(item) for key, item in summary.items()}
    return {key: item for key, item in numeric.items() if item is not None}


def _application(raw: Any) -> Application:
    item = _object(raw, "application")
    app_id = item.get("id")
    if not isinstance(app_id, int) or isinstance(app_id, bool):
        raise DecodeError(f"Application id must be an integer, got {app_id!r}")
    return Application(
        id=app_id,
        name=str(item.get("name", "")),
        health_status=str(item.get("health_status", "unknown")),
        application_summary=_summary(item.get("application_summary")),
        end_user_summary=_summary(item.get("end_user_summary")),
    )


def decode_application_list(payload: bytes) -> ApplicationList:
    """Decode a ``/v2/applications.json`` payload."""
    applications: list[Application] = []
    for document in iter_json_documents(payload):
        page = _object(document, "application list")
        applications.extend(_application(raw) for raw in _list(page, "applications"))
    return ApplicationList(applications=tuple(applications))


def decode_metric_names(payload: bytes) -> MetricNameCatalog:
    """Decode a ``/v2/applications/{id}/metrics.json`` payload."""
    metrics: list[MetricName] = []
    for document in iter_json_documents(payload):
        page = _object(document, "metric name list")
        for raw in _list(page, "metrics"):
            entry = _object(raw, "metric name")
            metrics.append(
                MetricName(
                    name=str(entry.get("name", "")),
                    values=tuple(str(value) for value in _list(entry, "values")),
                )
            )
    return MetricNameCatalog(metrics=tuple(metrics))


def _timeslice(raw: Any) -> Timeslice:
    entry = _object(raw, "timeslice")
    values: dict[str, TimesliceValue] = {}
    for key, value in _object(entry.get("values") or {}, "timeslice values").items():
        # Nested objects and lists carry no exportable value
        if isinstance(value, (dict, list)):
            continue
        values[key] = value
    return Timeslice(
        start=str(entry.get("from", "")),
        end=str(entry.get("to", "")),
        values=values,
    )


def decode_metric_data(payload: bytes) -> MetricDataSet:
    """Decode a ``/v2/applications/{id}/metrics/data.json`` payload."""
    data = MetricDataSet()
    for document in iter_json_documents(payload):
        page = _object(document, "metric data response")
        body = _object(page.get("metric_data") or {}, "metric_data")
        metrics = []
        for raw in _list(body, "metrics"):
            entry = _object(raw, "metric")
            metrics.append(
                MetricData(
                    name=str(entry.get("name", "")),
                    timeslices=tuple(_timeslice(t) for t in _list(entry, "timeslices")),
                )
            )
        not_found = tuple(str(name) for name in _list(body, "metrics_not_found"))
        data = data.merge(MetricDataSet(metrics=tuple(metrics), metrics_not_found=not_found))
    return data
