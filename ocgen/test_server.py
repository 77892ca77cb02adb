from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export import SpanExportResult

from ocgen.server import FilteringSpanExporter, app


def _span(attributes):
    span = MagicMock()
    span.attributes = attributes
    return span


def test_health_and_metrics_are_served():
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "fastapi_app_info" in metrics.text


def test_filtering_exporter_drops_response_body_spans():
    inner = MagicMock()
    inner.export.return_value = SpanExportResult.SUCCESS
    exporter = FilteringSpanExporter(inner)
    body = _span({"asgi.event.type": "http.response.body"})
    stage = _span({"sandbox.id": "sbx-1"})

    assert exporter.export([body, stage]) == SpanExportResult.SUCCESS
    inner.export.assert_called_once_with([stage])


def test_filtering_exporter_skips_empty_batches():
    inner = MagicMock()
    exporter = FilteringSpanExporter(inner)

    result = exporter.export([_span({"asgi.event.type": "http.response.body"})])

    assert result == SpanExportResult.SUCCESS
    inner.export.assert_not_called()
