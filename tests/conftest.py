"""Shared pytest fixtures for fastapi-layer-tracing tests."""

import pytest
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


class FakeRequest:
    """Minimal request object; supports weak references like a Starlette Request."""

    def __init__(self, path: str = "/") -> None:
        self.path = path


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Collect finished spans in memory."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """Return a tracer provider exporting to the in-memory exporter."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture
def tracer(tracer_provider: TracerProvider):
    """Return a tracer bound to the in-memory exporter."""
    return tracer_provider.get_tracer("tests")


@pytest.fixture
def finished_spans(span_exporter: InMemorySpanExporter):
    """Return a callable mapping span name to finished span."""

    def _spans() -> dict[str, ReadableSpan]:
        return {span.name: span for span in span_exporter.get_finished_spans()}

    return _spans


@pytest.fixture
def make_request():
    """Return a factory for fake request objects."""

    def _create(path: str = "/") -> FakeRequest:
        return FakeRequest(path)

    return _create
