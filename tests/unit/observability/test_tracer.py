"""
Unit tests for tracer protocol and implementations.

Tests for:
- Tracer Protocol (runtime_checkable)
- NullTracer class
- OpenTelemetryTracer class
- MockTracer class
- create_tracer() factory function
"""

from __future__ import annotations

import contextlib
from typing import Any

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from brokerlauncher.observability import (
    ATTR_BROKER_ID,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from brokerlauncher.observability import attributes


class TestTracerProtocol:
    """Tests for Tracer protocol."""

    def test_null_tracer_implements_protocol(self):
        assert isinstance(NullTracer(), Tracer)

    def test_otel_tracer_implements_protocol(self):
        assert isinstance(OpenTelemetryTracer(__name__), Tracer)

    def test_mock_tracer_implements_protocol(self):
        assert isinstance(MockTracer(), Tracer)

    def test_custom_implementation_matches_protocol(self):
        """Custom implementations can match the protocol."""

        class CustomTracer:
            def span(self, name: str, attributes: dict[str, Any] | None = None):
                return contextlib.nullcontext()

            @property
            def enabled(self) -> bool:
                return False

        assert isinstance(CustomTracer(), Tracer)


class TestNullTracer:
    """Tests for NullTracer."""

    def test_span_yields_none(self):
        with NullTracer().span("brokerlauncher.election.vote", {ATTR_BROKER_ID: 1}) as span:
            assert span is None

    def test_not_enabled(self):
        assert NullTracer().enabled is False

    def test_exceptions_propagate(self):
        with pytest.raises(ValueError), NullTracer().span("op"):
            raise ValueError("boom")


class TestOpenTelemetryTracer:
    """Tests for OpenTelemetryTracer with an in-memory SDK provider."""

    @pytest.fixture
    def exporter(self, monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        monkeypatch.setattr(
            "brokerlauncher.observability.tracer.trace.get_tracer",
            provider.get_tracer,
        )
        return exporter

    def test_enabled(self):
        assert OpenTelemetryTracer(__name__).enabled is True

    def test_span_is_exported_with_attributes(self, exporter: InMemorySpanExporter):
        tracer = OpenTelemetryTracer(__name__)

        with tracer.span("brokerlauncher.election.vote", {ATTR_BROKER_ID: 3}) as span:
            assert span is not None
            span.set_attribute(attributes.ATTR_ELECTED, True)

        (finished,) = exporter.get_finished_spans()
        assert finished.name == "brokerlauncher.election.vote"
        assert finished.attributes[ATTR_BROKER_ID] == 3
        assert finished.attributes[attributes.ATTR_ELECTED] is True

    def test_span_without_attributes(self, exporter: InMemorySpanExporter):
        with OpenTelemetryTracer(__name__).span("brokerlauncher.supervisor.launch"):
            pass

        assert [s.name for s in exporter.get_finished_spans()] == [
            "brokerlauncher.supervisor.launch"
        ]


class TestMockTracer:
    """Tests for MockTracer."""

    def test_records_spans(self):
        tracer = MockTracer()
        with tracer.span("a", {"k": "v"}):
            pass
        with tracer.span("b"):
            pass

        assert tracer.spans == [("a", {"k": "v"}), ("b", None)]
        assert tracer.span_names == ["a", "b"]
        assert tracer.enabled is True

    def test_clear(self):
        tracer = MockTracer()
        with tracer.span("a"):
            pass
        tracer.clear()

        assert tracer.spans == []


class TestCreateTracer:
    """Tests for create_tracer()."""

    def test_enabled_returns_otel_tracer(self):
        assert isinstance(create_tracer(__name__, enable_tracing=True), OpenTelemetryTracer)

    def test_disabled_returns_null_tracer(self):
        assert isinstance(create_tracer(__name__, enable_tracing=False), NullTracer)


class TestAttributeNames:
    """Tests for the span attribute constants."""

    def test_all_attributes_use_package_prefix(self):
        names = [value for key, value in vars(attributes).items() if key.startswith("ATTR_")]

        assert names
        assert all(name.startswith("brokerlauncher.") for name in names)
        assert len(names) == len(set(names))
